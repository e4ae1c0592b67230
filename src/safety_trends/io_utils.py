"""
I/O utilities with atomic writes and safe reads.

Outputs are written to a temp file in the target directory and then renamed
into place, so a failed run never leaves a half-written trend file behind.
The engine itself performs no I/O; only scripts go through this module.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import geopandas as gpd
import pandas as pd
import yaml


# =============================================================================
# Atomic Write Utilities
# =============================================================================

@contextmanager
def atomic_write(
    target_path: Union[str, Path],
    mode: str = "w",
    suffix: Optional[str] = None,
):
    """
    Context manager for atomic file writes.
    
    Writes to a temporary file first, then atomically renames to target.
    If an exception occurs, the temp file is cleaned up and target unchanged.
    
    Args:
        target_path: Final destination path
        mode: File mode ('w' for text, 'wb' for binary)
        suffix: Optional suffix for temp file (e.g., '.json')
    
    Yields:
        File handle for writing
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    
    if suffix is None:
        suffix = target_path.suffix or ".tmp"
    
    # Temp file in the same directory so the rename stays on one filesystem
    fd, temp_path = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.stem}_",
        dir=target_path.parent,
    )
    temp_path = Path(temp_path)
    
    try:
        os.close(fd)
        
        encoding = None if "b" in mode else "utf-8"
        with open(temp_path, mode, encoding=encoding) as f:
            yield f
        
        temp_path.replace(target_path)
        
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_df(
    df: pd.DataFrame,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write a DataFrame to CSV or Parquet.
    
    File format determined by extension.
    
    Args:
        df: DataFrame to write
        target_path: Destination path (.csv or .parquet)
        **kwargs: Additional arguments passed to to_csv/to_parquet
    """
    target_path = Path(target_path)
    suffix = target_path.suffix.lower()
    
    if suffix not in (".csv", ".parquet"):
        raise ValueError(f"Unsupported format: {suffix}")
    
    write_mode = "wb" if suffix == ".parquet" else "w"
    with atomic_write(target_path, mode=write_mode, suffix=suffix) as f:
        if suffix == ".parquet":
            df.to_parquet(f, **kwargs)
        else:
            df.to_csv(f, **kwargs)


def atomic_write_json(
    data: Any,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write JSON data.
    
    Args:
        data: JSON-serializable data
        target_path: Destination path
        **kwargs: Additional arguments passed to json.dump
    """
    kwargs.setdefault("indent", 2)
    kwargs.setdefault("default", str)
    
    with atomic_write(target_path, mode="w", suffix=".json") as f:
        json.dump(data, f, **kwargs)


# =============================================================================
# Read Utilities
# =============================================================================

def read_yaml(path: Union[str, Path]) -> Any:
    """Read a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def read_json(path: Union[str, Path]) -> Any:
    """Read a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_gdf(
    path: Union[str, Path],
    **kwargs,
) -> gpd.GeoDataFrame:
    """
    Read a GeoDataFrame from file.
    
    Supports GeoParquet, GeoJSON, GeoPackage, Shapefile.
    """
    path = Path(path)
    
    if path.suffix.lower() == ".parquet":
        return gpd.read_parquet(path, **kwargs)
    return gpd.read_file(path, **kwargs)


def read_df(
    path: Union[str, Path],
    **kwargs,
) -> pd.DataFrame:
    """
    Read a DataFrame from CSV or Parquet.
    
    Args:
        path: Path to data file
        **kwargs: Additional arguments passed to reader
    
    Returns:
        DataFrame
    """
    path = Path(path)
    suffix = path.suffix.lower()
    
    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    elif suffix == ".csv":
        return pd.read_csv(path, **kwargs)
    else:
        raise ValueError(f"Unsupported format: {suffix}")


def read_dfs(
    paths: Sequence[Union[str, Path]],
    **kwargs,
) -> pd.DataFrame:
    """
    Read several tables and stack them in the given order.
    
    Column names are lower-cased and stripped so yearly extracts with
    slightly different headers line up.
    """
    frames: List[pd.DataFrame] = []
    for p in paths:
        df = read_df(p, **kwargs)
        df.columns = [str(c).strip().lower() for c in df.columns]
        frames.append(df)
    
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)
