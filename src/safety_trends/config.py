"""
Trend engine parameters loaded from configs/params.yml.

Every tunable of the aggregation engine (grid size, edge tolerance, analysis
year, local timezone, category rules) is read from the `trends:` section.
Keys that are absent fall back to the defaults below.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from safety_trends.io_utils import read_yaml
from safety_trends.paths import PARAMS_FILE
from safety_trends.schemas import ConfigError


DEFAULT_TIME_WINDOWS = ("6months", "1year", "2years")

DEFAULT_VIOLENT_EXCLUDED_TYPES = (
    "Burglary Residential",
    "Motor Vehicle Theft",
    "Theft from Vehicle",
    "Vandalism/Criminal Mischief",
)


@dataclass(frozen=True)
class TrendConfig:
    """Resolved engine parameters."""
    grid_size: float = 0.01
    edge_tolerance: float = 1e-5
    analysis_year: int = 2025
    timezone: str = "America/New_York"
    max_parse_warnings: int = 5
    time_windows: Tuple[str, ...] = DEFAULT_TIME_WINDOWS
    violent_crime_token: str = "Violent Crime"
    violent_excluded_types: Tuple[str, ...] = field(
        default=DEFAULT_VIOLENT_EXCLUDED_TYPES
    )
    
    def __post_init__(self):
        if self.grid_size <= 0:
            raise ConfigError(f"grid_size must be positive, got {self.grid_size}")
        if self.edge_tolerance < 0:
            raise ConfigError(f"edge_tolerance must be >= 0, got {self.edge_tolerance}")
        unknown = set(self.time_windows) - set(DEFAULT_TIME_WINDOWS)
        if unknown:
            raise ConfigError(f"Unknown time windows in config: {sorted(unknown)}")
    
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _load_trend_section(path: Path) -> dict:
    """Load the `trends` section of params.yml (empty if the file is absent)."""
    if not path.exists():
        return {}
    
    params = read_yaml(path)
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(params).__name__}")
    
    section = params.get("trends", {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'trends' section in {path} must be a mapping")
    return section


def load_trend_config(path: Optional[Union[str, Path]] = None) -> TrendConfig:
    """
    Load engine parameters.
    
    Args:
        path: Optional params file. Defaults to configs/params.yml.
    
    Returns:
        TrendConfig with file values layered over defaults
    
    Raises:
        ConfigError: If the file is not a mapping or values are invalid
    """
    path = Path(path) if path is not None else PARAMS_FILE
    section = _load_trend_section(path)
    defaults = TrendConfig()
    
    try:
        return TrendConfig(
            grid_size=float(section.get("grid_size", defaults.grid_size)),
            edge_tolerance=float(section.get("edge_tolerance", defaults.edge_tolerance)),
            analysis_year=int(section.get("analysis_year", defaults.analysis_year)),
            timezone=str(section.get("timezone", defaults.timezone)),
            max_parse_warnings=int(
                section.get("max_parse_warnings", defaults.max_parse_warnings)
            ),
            time_windows=tuple(section.get("time_windows", defaults.time_windows)),
            violent_crime_token=str(
                section.get("violent_crime_token", defaults.violent_crime_token)
            ),
            violent_excluded_types=tuple(
                section.get("violent_excluded_types", defaults.violent_excluded_types)
            ),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid trend parameter in {path}: {e}") from e
