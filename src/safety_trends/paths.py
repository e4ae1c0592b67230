"""
Canonical path resolution for the safety trends project.

This module is the single source of truth for project paths. Scripts import
paths from here rather than building relative '../' paths.

Root detection looks for `.project-root` first, then fallback markers. When
the package is installed outside a checkout, the current working directory
is searched instead.
"""

from pathlib import Path
from typing import Optional

# Markers to detect project root (in priority order)
ROOT_MARKERS = [".project-root", "pyproject.toml", ".git"]


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """
    Find the project root by searching upward for marker files.
    
    Args:
        start_path: Starting directory for search. Defaults to this file's location.
        
    Returns:
        Path to project root directory.
        
    Raises:
        FileNotFoundError: If no root marker is found.
    """
    if start_path is None:
        start_path = Path(__file__).resolve().parent
    
    current = Path(start_path).resolve()
    
    # Search upward until we find a marker or hit filesystem root
    while True:
        for marker in ROOT_MARKERS:
            if (current / marker).exists():
                return current
        if current == current.parent:
            break
        current = current.parent
    
    raise FileNotFoundError(
        f"Could not find project root. Searched for markers {ROOT_MARKERS} "
        f"starting from {start_path}"
    )


def _resolve_project_root() -> Path:
    try:
        return find_project_root()
    except FileNotFoundError:
        pass
    try:
        return find_project_root(Path.cwd())
    except FileNotFoundError:
        return Path.cwd().resolve()


# =============================================================================
# Canonical paths (resolved at import time)
# =============================================================================

PROJECT_ROOT = _resolve_project_root()

# Config
CONFIG_DIR = PROJECT_ROOT / "configs"
PARAMS_FILE = CONFIG_DIR / "params.yml"

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
PROCESSED_DIR = DATA_DIR / "processed"
TRENDS_DIR = PROCESSED_DIR / "trends"

# Logs
LOGS_DIR = PROJECT_ROOT / "logs"

# Source and scripts
SRC_DIR = PROJECT_ROOT / "src"
SCRIPTS_DIR = PROJECT_ROOT / "scripts"

# Tests
TESTS_DIR = PROJECT_ROOT / "tests"
FIXTURES_DIR = TESTS_DIR / "fixtures"


def ensure_dirs_exist() -> None:
    """Create all canonical directories if they don't exist."""
    dirs = [
        CONFIG_DIR,
        RAW_DIR, PROCESSED_DIR, TRENDS_DIR,
        LOGS_DIR,
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)


if __name__ == "__main__":
    # Quick verification when run directly
    print(f"PROJECT_ROOT:  {PROJECT_ROOT}")
    print(f"CONFIG_DIR:    {CONFIG_DIR}")
    print(f"RAW_DIR:       {RAW_DIR}")
    print(f"TRENDS_DIR:    {TRENDS_DIR}")
    print(f"LOGS_DIR:      {LOGS_DIR}")
