"""
Structured JSONL logging utilities.

Library modules log through the standard `logging` hierarchy under the
`safety_trends` namespace. Pipeline scripts additionally wrap a run in a
JSONLLogger, which emits one JSON record per event with standard keys
(script_name, run_id, config, inputs, outputs, trend diagnostics, versions).
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from safety_trends.paths import LOGS_DIR


def generate_run_id() -> str:
    """Generate a unique run ID for this execution."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    short_uuid = uuid.uuid4().hex[:8]
    return f"{timestamp}_{short_uuid}"


def get_versions() -> dict[str, str]:
    """Get versions of key libraries for reproducibility logging."""
    versions = {"python": sys.version.split()[0]}
    
    for module_name in ("pandas", "geopandas", "shapely", "numpy", "pytz", "yaml"):
        try:
            module = __import__(module_name)
        except ImportError:
            continue
        versions[module_name] = getattr(module, "__version__", "unknown")
    
    return versions


class JSONLLogger:
    """
    Structured JSONL logger for pipeline scripts.
    
    Usage:
        logger = JSONLLogger("build_safety_trends")
        logger.info("Starting processing", extra={"window": "1year"})
        logger.log_trend_stats(engine.diagnostics.as_dict())
        logger.close()
    """
    
    def __init__(
        self,
        script_name: str,
        run_id: Optional[str] = None,
        log_dir: Optional[Path] = None,
    ):
        """
        Initialize the JSONL logger.
        
        Args:
            script_name: Name of the script (used in log filename)
            run_id: Unique run identifier. Auto-generated if not provided.
            log_dir: Directory for log files. Defaults to LOGS_DIR.
        """
        self.script_name = script_name
        self.run_id = run_id or generate_run_id()
        self.log_dir = Path(log_dir) if log_dir is not None else LOGS_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        
        self.log_file = self.log_dir / f"{script_name}_{self.run_id}.jsonl"
        self._file_handle = open(self.log_file, "a", encoding="utf-8")
        
        # Also set up console logging
        self._console_handler = logging.StreamHandler(sys.stdout)
        self._console_handler.setLevel(logging.INFO)
        self._console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        )
        
        self._logger = logging.getLogger(f"safety_trends.{script_name}")
        self._logger.setLevel(logging.DEBUG)
        self._logger.addHandler(self._console_handler)
        
        self._write_record(
            level="INFO",
            message="Logger initialized",
            extra={
                "script_name": script_name,
                "run_id": self.run_id,
                "log_file": str(self.log_file),
                "versions": get_versions(),
            },
        )
    
    def _write_record(
        self,
        level: str,
        message: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        """Write a single JSONL record."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "script_name": self.script_name,
            "run_id": self.run_id,
            "level": level,
            "message": message,
        }
        if extra:
            record["extra"] = extra
        
        self._file_handle.write(json.dumps(record, default=str) + "\n")
        self._file_handle.flush()
    
    def debug(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        """Log a debug message."""
        self._write_record("DEBUG", message, extra)
        self._logger.debug(message)
    
    def info(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        """Log an info message."""
        self._write_record("INFO", message, extra)
        self._logger.info(message)
    
    def warning(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        """Log a warning message."""
        self._write_record("WARNING", message, extra)
        self._logger.warning(message)
    
    def error(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        """Log an error message."""
        self._write_record("ERROR", message, extra)
        self._logger.error(message)
    
    def log_config(self, config: dict[str, Any]) -> None:
        """Log the configuration used for this run."""
        self._write_record("INFO", "Configuration loaded", extra={"config": config})
    
    def log_inputs(self, inputs: dict[str, Any]) -> None:
        """Log input files/paths."""
        self._write_record("INFO", "Inputs registered", extra={"inputs": inputs})
    
    def log_outputs(self, outputs: dict[str, str]) -> None:
        """Log output files/paths."""
        self._write_record("INFO", "Outputs registered", extra={"outputs": outputs})
    
    def log_metrics(self, metrics: dict[str, Any]) -> None:
        """Log metrics (record counts, neighborhood counts, etc.)."""
        self._write_record("INFO", "Metrics recorded", extra={"metrics": metrics})
    
    def log_trend_stats(self, trend_stats: dict[str, Any]) -> None:
        """Log per-window trend diagnostics (skip counters, parse errors)."""
        self._write_record("INFO", "Trend stats recorded", extra={"trend_stats": trend_stats})
    
    def close(self) -> None:
        """Close the log file handle."""
        self._write_record("INFO", "Logger closing", extra={"run_id": self.run_id})
        self._file_handle.close()
        self._logger.removeHandler(self._console_handler)
    
    def __enter__(self) -> "JSONLLogger":
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.error(
                f"Exception occurred: {exc_type.__name__}: {exc_val}",
                extra={"traceback": str(exc_tb)},
            )
        self.close()


def get_logger(
    script_name: str,
    run_id: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> JSONLLogger:
    """
    Convenience function to get a configured logger.
    
    Args:
        script_name: Name of the script
        run_id: Optional run ID (auto-generated if not provided)
        log_dir: Optional log directory (defaults to LOGS_DIR)
    
    Returns:
        Configured JSONLLogger instance
    """
    return JSONLLogger(script_name=script_name, run_id=run_id, log_dir=log_dir)
