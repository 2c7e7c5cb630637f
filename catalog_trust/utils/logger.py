"""
Logging infrastructure for trust scoring runs.

Provides:
- Millisecond timestamps with aligned levels
- Optional phase prefix and log file
- key=value structured suffixes
- Warning/error tracking for the run summary
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# Third-party loggers routed through the unified format
EXTERNAL_LOGGERS = ["httpx", "httpcore", "pymysql"]


class MillisecondsFormatter(logging.Formatter):
    """Custom formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


def _format_string(phase: Optional[str]) -> str:
    if phase:
        return f"%(asctime)s | %(levelname)-8s | {phase} | %(filename)s:%(lineno)d | %(message)s"
    return "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"


def _with_fields(message: str, fields: dict) -> str:
    if not fields:
        return message
    formatted = " ".join(f"{k}={v}" for k, v in fields.items())
    return f"{message} [{formatted}]"


class PipelineLogger:
    """
    Run logger with structured output and tracked warnings/errors.

    One instance per run; nothing is shared between runs.
    """

    def __init__(
        self,
        name: str = "catalog_trust",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        phase: Optional[str] = None,
    ):
        """
        Initialize the run logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name
            log_dir: Directory for log files (defaults to logs/)
            phase: Optional phase label shown in every line (e.g., "Trust")
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.phase = phase

        # Prevent propagation to root logger to avoid duplicate logs
        self.logger.propagate = False
        if self.logger.handlers:
            self.logger.handlers.clear()

        formatter = MillisecondsFormatter(_format_string(phase), datefmt="%Y-%m-%d %H:%M:%S,%f")

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            if log_dir is None:
                log_dir = Path(__file__).parent.parent.parent / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(logging.DEBUG)  # Log everything to file
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
            self.info(f"Logging to file: {log_path}")

        self.errors = []
        self.warnings = []

    def debug(self, message: str, **kwargs):
        self.logger.debug(_with_fields(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        self.logger.info(_with_fields(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _with_fields(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append({"message": message, "timestamp": datetime.now().isoformat(), "data": kwargs})

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {str(exception)}"
        message = _with_fields(message, kwargs)
        self.logger.error(message, exc_info=exception is not None, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_run_start(self, num_subjects: int, dry_run: bool = False):
        """Log start of a scoring run."""
        self.info("=" * 60)
        self.info(f"Trust run started - processing {num_subjects} subjects", num_subjects=num_subjects, dry_run=dry_run)
        self.info("=" * 60)

    def log_run_complete(self, scored: int, failed: int, duration_seconds: float):
        """Log completion of a scoring run."""
        self.info("=" * 60)
        self.info(
            "Trust run completed",
            scored=scored,
            failed=failed,
            duration_seconds=round(duration_seconds, 2),
        )
        self.info("=" * 60)

    def get_error_summary(self) -> dict:
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }


def configure_global_logging(log_level: str = "INFO", phase: Optional[str] = None):
    """
    Configure the root logger and third-party loggers with the unified format.

    Call this early in startup so module loggers (logging.getLogger(__name__))
    share the run logger's format.

    Args:
        log_level: Logging level to apply globally (DEBUG, INFO, WARNING, ERROR)
        phase: Optional phase label
    """
    formatter = MillisecondsFormatter(_format_string(phase), datefmt="%Y-%m-%d %H:%M:%S,%f")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    root_handler = logging.StreamHandler(sys.stdout)
    root_handler.setLevel(getattr(logging, log_level.upper()))
    root_handler.setFormatter(formatter)
    root_logger.addHandler(root_handler)

    for lib_name in EXTERNAL_LOGGERS:
        lib_logger = logging.getLogger(lib_name)
        lib_logger.handlers.clear()
        lib_logger.propagate = True
        # Request-level noise stays out of INFO runs
        lib_logger.setLevel(max(logging.WARNING, getattr(logging, log_level.upper())))
