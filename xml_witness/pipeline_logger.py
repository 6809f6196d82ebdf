"""
Pipeline logger - Structured logging for witness generation

Wraps the standard logging module so every stage of the pipeline logs with a
consistent `message | {json}` shape. Handlers are only installed by
configure_logging(); importing this module never touches logging config.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager

ROOT_LOGGER_NAME = "xml_witness"


class WitnessLogger:
    """Structured logger for witness pipeline stages."""

    def __init__(self, name: str = ROOT_LOGGER_NAME):
        self.name = name
        self.logger = logging.getLogger(name)

    def _emit(self, level: int, message: str, **kwargs):
        if kwargs:
            self.logger.log(level, f"{message} | {json.dumps(kwargs, default=str)}")
        else:
            self.logger.log(level, message)

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self._emit(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional structured data."""
        self._emit(logging.ERROR, message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional structured data."""
        self._emit(logging.DEBUG, message, **kwargs)

    def log_operation(self, operation: str, status: str, **data):
        """Log a pipeline operation with structured data."""
        self.debug(
            f"Operation: {operation} - {status}",
            operation=operation,
            status=status,
            **data
        )

    def log_metrics(self, metrics: Dict[str, Any]):
        """Log metrics data."""
        self.info("Metrics recorded", **metrics)

    @contextmanager
    def log_context(self, operation: str, **context):
        """Context manager for logging operation start/end."""
        start = time.perf_counter()
        self.log_operation(operation, "START", **context)

        try:
            yield
            duration = time.perf_counter() - start
            self.log_operation(operation, "SUCCESS", duration=round(duration, 6), **context)
        except Exception as e:
            duration = time.perf_counter() - start
            self.error(
                f"Operation failed: {operation}",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                duration=round(duration, 6),
                **context
            )
            raise


def get_logger(name: str = "pipeline") -> WitnessLogger:
    """Get a pipeline logger under the xml_witness namespace."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return WitnessLogger(name)


def configure_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Install console (and optional file) handlers on the xml_witness logger.

    Meant for entry points (CLI); libraries embedding xml_witness keep their
    own logging configuration.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)

    # Clear existing handlers
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    root.addHandler(console_handler)

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"xml_witness_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        root.addHandler(file_handler)

    return root
