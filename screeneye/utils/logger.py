"""
Logging utilities for the ScreenEye attention monitor.
"""

import logging
import sys
import time
import traceback
from datetime import datetime
from typing import Optional
from pathlib import Path

from .config import config


# One log file per process run, shared by every module logger
_session_log_file: Optional[Path] = None


def _default_log_file() -> Path:
    """Return the timestamped log file for this run, creating the log directory."""
    global _session_log_file
    if _session_log_file is None:
        logs_dir = Path(config.logging.log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        _session_log_file = logs_dir / f"screeneye_{timestamp}.log"
    return _session_log_file


class ScreenEyeLogger:
    """Custom logger for the ScreenEye attention monitor."""

    def __init__(self, name: str = "screeneye", log_file: Optional[str] = None):
        """Initialize the logger."""
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        # Module loggers are children of "screeneye"; each owns its handlers
        self.logger.propagate = False

        # Prevent duplicate handlers
        if self.logger.handlers:
            return

        # Create formatters
        detailed_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        simple_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )

        # Console handler - errors only unless configured otherwise
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, config.logging.console_level.upper(), logging.ERROR))
        console_handler.setFormatter(simple_formatter)
        self.logger.addHandler(console_handler)

        # File handler (if logging is enabled)
        if config.logging.enable_file_logging:
            target = log_file if log_file is not None else _default_log_file()
            file_handler = logging.FileHandler(target)
            file_handler.setLevel(getattr(logging, config.logging.file_level.upper(), logging.DEBUG))
            file_handler.setFormatter(detailed_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str) -> None:
        """Log debug message."""
        self.logger.debug(message)

    def info(self, message: str) -> None:
        """Log info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log error message."""
        self.logger.error(message)

    def critical(self, message: str) -> None:
        """Log critical message."""
        self.logger.critical(message)

    def log_engine_event(self, event) -> None:
        """Log an attention engine event."""
        message = f"Event - {event.kind.value}"
        if event.message:
            message += f" ({event.message})"
        if event.duration_ms is not None:
            message += f", Duration: {event.duration_ms}ms"
        self.info(message)

    def log_frame_drop(self, dropped_total: int) -> None:
        """Log a frame dropped by the in-flight gate."""
        self.debug(f"Frame dropped while previous frame in flight (total dropped: {dropped_total})")

    def log_error_with_context(self, error: Exception, context: str) -> None:
        """Log error with additional context."""
        self.error(f"Error in {context}: {str(error)}")
        if error.__traceback__ is not None:
            self.debug(f"Traceback: {''.join(traceback.format_exception(type(error), error, error.__traceback__))}")

    def log_system_info(self) -> None:
        """Log system information."""
        import cv2
        import numpy as np

        self.info("=== System Information ===")
        self.info(f"Python Version: {sys.version}")
        self.info(f"OpenCV Version: {cv2.__version__}")
        self.info(f"NumPy Version: {np.__version__}")
        try:
            import mediapipe as mp
            self.info(f"MediaPipe Version: {mp.__version__}")
        except ImportError as e:
            self.warning(f"MediaPipe not importable: {e}")

        # Log configuration
        self.info("=== Configuration ===")
        self.info(f"Camera: {config.camera.width}x{config.camera.height} @ {config.camera.fps}fps")
        self.info(f"Calibration: {config.calibration.duration_ms}ms, "
                  f"{config.calibration.min_samples} samples")
        self.info(f"Alerts: soft after {config.alert.soft_after_ms}ms, "
                  f"strong after {config.alert.strong_after_ms}ms")
        self.info(f"Shift Duration: {config.shift.duration_ms}ms")
        self.info(f"Event Log: {config.storage.database_path}")


# Global logger instance
logger = ScreenEyeLogger()


def get_logger(name: str = "screeneye") -> ScreenEyeLogger:
    """Get a logger instance."""
    return ScreenEyeLogger(name)


def set_console_level(level: int) -> None:
    """Apply a console level to every screeneye logger created so far."""
    for name, instance in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(instance, logging.Logger):
            continue
        if name == "screeneye" or name.startswith("screeneye."):
            for handler in instance.handlers:
                if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                    handler.setLevel(level)


def log_function_call(func):
    """Decorator to log function calls."""
    def wrapper(*args, **kwargs):
        logger.debug(f"Calling {func.__name__}")
        try:
            result = func(*args, **kwargs)
            logger.debug(f"Completed {func.__name__}")
            return result
        except Exception as e:
            logger.log_error_with_context(e, func.__name__)
            raise
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


def log_performance_metrics(func):
    """Decorator to log how long a call took."""
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            processing_time = (time.time() - start_time) * 1000  # Convert to milliseconds
            logger.debug(f"{func.__name__} took {processing_time:.2f}ms")
            return result
        except Exception as e:
            logger.log_error_with_context(e, func.__name__)
            raise
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper
