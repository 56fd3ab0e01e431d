"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

ROOT_LOGGER_NAME = 'wikisync'
REDACTED = '***REDACTED***'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string, wins over verbosity

    Returns:
        Configured ``wikisync`` logger

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    elif verbosity >= 2:
        log_level = logging.DEBUG
    elif verbosity >= 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")

    logger.debug(f"Log level: {logging.getLevelName(log_level)}")
    return logger


class ProgressTracker:
    """Context manager counting processed items and logging a summary on exit."""

    def __init__(self, total_items: int, item_type: str = "items", logger: Optional[logging.Logger] = None):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process
            item_type: Description of item type (e.g., "documents", "entries")
            logger: Logger to report to
        """
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logger or logging.getLogger(ROOT_LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Starting processing of {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time

        if self.failed_items > 0 and self.failed_items == self.total_items:
            log_method = self.logger.error
        elif self.failed_items > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(
            f"{self.item_type.capitalize()}: {self.successful_items}/{self.total_items} succeeded, "
            f"{self.failed_items} failed in {self.format_elapsed(elapsed)}"
        )

    def increment(self, success: bool = True) -> None:
        """
        Increment progress counter.

        Args:
            success: Whether the item was processed successfully
        """
        self.processed_items += 1
        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        if self.processed_items % 10 == 0:
            self.logger.debug(f"Processed {self.processed_items}/{self.total_items} {self.item_type}")

    def get_stats(self) -> Dict[str, Any]:
        """Get current progress statistics."""
        elapsed = 0.0 if self.start_time is None else time.time() - self.start_time
        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'successful': self.successful_items,
            'failed': self.failed_items,
            'elapsed_time': elapsed
        }

    @staticmethod
    def format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60
        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    separator = "=" * 60
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    sanitized = sanitize_config(config)

    log_section("Configuration")

    github = sanitized.get('github', {}) or {}
    logger.info(f"Repository: {github.get('owner', 'Not Set')}/{github.get('repo', 'Not Set')}")
    logger.info(f"Ref: {github.get('ref') or 'default branch'}")
    logger.info(f"API URL: {github.get('api_url', 'https://api.github.com')}")
    logger.info(f"Token: {github.get('token') or 'Not Set'}")

    sync = sanitized.get('sync', {}) or {}
    logger.info(f"Cache Path: {sync.get('cache_path', 'default')}")
    logger.info(f"Attachments Directory: {sync.get('attachments_dir', 'default')}")
    logger.info(f"Continue On Error: {sync.get('continue_on_error', False)}")
    for mapping in sync.get('mappings', []) or []:
        if isinstance(mapping, dict):
            logger.info(f"Mapping: {mapping.get('source')} -> {mapping.get('target')}")


def sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sensitive_fields = {'token', 'password', 'secret', 'api_key', 'auth_header'}

    def mask_sensitive(data: Any) -> Any:
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in str(key).lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str) and value:
                    masked[key] = REDACTED
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        return data

    return mask_sensitive(copy.deepcopy(config))


__all__ = [
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',
    'sanitize_config'
]
