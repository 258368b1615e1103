"""Structured logging setup for the claims intake pipeline."""

import contextvars
import logging
from typing import Optional, Dict, Any
from pathlib import Path


# Per-task context so concurrent orchestration runs keep their own processing_id
_log_context: contextvars.ContextVar = contextvars.ContextVar("claims_log_context", default={})


class ContextFilter(logging.Filter):
    """Add context information to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to log record."""
        context = _log_context.get()
        record.processing_id = context.get("processing_id", "-")
        for key, value in context.items():
            setattr(record, key, value)
        return True


# Global context filter instance
_context_filter = ContextFilter()


# Third-party loggers that are chatty at INFO (botocore request dumps, pdfminer layout)
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "pdfminer", "PIL")


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(_context_filter)
    root.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - [%(processing_id)s] %(message)s",
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root logger for a claims intake process.

    Installs a console handler and, when ``log_file`` is set, a file handler.
    Both carry the context filter, so ``%(processing_id)s`` is always
    available to the format string ("-" outside a processing run).
    Libraries listed in QUIET_LOGGERS are held at WARNING.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string for log messages
        log_file: Optional path to log file; parent directories are created

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    _attach(root_logger, logging.StreamHandler(), numeric_level, formatter)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _attach(root_logger, logging.FileHandler(log_file, encoding="utf-8"), numeric_level, formatter)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return root_logger


def set_context(**kwargs) -> contextvars.Token:
    """
    Set context fields for all subsequent log messages in the current task.

    Example:
        token = set_context(processing_id="claim_1700000000_ab12cd34e")
        logger.info("Extracting claim information")
        reset_context(token)

    Args:
        **kwargs: Context key-value pairs

    Returns:
        Token that restores the previous context when passed to reset_context
    """
    context: Dict[str, Any] = dict(_log_context.get())
    context.update(kwargs)
    return _log_context.set(context)


def reset_context(token: contextvars.Token) -> None:
    """Restore the context that was active before set_context."""
    _log_context.reset(token)


def get_context() -> Dict[str, Any]:
    return dict(_log_context.get())
