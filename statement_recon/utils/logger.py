"""Logging configuration and utilities for the statement pipeline."""

import logging
import os
import threading
from typing import Optional

from statement_recon.config.settings import LOG_FORMAT, LOG_LEVEL, LOGS_DIR

BATCH_LOGGER_NAME = "statement_recon.batch"

_batch_lock = threading.Lock()


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = LOG_LEVEL,
    logs_dir: Optional[str] = LOGS_DIR,
) -> logging.Logger:
    """Set up a logger with console and file handlers.

    Args:
        name: Logger name.
        log_file: Optional log file name. If None, uses logger name.
        level: Logging level.
        logs_dir: Directory for the file handler. None disables file output.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if logs_dir is not None:
        if log_file is None:
            log_file = f"{name}.log"

        os.makedirs(logs_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(logs_dir, log_file))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


def mask_credential(credential: str) -> str:
    """Render a credential for log output, keeping only its last four characters."""
    if not credential:
        return "<empty>"
    return f"...{credential[-4:]}"


class _BatchFilter(logging.Filter):
    """Pass only records tagged with one batch id."""

    def __init__(self, batch_id: str) -> None:
        super().__init__()
        self.batch_id = batch_id

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "batch_id", None) == self.batch_id


def get_batch_logger(level: str = LOG_LEVEL) -> logging.Logger:
    """Get the shared batch logger, adding its console handler on first use."""
    with _batch_lock:
        logger = logging.getLogger(BATCH_LOGGER_NAME)
        if not logger.handlers:
            setup_logger(BATCH_LOGGER_NAME, level=level, logs_dir=None)
        else:
            logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        return logger


class BatchLogger:
    """Run-level logger for one batch of statements.

    All batches write through one shared logger; each record carries its
    ``batch_id`` and each batch with a log directory gets its own file.
    """

    def __init__(
        self,
        batch_id: str,
        level: str = LOG_LEVEL,
        logs_dir: Optional[str] = LOGS_DIR,
    ) -> None:
        """Initialize batch logger.

        Args:
            batch_id: Unique identifier for the batch run.
            level: Logging level.
            logs_dir: Directory for the batch log file, or None for console only.
        """
        self.batch_id = batch_id
        base = get_batch_logger(level)
        self.logger = logging.LoggerAdapter(base, {"batch_id": batch_id})
        self.file_handler: Optional[logging.FileHandler] = None

        if logs_dir is not None:
            os.makedirs(logs_dir, exist_ok=True)
            self.file_handler = logging.FileHandler(os.path.join(logs_dir, f"batch.{batch_id}.log"))
            self.file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.file_handler.addFilter(_BatchFilter(batch_id))
            base.addHandler(self.file_handler)

    def log_start(self, document_count: int) -> None:
        self.logger.info(f"Started batch {self.batch_id} with {document_count} documents")

    def log_progress(self, message: str) -> None:
        self.logger.info(f"Batch {self.batch_id}: {message}")

    def log_error(self, error: Exception, context: str = "") -> None:
        error_msg = f"Batch {self.batch_id}: Error in {context}: {str(error)}"
        self.logger.error(error_msg, exc_info=True)

    def log_completion(self, succeeded: int, total: int) -> None:
        self.logger.info(
            f"Batch {self.batch_id}: Completed. {succeeded}/{total} documents extracted"
        )

    def close(self) -> None:
        """Detach and close this batch's file handler."""
        if self.file_handler is None:
            return
        self.logger.logger.removeHandler(self.file_handler)
        self.file_handler.close()
        self.file_handler = None
