"""Failure log file for mutation errors that must outlive the console.

Bulk deletes can fail for a handful of ids out of thousands. The console
only shows the first few, so every per-record failure is also written to a
rotating file that can be grepped after the run.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from maintenance.observability.redaction import RedactSecretsFilter

if TYPE_CHECKING:
    from maintenance.config import MaintenanceConfig
    from maintenance.models.records import RecordError


FAILURE_LOGGER_NAME = "maintenance.failures"

_error_file_handler: RotatingFileHandler | None = None


def setup_error_log_file(config: "MaintenanceConfig") -> RotatingFileHandler | None:
    """Attach a rotating failure log handler to the root logger.

    Args:
        config: Configuration with the error log settings.

    Returns:
        The configured RotatingFileHandler, or None if disabled or unwritable.
    """
    global _error_file_handler

    if not config.error_log_file_enabled:
        return None

    log_level_str = config.error_log_level.upper()
    log_level = getattr(logging, log_level_str, logging.WARNING)

    log_file = Path(config.error_log_file_path).expanduser()
    if not log_file.is_absolute():
        from maintenance.config import _find_repo_root

        log_file = _find_repo_root(start=Path(__file__)) / log_file
    log_file = log_file.resolve()

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Warning: Cannot create error log directory {log_file.parent}: {e}", file=sys.stderr)
        return None

    try:
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=config.error_log_max_bytes,
            backupCount=config.error_log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"Warning: Cannot create error log file {log_file}: {e}", file=sys.stderr)
        return None

    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(RedactSecretsFilter())

    root_logger = logging.getLogger()
    if _error_file_handler is not None:
        root_logger.removeHandler(_error_file_handler)
        _error_file_handler.close()
    root_logger.addHandler(handler)
    _error_file_handler = handler

    logging.getLogger(__name__).info(
        "Error log file handler initialized: %s (level=%s)", log_file, log_level_str
    )
    return handler


def get_error_log_handler() -> RotatingFileHandler | None:
    return _error_file_handler


def log_mutation_failure(scope: str, error: "RecordError", *, operation: str | None = None) -> None:
    """Record one per-id mutation failure.

    Args:
        scope: Name of the scope the mutation targeted.
        error: The failed id and its message.
        operation: Optional mutation kind for context.
    """
    logger = logging.getLogger(FAILURE_LOGGER_NAME)

    context_parts = [f"scope={scope}", f"id={error.id}"]
    if operation:
        context_parts.append(f"operation={operation}")
    logger.error("[%s] %s", " ".join(context_parts), error.message)
