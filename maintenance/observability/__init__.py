"""Observability utilities (failure log file, redaction)."""

from maintenance.observability.error_log_file import (
    log_mutation_failure,
    setup_error_log_file,
)
from maintenance.observability.redaction import RedactSecretsFilter, redact_text

__all__ = [
    "RedactSecretsFilter",
    "log_mutation_failure",
    "redact_text",
    "setup_error_log_file",
]
