"""Redaction helpers to keep credentials out of console and file logs.

SDK exceptions sometimes echo request headers or connection strings. The
filter below rewrites log records before any handler formats them.
"""

from __future__ import annotations

import logging
import re

_REPLACEMENT = "[REDACTED]"
_TRUNC_SUFFIX = "…(truncated)"

_SENSITIVE_VALUE_RES: list[re.Pattern[str]] = [
    # Pinecone API keys
    re.compile(r"\bpcsk_[A-Za-z0-9_]{20,}\b"),
    # AWS access key id
    re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b"),
    # Bearer tokens in headers
    re.compile(r"\bBearer\s+[A-Za-z0-9._\-]+\b", flags=re.IGNORECASE),
    # Generic 'key=value' patterns
    re.compile(r"\b(?:api[_-]?key|apikey)\s*[:=]\s*\S+", flags=re.IGNORECASE),
    re.compile(r"\b(?:aws_secret_access_key|aws_session_token)\s*[:=]\s*\S+", flags=re.IGNORECASE),
    re.compile(r"\b(?:password|secret|token)\s*[:=]\s*\S+", flags=re.IGNORECASE),
]


def redact_text(text: str, *, max_chars: int = 4000) -> str:
    """Redact sensitive substrings in a text blob and truncate."""
    if text is None:
        return text

    out = text
    for rx in _SENSITIVE_VALUE_RES:
        out = rx.sub(_REPLACEMENT, out)

    if max_chars and len(out) > max_chars:
        out = out[:max_chars] + _TRUNC_SUFFIX

    return out


class RedactSecretsFilter(logging.Filter):
    """Rewrite a record's rendered message with secrets redacted."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Malformed %-args; let the handler report it as usual.
            return True

        redacted = redact_text(message, max_chars=0)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True
