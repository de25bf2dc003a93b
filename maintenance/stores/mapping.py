"""Translate raw store fields into `Record` values.

Records written by older releases use snake_case field names and newer ones
use camelCase, so every lookup accepts both spellings.
"""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from maintenance.models.records import RankingMetrics, Record

logger = logging.getLogger(__name__)

MISSING_RECORD_TYPE = "MISSING_RECORD_TYPE"
MISSING_ENTITY_TYPE = "MISSING_ENTITY_TYPE"

GROUP_KEY_FIELDS = ("memoryId", "memory_id")
USAGE_FIELDS = ("usageCount", "usage_count")
TIMESTAMP_FIELDS = ("loggedAt", "logged_at", "createdAt", "created_at")
CATEGORY_FIELDS = ("recordType", "record_type", "entityType", "entity_type")

# Epoch values above this are milliseconds.
_EPOCH_MS_THRESHOLD = 10**11


def first_present(fields: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    """Return the first non-empty value among `names`, or None."""
    for name in names:
        value = fields.get(name)
        if value not in (None, ""):
            return value
    return None


def parse_usage_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(Decimal(str(value)))
    except (ArithmeticError, ValueError):
        logger.debug("Ignoring unparseable usage count %r", value)
        return 0
    return max(count, 0)


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float, Decimal)):
        seconds = float(value)
        if seconds > _EPOCH_MS_THRESHOLD:
            seconds /= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.debug("Ignoring out-of-range timestamp %r", value)
            return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def record_from_fields(
    record_id: str,
    fields: Mapping[str, Any] | None,
    *,
    payload: Any = None,
    missing_category: str = MISSING_RECORD_TYPE,
) -> Record:
    """Build a Record from a store's field mapping."""
    fields = fields or {}
    group_key = first_present(fields, GROUP_KEY_FIELDS)
    category = first_present(fields, CATEGORY_FIELDS)
    return Record(
        id=str(record_id),
        group_key=str(group_key) if group_key is not None else None,
        ranking_metrics=RankingMetrics(
            usage_count=parse_usage_count(first_present(fields, USAGE_FIELDS)),
            logged_at=parse_timestamp(first_present(fields, TIMESTAMP_FIELDS)),
        ),
        category=str(category) if category is not None else missing_category,
        payload=payload,
    )
