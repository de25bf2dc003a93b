"""Category filters and the per-category inventory."""

from collections import Counter
from collections.abc import Collection, Iterable, Sequence
from datetime import datetime

from maintenance.enums import CategoryStatus
from maintenance.models.records import Record
from maintenance.models.reports import CategoryCount

SAMPLE_IDS_PER_CATEGORY = 10


def filter_records(
    records: Iterable[Record],
    include: Collection[str] = (),
    exclude: Collection[str] = (),
) -> list[Record]:
    """Keep records that survive the exclude list and, if given, match the include list.

    Exclusion is absolute: a category in both lists is excluded.
    """
    include = set(include)
    exclude = set(exclude)
    kept = []
    for record in records:
        if record.category in exclude:
            continue
        if include and record.category not in include:
            continue
        kept.append(record)
    return kept


def filter_by_window(records: Iterable[Record], since: datetime | None) -> list[Record]:
    """Keep records logged at or after `since`. Records with no timestamp are dropped."""
    if since is None:
        return list(records)
    return [
        r
        for r in records
        if r.ranking_metrics.logged_at is not None and r.ranking_metrics.logged_at >= since
    ]


def category_status(
    category: str, include: Collection[str] = (), exclude: Collection[str] = ()
) -> CategoryStatus:
    if category in exclude:
        return CategoryStatus.EXCLUDED
    if include:
        return CategoryStatus.INCLUDED if category in include else CategoryStatus.SKIPPED
    return CategoryStatus.TARGETED


def category_breakdown(
    records: Sequence[Record],
    include: Collection[str] = (),
    exclude: Collection[str] = (),
) -> list[CategoryCount]:
    """Count records per category, most common first."""
    counts = Counter(r.category for r in records)
    samples: dict[str, list[str]] = {}
    for record in records:
        bucket = samples.setdefault(record.category, [])
        if len(bucket) < SAMPLE_IDS_PER_CATEGORY:
            bucket.append(record.id)

    total = len(records)
    return [
        CategoryCount(
            category=category,
            count=count,
            percentage=round(count / total * 100, 1),
            sample_ids=samples[category],
            status=category_status(category, include, exclude),
        )
        for category, count in counts.most_common()
    ]
