"""Group records by logical identity and pick the one to keep."""

from collections.abc import Iterable

from maintenance.models.records import DuplicateGroup, Record


def ranking_key(record: Record) -> tuple[int, int, float]:
    """Sort key: usage count desc, then logged_at desc with missing timestamps last.

    Used with a stable sort, so full ties keep enumeration order.
    """
    metrics = record.ranking_metrics
    if metrics.logged_at is None:
        return (-metrics.usage_count, 1, 0.0)
    return (-metrics.usage_count, 0, -metrics.logged_at.timestamp())


def resolve_duplicates(records: Iterable[Record]) -> list[DuplicateGroup]:
    """Return one DuplicateGroup per group key that has more than one record.

    Records without a group key are never grouped, so never deleted here.
    Groups come back in the order their key was first enumerated.
    """
    groups: dict[str, list[Record]] = {}
    for record in records:
        if not record.group_key:
            continue
        groups.setdefault(record.group_key, []).append(record)

    return [
        DuplicateGroup(group_key=key, members=sorted(members, key=ranking_key))
        for key, members in groups.items()
        if len(members) > 1
    ]


def ids_to_delete(groups: Iterable[DuplicateGroup]) -> list[str]:
    """Flatten the deletions of every group, preserving group order."""
    ids: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for record in group.to_delete:
            if record.id not in seen:
                seen.add(record.id)
                ids.append(record.id)
    return ids
