"""Abstract remote store consumed by the reconciliation core."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from maintenance.models.records import ListPage, Record, RecordError, Scope


class RemoteStore(ABC):
    """Paginated key/record store.

    Implementations wrap one SDK client each. Cursors are opaque: whatever
    `list` returns as `next_cursor` is passed back unmodified.

    Stores with no native "list all" operation set `supports_listing` to
    False and implement `search`; the enumerator then approximates a full
    scan with several broad queries.
    """

    name: str = "store"
    supports_listing: bool = True

    @abstractmethod
    def list(self, scope: Scope, cursor: Any = None) -> ListPage:
        """Return one page of records for the scope."""

    @abstractmethod
    def fetch(self, scope: Scope, ids: Sequence[str]) -> dict[str, Record]:
        """Return full records keyed by id. Unknown ids are omitted."""

    @abstractmethod
    def delete_many(self, scope: Scope, ids: Sequence[str]) -> list[RecordError]:
        """Delete records by id.

        Raises on total failure. Returns per-id failures when the store can
        report them (best-effort); an empty list means every id was applied.
        """

    @abstractmethod
    def upsert_many(self, scope: Scope, records: Sequence[Record]) -> list[RecordError]:
        """Write full records into the scope. Raises on total failure."""

    def search(self, scope: Scope, query_text: str, top_k: int) -> list[Record]:
        """Similarity search, used only when `supports_listing` is False."""
        raise NotImplementedError(f"{self.name} does not support search")

    def list_scopes(self) -> dict[str, int]:
        """Record count per scope, for stores that can enumerate their scopes."""
        raise NotImplementedError(f"{self.name} cannot list its scopes")

    def purge_scope(self, scope: Scope) -> None:
        """Drop every record in the scope with a single call. Raises on failure."""
        raise NotImplementedError(f"{self.name} cannot purge a whole scope")
