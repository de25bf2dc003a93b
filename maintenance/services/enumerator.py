"""Paginated enumeration of every record in a scope."""

import logging
import time
from collections.abc import Callable, Sequence

from maintenance.errors import ScopeUnavailable
from maintenance.models.records import EnumerationResult, Record, Scope
from maintenance.stores.base import RemoteStore

logger = logging.getLogger(__name__)


class PaginatedEnumerator:
    """Walk a RemoteStore until it stops returning a cursor.

    Records are accumulated into a mapping keyed by id, so ids seen again on
    a later page (or from a later probe query) are dropped silently and the
    first-seen order is preserved.

    When the store has no native listing, the scan is approximated with a
    set of broad similarity queries. That approximation can miss records;
    the result is flagged `approximate` and a warning is logged.
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        probe_queries: Sequence[str] = (),
        probe_top_k: int = 1000,
        page_delay_ms: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.probe_queries = list(probe_queries)
        self.probe_top_k = probe_top_k
        self.page_delay_ms = page_delay_ms
        self._sleep = sleep

    def enumerate(self, scope: Scope) -> EnumerationResult:
        """Return every record in the scope.

        Raises:
            ScopeUnavailable: If the scope is missing or any listing call fails.
        """
        if self.store.supports_listing:
            return self._enumerate_pages(scope)
        return self._enumerate_probes(scope)

    def _enumerate_pages(self, scope: Scope) -> EnumerationResult:
        seen: dict[str, Record] = {}
        cursor = None
        pages = 0

        while True:
            try:
                page = self.store.list(scope, cursor)
            except ScopeUnavailable:
                raise
            except Exception as e:
                raise ScopeUnavailable(scope.name, f"listing page {pages + 1} failed: {e}") from e

            pages += 1
            for record in page.items:
                seen.setdefault(record.id, record)
            logger.debug(
                "Page %d: %d records (total unique: %d)", pages, len(page.items), len(seen)
            )

            cursor = page.next_cursor
            if cursor is None:
                break
            if self.page_delay_ms:
                self._sleep(self.page_delay_ms / 1000)

        logger.info("Enumerated %d records from %s across %d pages", len(seen), scope.name, pages)
        return EnumerationResult(scope=scope, records=list(seen.values()), pages=pages)

    def _enumerate_probes(self, scope: Scope) -> EnumerationResult:
        if not self.probe_queries:
            raise ScopeUnavailable(
                scope.name, f"{self.store.name} cannot list records and no probe queries are configured"
            )

        logger.warning(
            "%s has no native listing; approximating a full scan of %s with %d probe queries. "
            "Records that no probe ranks in its top %d will be missed.",
            self.store.name,
            scope.name,
            len(self.probe_queries),
            self.probe_top_k,
        )

        seen: dict[str, Record] = {}
        failures = 0
        for query_text in self.probe_queries:
            try:
                hits = self.store.search(scope, query_text, self.probe_top_k)
            except Exception as e:
                failures += 1
                logger.warning("Probe query %r failed: %s", query_text, e)
                continue
            for record in hits:
                seen.setdefault(record.id, record)

        if failures == len(self.probe_queries):
            raise ScopeUnavailable(scope.name, "every probe query failed")

        logger.info(
            "Found %d unique records in %s (approximate)", len(seen), scope.name
        )
        return EnumerationResult(
            scope=scope,
            records=list(seen.values()),
            pages=len(self.probe_queries) - failures,
            approximate=True,
        )
