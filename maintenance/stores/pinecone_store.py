"""Pinecone vector store adapter.

Namespaces are the scope. `list` pages through vector ids with
`list_paginated` and hydrates each page with `fetch`, because the listing
call returns ids only and the core needs metadata to group and filter.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from pinecone import Pinecone
from pinecone.exceptions import NotFoundException

from maintenance.errors import ScopeUnavailable
from maintenance.models.records import ListPage, Record, RecordError, Scope
from maintenance.stores.base import RemoteStore
from maintenance.stores.mapping import MISSING_RECORD_TYPE, record_from_fields

if TYPE_CHECKING:
    from maintenance.config import MaintenanceConfig

logger = logging.getLogger(__name__)


def _vector_payload(vector: Any) -> dict[str, Any]:
    """Convert a fetched vector into the dict shape `upsert` accepts."""
    payload: dict[str, Any] = {"id": vector.id, "values": list(vector.values or [])}
    if vector.metadata:
        payload["metadata"] = dict(vector.metadata)
    sparse = getattr(vector, "sparse_values", None)
    if sparse:
        payload["sparse_values"] = {
            "indices": list(sparse.indices),
            "values": list(sparse.values),
        }
    return payload


def _hit_fields(hit: Any) -> tuple[str, dict[str, Any]]:
    if isinstance(hit, Mapping):
        data = hit
    elif hasattr(hit, "to_dict"):
        data = hit.to_dict()
    else:
        data = {"_id": hit["_id"], "fields": hit["fields"]}
    return str(data["_id"]), dict(data.get("fields") or {})


def _namespace_count(summary: Any) -> int:
    """Record count from a `describe_index_stats` namespace summary."""
    if isinstance(summary, Mapping):
        value = summary.get("vector_count", summary.get("record_count"))
    else:
        value = getattr(summary, "vector_count", None)
        if value is None:
            value = getattr(summary, "record_count", None)
    return int(value or 0)


class PineconeStore(RemoteStore):
    """RemoteStore over one Pinecone index."""

    name = "pinecone"

    def __init__(
        self,
        config: "MaintenanceConfig",
        *,
        client: Pinecone | None = None,
    ) -> None:
        self.config = config
        self.supports_listing = config.pinecone_supports_listing
        self._page_size = config.pinecone_page_size
        self._client = client
        self._index = None

    def _get_index(self):
        """Get or create the index handle."""
        if self._index is None:
            if self._client is None:
                logger.debug("Creating Pinecone client")
                self._client = Pinecone(api_key=self.config.pinecone_api_key)
            self._index = self._client.Index(self.config.pinecone_index_name)
        return self._index

    def list(self, scope: Scope, cursor: Any = None) -> ListPage:
        params: dict[str, Any] = {"namespace": scope.name, "limit": self._page_size}
        if cursor is not None:
            params["pagination_token"] = cursor

        try:
            response = self._get_index().list_paginated(**params)
        except NotFoundException as e:
            raise ScopeUnavailable(scope.name, f"index {self.config.pinecone_index_name} not found") from e

        ids = [v.id for v in (response.vectors or [])]
        pagination = getattr(response, "pagination", None)
        # An absent or empty token marks the last page.
        next_cursor = (pagination.next or None) if pagination else None

        hydrated = self.fetch(scope, ids) if ids else {}
        missing = len(ids) - len(hydrated)
        if missing:
            logger.warning("%d listed ids vanished before fetch in namespace %s", missing, scope.name)
        return ListPage(items=[hydrated[i] for i in ids if i in hydrated], next_cursor=next_cursor)

    def fetch(self, scope: Scope, ids: Sequence[str]) -> dict[str, Record]:
        if not ids:
            return {}
        response = self._get_index().fetch(ids=list(ids), namespace=scope.name)
        records: dict[str, Record] = {}
        for vector_id, vector in (response.vectors or {}).items():
            records[vector_id] = record_from_fields(
                vector_id,
                vector.metadata,
                payload=_vector_payload(vector),
                missing_category=MISSING_RECORD_TYPE,
            )
        return records

    def delete_many(self, scope: Scope, ids: Sequence[str]) -> list[RecordError]:
        # Pinecone deletes by id list atomically per call; there is no per-id report.
        self._get_index().delete(ids=list(ids), namespace=scope.name)
        return []

    def upsert_many(self, scope: Scope, records: Sequence[Record]) -> list[RecordError]:
        vectors = [r.payload for r in records]
        response = self._get_index().upsert(vectors=vectors, namespace=scope.name)
        upserted = getattr(response, "upserted_count", None)
        if upserted is not None and upserted < len(vectors):
            logger.warning(
                "Upsert into %s acknowledged %d of %d vectors",
                scope.name,
                upserted,
                len(vectors),
            )
        return []

    def search(self, scope: Scope, query_text: str, top_k: int) -> list[Record]:
        response = self._get_index().search_records(
            namespace=scope.name,
            query={"inputs": {"text": query_text}, "top_k": top_k},
        )
        result = getattr(response, "result", None)
        records = []
        for hit in getattr(result, "hits", None) or []:
            record_id, fields = _hit_fields(hit)
            records.append(
                record_from_fields(
                    record_id, fields, payload=fields, missing_category=MISSING_RECORD_TYPE
                )
            )
        return records

    def list_scopes(self) -> dict[str, int]:
        try:
            stats = self._get_index().describe_index_stats()
        except NotFoundException as e:
            index_name = self.config.pinecone_index_name
            raise ScopeUnavailable(index_name, f"index {index_name} not found") from e
        namespaces = getattr(stats, "namespaces", None) or {}
        return {name: _namespace_count(summary) for name, summary in namespaces.items()}

    def purge_scope(self, scope: Scope) -> None:
        self._get_index().delete(delete_all=True, namespace=scope.name)
