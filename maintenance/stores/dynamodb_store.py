"""DynamoDB single-table adapter.

The scope is a user id; its records live under the partition key rendered
from `dynamodb_partition_template` (``user#<id>`` by default). Record ids
are sort keys, and the category is the item's `entityType`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from maintenance.errors import BatchMutationFailure, ScopeUnavailable
from maintenance.models.records import ListPage, Record, RecordError, Scope
from maintenance.stores.base import RemoteStore
from maintenance.stores.mapping import MISSING_ENTITY_TYPE, record_from_fields

if TYPE_CHECKING:
    from maintenance.config import MaintenanceConfig

logger = logging.getLogger(__name__)

PARTITION_KEY = "pk"
SORT_KEY = "sk"
# BatchGetItem accepts at most 100 keys per request.
_BATCH_GET_LIMIT = 100


class DynamoDBStore(RemoteStore):
    """RemoteStore over one DynamoDB table with pk/sk keys."""

    name = "dynamodb"

    def __init__(
        self,
        config: "MaintenanceConfig",
        *,
        table_name: str | None = None,
        resource: Any = None,
    ) -> None:
        self.config = config
        self.table_name = table_name or config.dynamodb_table_name
        self._resource = resource
        self._table = None

    def _get_resource(self):
        if self._resource is None:
            logger.debug("Creating DynamoDB resource for region=%s", self.config.aws_region)
            session = boto3.Session(
                profile_name=self.config.aws_profile,
                region_name=self.config.aws_region,
            )
            self._resource = session.resource("dynamodb")
        return self._resource

    def _get_table(self):
        if self._table is None:
            self._table = self._get_resource().Table(self.table_name)
        return self._table

    def partition_key(self, scope: Scope) -> str:
        return self.config.dynamodb_partition_template.format(scope=scope.name)

    def _to_record(self, item: dict[str, Any]) -> Record:
        return record_from_fields(
            item.get(SORT_KEY, ""),
            item,
            payload=item,
            missing_category=MISSING_ENTITY_TYPE,
        )

    def list(self, scope: Scope, cursor: Any = None) -> ListPage:
        params: dict[str, Any] = {
            "KeyConditionExpression": Key(PARTITION_KEY).eq(self.partition_key(scope)),
        }
        if cursor is not None:
            params["ExclusiveStartKey"] = cursor

        try:
            response = self._get_table().query(**params)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == "ResourceNotFoundException":
                raise ScopeUnavailable(scope.name, f"table {self.table_name} does not exist") from e
            raise

        items = [self._to_record(item) for item in response.get("Items", [])]
        return ListPage(items=items, next_cursor=response.get("LastEvaluatedKey"))

    def fetch(self, scope: Scope, ids: Sequence[str]) -> dict[str, Record]:
        pk = self.partition_key(scope)
        resource = self._get_resource()
        records: dict[str, Record] = {}
        for start in range(0, len(ids), _BATCH_GET_LIMIT):
            keys = [{PARTITION_KEY: pk, SORT_KEY: sk} for sk in ids[start : start + _BATCH_GET_LIMIT]]
            request = {self.table_name: {"Keys": keys}}
            while request:
                response = resource.batch_get_item(RequestItems=request)
                for item in response.get("Responses", {}).get(self.table_name, []):
                    record = self._to_record(item)
                    records[record.id] = record
                request = response.get("UnprocessedKeys") or None
        return records

    def delete_many(self, scope: Scope, ids: Sequence[str]) -> list[RecordError]:
        # Item-by-item so a missing or throttled item is attributed to its own id.
        pk = self.partition_key(scope)
        table = self._get_table()
        errors: list[RecordError] = []
        for sk in ids:
            try:
                table.delete_item(
                    Key={PARTITION_KEY: pk, SORT_KEY: sk},
                    ConditionExpression="attribute_exists(pk)",
                )
            except ClientError as e:
                message = e.response.get("Error", {}).get("Message") or str(e)
                logger.debug("Failed to delete %s/%s: %s", pk, sk, message)
                errors.append(RecordError(id=sk, message=message))

        if errors and len(errors) == len(ids):
            raise BatchMutationFailure(
                list(ids), f"all {len(ids)} deletes failed; first error: {errors[0].message}"
            )
        return errors

    def upsert_many(self, scope: Scope, records: Sequence[Record]) -> list[RecordError]:
        pk = self.partition_key(scope)
        with self._get_table().batch_writer() as batch:
            for record in records:
                item = dict(record.payload or {})
                item[PARTITION_KEY] = pk
                item.setdefault(SORT_KEY, record.id)
                batch.put_item(Item=item)
        return []
