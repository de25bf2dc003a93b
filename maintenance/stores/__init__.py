"""Remote store adapters package."""

from .base import RemoteStore
from .dynamodb_store import DynamoDBStore
from .pinecone_store import PineconeStore

__all__ = [
    "DynamoDBStore",
    "PineconeStore",
    "RemoteStore",
]
