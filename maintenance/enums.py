"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class ConfirmationMode(StrEnum):
    """How a planned mutation is confirmed before it runs."""

    DRY_RUN = "dry_run"
    AUTO_CONFIRM = "auto_confirm"
    INTERACTIVE = "interactive"


class MutationKind(StrEnum):
    """Bulk operation applied by the batch mutator.

    PURGE targets whole scopes: its target ids are scope names.
    """

    DELETE = "delete"
    UPSERT = "upsert"
    PURGE = "purge"


class StoreKind(StrEnum):
    """Supported remote stores."""

    PINECONE = "pinecone"
    DYNAMODB = "dynamodb"


class CategoryStatus(StrEnum):
    """How a category is treated by the include/exclude filters."""

    EXCLUDED = "excluded"
    INCLUDED = "included"
    SKIPPED = "skipped"
    TARGETED = "targeted"
