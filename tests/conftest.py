"""Pytest configuration and fixtures."""

import logging

import pytest

from maintenance.config import MaintenanceConfig
from tests.fakes import FakeStore


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep real credentials and table names in the shell out of the tests."""
    for name in [
        "PINECONE_API_KEY",
        "MAINT_PINECONE_API_KEY",
        "DYNAMODB_TABLE_NAME",
        "MAINT_DYNAMODB_TABLE_NAME",
        "MAINT_PINECONE_INDEX_NAME",
        "MAINT_AWS_REGION",
    ]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> MaintenanceConfig:
    """Config with both stores usable and no delays."""
    return MaintenanceConfig(
        pinecone_api_key="test-key",
        dynamodb_table_name="test-table",
        pinecone_inter_batch_delay_ms=0,
        dynamodb_inter_batch_delay_ms=0,
        pinecone_page_delay_ms=0,
    )


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sleeps() -> list[float]:
    """Recorded sleep durations; pass `sleeps.append` wherever a sleep is injected."""
    return []


def pytest_configure(config: pytest.Config) -> None:
    for name in ["botocore", "boto3", "urllib3", "pinecone"]:
        logging.getLogger(name).setLevel(logging.WARNING)
