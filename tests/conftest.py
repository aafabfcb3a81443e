"""Shared fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from s3adaptor import ObjectStore

from tests.fakes import InMemoryS3

BUCKET = "test-bucket"


@pytest.fixture
def fake_s3() -> InMemoryS3:
    """In-memory S3 with one empty bucket."""
    fake = InMemoryS3()
    fake.create_bucket(Bucket=BUCKET)
    fake.calls.clear()
    return fake


@pytest.fixture
def store(fake_s3: InMemoryS3) -> ObjectStore:
    return ObjectStore(fake_s3, error_namespace="test.s3")


@pytest.fixture
def mock_s3() -> MagicMock:
    """Mock boto3 S3 client for request-shape assertions."""
    client = MagicMock()
    client.meta.region_name = "us-east-1"
    return client


@pytest.fixture
def mock_store(mock_s3: MagicMock) -> ObjectStore:
    return ObjectStore(mock_s3, wait_for_bucket=False)
