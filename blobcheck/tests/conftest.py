"""
Pytest fixtures for blobcheck tests.
"""

import os
from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest

from blobcheck.config import Env
from blobcheck.params import Params
from blobcheck.storage import S3Storage


def make_lookup_env(values):
    """Build an Env.lookup_env callable backed by a dict."""

    def lookup(key):
        if key in values:
            return values[key], True
        return "", False

    return lookup


@pytest.fixture
def lookup_factory():
    """Factory for dict-backed lookup functions."""
    return make_lookup_env


@pytest.fixture
def credentials():
    """Credentials visible to the lookup function."""
    return {
        "AWS_ACCESS_KEY_ID": "test-key",
        "AWS_SECRET_ACCESS_KEY": "test-secret",
    }


@pytest.fixture
def env(credentials):
    """Endpoint-and-path configuration with injected credentials."""
    return Env(
        endpoint="localhost:9000",
        path="test-bucket/backups",
        lookup_env=make_lookup_env(credentials),
    )


@pytest.fixture
def storage():
    """A destination with fixed, fully set parameters."""
    params = Params(
        {
            "AWS_ACCESS_KEY_ID": "test-key",
            "AWS_SECRET_ACCESS_KEY": "test-secret",
            "AWS_ENDPOINT": "localhost:9000",
            "AWS_REGION": "aws-global",
        }
    )
    return S3Storage("test-bucket/backups/run1", params)


@pytest.fixture
def mock_conn():
    """A psycopg connection double; execute() returns a cursor double."""
    conn = MagicMock()
    conn.execute.return_value.fetchall.return_value = []
    conn.execute.return_value.fetchone.return_value = None
    return conn


@pytest.fixture
def mock_pool(mock_conn):
    """A connection pool double handing out mock_conn."""
    pool = MagicMock()

    @contextmanager
    def connection():
        yield mock_conn

    pool.connection.side_effect = connection
    return pool


@pytest.fixture
def s3_test_config():
    """Configuration for live storage tests."""
    return {
        "endpoint": os.environ.get("BLOBCHECK_TEST_ENDPOINT", "localhost:9000"),
        "path": os.environ.get("BLOBCHECK_TEST_PATH", "test-bucket"),
        "database_url": os.environ.get(
            "BLOBCHECK_TEST_DB_URL", "postgresql://root@localhost:26257?sslmode=disable"
        ),
    }
