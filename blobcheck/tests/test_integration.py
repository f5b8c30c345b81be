"""
Integration tests for blobcheck.

These tests run against a live CockroachDB cluster and S3-compatible
storage and require:
- BLOBCHECK_TEST_DB_URL: CockroachDB connection URL
- BLOBCHECK_TEST_ENDPOINT: S3 API endpoint (e.g., localhost:9000)
- BLOBCHECK_TEST_PATH: Bucket (and optional folder) to write into
- AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY: Storage credentials

Run with: pytest blobcheck/tests/test_integration.py -v -m "integration"
"""

import os
import uuid

import pytest

# Skip all tests in this module if the live environment is not configured
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.environ.get("BLOBCHECK_TEST_DB_URL")
        or not os.environ.get("AWS_ACCESS_KEY_ID")
        or not os.environ.get("AWS_SECRET_ACCESS_KEY"),
        reason=(
            "Integration tests require BLOBCHECK_TEST_DB_URL, AWS_ACCESS_KEY_ID "
            "and AWS_SECRET_ACCESS_KEY environment variables"
        ),
    ),
]


@pytest.fixture
def live_env(s3_test_config):
    from blobcheck.config import Env

    return Env(
        database_url=s3_test_config["database_url"],
        endpoint=s3_test_config["endpoint"],
        path=s3_test_config["path"],
        workers=2,
        workload_duration=1.0,
    )


@pytest.fixture
def conn(s3_test_config):
    import psycopg

    with psycopg.connect(s3_test_config["database_url"], autocommit=True) as conn:
        yield conn


class TestLiveDiscovery:
    """Integration tests for parameter discovery."""

    def test_discover(self, live_env):
        from blobcheck.discovery import discover

        storage = discover(live_env)

        assert storage.params["AWS_ENDPOINT"] == live_env.endpoint
        assert storage.display_params()["AWS_SECRET_ACCESS_KEY"] == "******"


class TestLiveFingerprint:
    """Integration tests for table fingerprints."""

    def test_fingerprint_ignores_insertion_order(self, conn):
        """Test two tables with the same rows inserted in different order match."""
        from blobcheck.db import PUBLIC, Database, KvTable

        database = Database(f"_blobcheck_fp_{uuid.uuid4().hex[:8]}")
        first = KvTable(database, PUBLIC, "first")
        second = KvTable(database, PUBLIC, "second")
        rows = [("a", "1"), ("b", "2"), ("c", "3")]

        database.create(conn)
        try:
            first.create(conn)
            second.create(conn)
            for key, value in rows:
                first.insert(conn, key, value)
            for key, value in reversed(rows):
                second.insert(conn, key, value)

            fp_first = first.fingerprint(conn).replace("first", "t")
            fp_second = second.fingerprint(conn).replace("second", "t")
            assert fp_first == fp_second
            assert first.count(conn) == 3
        finally:
            database.drop(conn)


class TestLiveValidation:
    """Integration tests for the full backup/restore cycle."""

    def test_validate(self, live_env):
        from blobcheck.discovery import discover
        from blobcheck.validator import Validator

        storage = discover(live_env)
        validator = Validator(live_env, storage)
        try:
            report = validator.validate()
        finally:
            validator.clean()
            validator.close()

        assert report is not None
        assert report.integrity_verified is True
        assert report.suggested_params["AWS_ENDPOINT"] == live_env.endpoint
