"""
Tests for storage module.
"""

import pytest

from blobcheck.config import Env
from blobcheck.errors import ConfigError, InvalidParameter, MissingCredential
from blobcheck.params import OBFUSCATED, Params
from blobcheck.storage import TOGGLES, S3Storage, combinations


class TestCombinations:
    """Tests for the power set enumeration."""

    def test_empty(self):
        assert list(combinations([])) == [()]

    def test_order(self):
        """Test smaller subsets first, then declared order."""
        assert list(combinations(["a", "b", "c"])) == [
            (),
            ("a",),
            ("b",),
            ("c",),
            ("a", "b"),
            ("a", "c"),
            ("b", "c"),
            ("a", "b", "c"),
        ]


class TestS3StorageFromEnv:
    """Tests for building storage from endpoint and path."""

    def test_from_env(self, env):
        """Test credentials, endpoint and default region are set."""
        storage = S3Storage.from_env(env)

        params = storage.params
        assert params["AWS_ACCESS_KEY_ID"] == "test-key"
        assert params["AWS_SECRET_ACCESS_KEY"] == "test-secret"
        assert params["AWS_ENDPOINT"] == "localhost:9000"
        assert params["AWS_REGION"] == "aws-global"
        assert storage.dest.startswith("test-bucket/backups/")
        assert storage.bucket_name() == "test-bucket"

    def test_unique_destination(self, env):
        """Test each run gets its own prefix."""
        assert S3Storage.from_env(env).dest != S3Storage.from_env(env).dest

    def test_region_from_environment(self, lookup_factory, credentials):
        """Test an explicit region is kept."""
        credentials["AWS_REGION"] = "eu-west-1"
        env = Env(endpoint="e", path="b", lookup_env=lookup_factory(credentials))

        assert S3Storage.from_env(env).params["AWS_REGION"] == "eu-west-1"

    def test_missing_credentials(self, lookup_factory):
        """Test that both required credentials are named."""
        env = Env(
            endpoint="e",
            path="b",
            lookup_env=lookup_factory({"AWS_ACCESS_KEY_ID": "k"}),
        )

        with pytest.raises(MissingCredential) as exc_info:
            S3Storage.from_env(env)

        assert str(exc_info.value) == "AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY must be set"


class TestS3StorageFromUri:
    """Tests for building storage from an s3:// URI."""

    def test_uri_params_override_environment(self, lookup_factory, credentials):
        """Test URI query parameters win over the environment."""
        env = Env(
            uri="s3://bucket/folder?AWS_REGION=us-east-1&AWS_ACCESS_KEY_ID=uri-key",
            lookup_env=lookup_factory(credentials),
        )

        storage = S3Storage.from_uri(env)

        params = storage.params
        assert params["AWS_ACCESS_KEY_ID"] == "uri-key"
        assert params["AWS_SECRET_ACCESS_KEY"] == "test-secret"
        assert params["AWS_REGION"] == "us-east-1"
        assert storage.dest.startswith("bucket/folder/")

    def test_credentials_only_in_uri(self, lookup_factory):
        """Test credentials may come entirely from the URI."""
        env = Env(
            uri="s3://bucket?AWS_ACCESS_KEY_ID=k&AWS_SECRET_ACCESS_KEY=s",
            lookup_env=lookup_factory({}),
        )

        storage = S3Storage.from_uri(env)

        assert storage.params["AWS_REGION"] == "aws-global"
        assert storage.bucket_name() == "bucket"

    def test_missing_credentials(self, lookup_factory):
        env = Env(uri="s3://bucket", lookup_env=lookup_factory({}))

        with pytest.raises(MissingCredential):
            S3Storage.from_uri(env)

    def test_unknown_parameter(self, env):
        """Test an unrecognized query parameter is rejected."""
        env.endpoint = ""
        env.path = ""
        env.uri = "s3://bucket?AWS_FOO=1"

        with pytest.raises(InvalidParameter):
            S3Storage.from_uri(env)

    def test_wrong_scheme(self, env):
        env.uri = "gs://bucket/folder"

        with pytest.raises(ConfigError):
            S3Storage.from_uri(env)


class TestS3Storage:
    """Tests for S3Storage helpers."""

    def test_params_returns_copy(self, storage):
        """Test that callers cannot modify the storage's parameters."""
        storage.params.set("AWS_REGION", "changed")

        assert storage.params["AWS_REGION"] == "aws-global"

    def test_display_params(self, storage):
        display = storage.display_params()

        assert display["AWS_SECRET_ACCESS_KEY"] == OBFUSCATED
        assert storage.params["AWS_SECRET_ACCESS_KEY"] == "test-secret"

    def test_probe_key(self, storage):
        assert storage.probe_key() == "backups/run1/_blobcheck"

    def test_probe_key_bucket_only(self):
        storage = S3Storage("bucket", Params())

        assert storage.probe_key() == "_blobcheck"

    def test_url(self, storage):
        """Test the URL carries the real, escaped parameters."""
        url = storage.url()

        assert url.startswith("s3://test-bucket/backups/run1?")
        assert "AWS_SECRET_ACCESS_KEY=test-secret" in url
        assert "AWS_ENDPOINT=localhost%3A9000" in url

    def test_repr_masks_secrets(self, storage):
        assert "test-secret" not in repr(storage)


class TestCandidateConfigs:
    """Tests for candidate configuration enumeration."""

    def test_eight_candidates(self, storage):
        candidates = list(storage.candidate_configs())

        assert len(candidates) == 2 ** len(TOGGLES)
        assert all(c.dest == storage.dest for c in candidates)

    def test_baseline_first(self, storage):
        first = next(storage.candidate_configs())

        assert first.params == storage.params

    def test_single_toggles_follow_declared_order(self, storage):
        candidates = list(storage.candidate_configs())

        for candidate, toggle in zip(candidates[1:4], TOGGLES):
            assert candidate.params[toggle] == "true"

    def test_last_candidate_sets_all(self, storage):
        last = list(storage.candidate_configs())[-1]

        for toggle in TOGGLES:
            assert last.params[toggle] == "true"

    def test_preset_toggle_is_flipped(self, storage):
        """Test a toggle already set to true is tried as false."""
        params = storage.params
        params.set("AWS_USE_PATH_STYLE", "true")
        preset = storage.clone(params)

        candidates = list(preset.candidate_configs())

        assert candidates[0].params["AWS_USE_PATH_STYLE"] == "true"
        assert candidates[3].params["AWS_USE_PATH_STYLE"] == "false"

    def test_original_unchanged(self, storage):
        before = storage.params
        list(storage.candidate_configs())

        assert storage.params == before
