"""
Connectivity probing for S3-compatible storage.

ObjectStore is the narrow set of object operations the probe needs;
S3ObjectStore implements it with boto3. StorageProbe runs a
list/write/read/delete self-test against one candidate destination.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ProbeAnomaly
from .params import (
    ACCOUNT_PARAM,
    ENDPOINT_PARAM,
    REGION_PARAM,
    SECRET_PARAM,
    SKIP_CHECKSUM_PARAM,
    SKIP_TLS_VERIFY_PARAM,
    TOKEN_PARAM,
    USE_PATH_STYLE_PARAM,
    Params,
)
from .storage import S3Storage

logger = logging.getLogger(__name__)

PROBE_CONTENT = b"dummy_data"

# Errors that mean "this configuration does not work", as opposed to bugs.
STORE_ERRORS = (BotoCoreError, ClientError)


class ObjectStore(ABC):
    """Object operations against a single bucket."""

    def __init__(self, bucket: str):
        self.bucket = bucket

    @abstractmethod
    def list_objects(self, prefix: str = "") -> List[str]:
        """List object keys in the bucket."""
        pass

    @abstractmethod
    def put_object(self, key: str, data: bytes) -> None:
        """Write an object into the bucket."""
        pass

    @abstractmethod
    def get_object(self, key: str) -> bytes:
        """Read an object from the bucket."""
        pass

    @abstractmethod
    def delete_object(self, key: str) -> None:
        """Delete an object from the bucket."""
        pass


class S3ObjectStore(ObjectStore):
    """ObjectStore backed by a boto3 S3 client built from blobcheck params."""

    def __init__(self, bucket: str, params: Params):
        super().__init__(bucket)
        self.params = params
        self.client = None

    @classmethod
    def for_storage(cls, storage: S3Storage) -> "S3ObjectStore":
        store = cls(storage.bucket_name(), storage.params)
        store.connect()
        return store

    def connect(self) -> None:
        """
        Create the boto3 client.

        Retries are limited to a single attempt: the discovery engine
        already retries by moving on to the next candidate.
        """
        params = self.params
        endpoint: Optional[str] = params.get(ENDPOINT_PARAM) or None
        if endpoint and not endpoint.startswith(("http://", "https://")):
            endpoint = f"https://{endpoint}"

        addressing_style = "path" if params.is_true(USE_PATH_STYLE_PARAM) else "virtual"
        config = Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
            retries={"total_max_attempts": 1, "mode": "standard"},
        )
        if params.is_true(SKIP_CHECKSUM_PARAM):
            config = config.merge(
                Config(
                    request_checksum_calculation="when_required",
                    response_checksum_validation="when_required",
                )
            )

        verify = not params.is_true(SKIP_TLS_VERIFY_PARAM)
        if not verify:
            logger.warning("TLS verification is disabled; use only for testing")

        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=params.get(ACCOUNT_PARAM),
            aws_secret_access_key=params.get(SECRET_PARAM),
            aws_session_token=params.get(TOKEN_PARAM),
            region_name=params.get(REGION_PARAM),
            verify=verify,
            config=config,
        )
        logger.debug(
            f"boto3 S3 client for {endpoint or 'default endpoint'} "
            f"(addressing: {addressing_style}, verify: {verify})"
        )

    def list_objects(self, prefix: str = "") -> List[str]:
        response = self.client.list_objects_v2(Bucket=self.bucket, Prefix=prefix)
        return [obj["Key"] for obj in response.get("Contents", [])]

    def put_object(self, key: str, data: bytes) -> None:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data)

    def get_object(self, key: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        return response["Body"].read()

    def delete_object(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)


StoreFactory = Callable[[S3Storage], ObjectStore]


class StorageProbe:
    """Live self-test of one candidate destination."""

    def __init__(self, store_factory: StoreFactory = S3ObjectStore.for_storage):
        self.store_factory = store_factory

    def probe(self, candidate: S3Storage) -> bool:
        """
        Run list, write, read-back and delete against the candidate's bucket.

        Returns:
            True if the candidate works, False if listing or writing failed

        Raises:
            ProbeAnomaly: If the object read back differs from what was written
        """
        store = self.store_factory(candidate)
        key = candidate.probe_key()
        display = candidate.display_params().to_dict()
        logger.debug(f"Trying params {display}")

        try:
            store.list_objects()
        except STORE_ERRORS as e:
            logger.debug(f"Failed to list objects in {store.bucket}: {e}")
            return False

        try:
            store.put_object(key, PROBE_CONTENT)
        except STORE_ERRORS as e:
            logger.error(f"Failed to put object {key} with params {display}: {e}")
            return False

        # Read and delete errors propagate: the write already succeeded.
        got = store.get_object(key)
        logger.debug(f"Successfully read object {key}: {got!r}")
        if got != PROBE_CONTENT:
            raise ProbeAnomaly(got, PROBE_CONTENT)

        store.delete_object(key)
        return True
