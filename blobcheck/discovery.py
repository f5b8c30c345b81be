"""
Storage-parameter discovery.

Walks the candidate configurations of a destination in order and keeps the
first one the storage probe accepts.
"""

import enum
import logging
from typing import Optional

from .config import Env
from .connectivity import StorageProbe
from .errors import StorageUnreachable
from .storage import S3Storage

logger = logging.getLogger(__name__)


class DiscoveryState(enum.Enum):
    NOT_STARTED = "not_started"
    TRYING = "trying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class DiscoveryEngine:
    """Finds a working configuration for a destination."""

    def __init__(self, probe: Optional[StorageProbe] = None):
        self.probe = probe or StorageProbe()
        self.state = DiscoveryState.NOT_STARTED
        self.attempts = 0

    def discover(self, storage: S3Storage) -> S3Storage:
        """
        Probe candidate configurations until one works.

        Args:
            storage: The destination as configured by the user

        Returns:
            The first candidate that passed the probe

        Raises:
            StorageUnreachable: If no candidate passed
            ProbeAnomaly: If a candidate returned corrupted content
        """
        self.state = DiscoveryState.NOT_STARTED
        self.attempts = 0

        for candidate in storage.candidate_configs():
            self.state = DiscoveryState.TRYING
            self.attempts += 1
            if self.probe.probe(candidate):
                self.state = DiscoveryState.SUCCESS
                logger.info(
                    f"Suggested params after {self.attempts} attempt(s): "
                    f"{candidate.display_params().to_dict()}"
                )
                return candidate

        self.state = DiscoveryState.EXHAUSTED
        raise StorageUnreachable(storage.dest)


def discover(env: Env, probe: Optional[StorageProbe] = None) -> S3Storage:
    """
    Build the destination from the run configuration and discover working params.

    Args:
        env: Run configuration
        probe: Probe to use (default: boto3-backed StorageProbe)

    Returns:
        The working destination
    """
    if env.uri:
        storage = S3Storage.from_uri(env)
    else:
        storage = S3Storage.from_env(env)
    logger.info(f"Discovering parameters for s3://{storage.dest}")
    return DiscoveryEngine(probe).discover(storage)
