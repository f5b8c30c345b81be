"""
Run configuration for blobcheck.

Settings can come from a YAML or JSON file, from BLOBCHECK_* environment
variables, or from the command line; the CLI layers them in that order.
Credentials are never part of this configuration: they are read through
Env.lookup_env so tests can inject their own lookup.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql://root@localhost:26257?sslmode=disable"
DEFAULT_WORKERS = 5
DEFAULT_WORKLOAD_DURATION = 5.0

LookupEnv = Callable[[str], Tuple[str, bool]]


def os_lookup_env(key: str) -> Tuple[str, bool]:
    """Look up an environment variable, reporting whether it is set."""
    value = os.environ.get(key)
    if value is None:
        return "", False
    return value, True


@dataclass
class Env:
    """Complete configuration for one blobcheck run."""

    database_url: str = DEFAULT_DATABASE_URL
    endpoint: str = ""
    path: str = ""
    uri: str = ""
    workers: int = DEFAULT_WORKERS
    workload_duration: float = DEFAULT_WORKLOAD_DURATION
    guess: bool = False
    verbose: bool = False
    lookup_env: LookupEnv = field(default=os_lookup_env, repr=False)

    def validate(self) -> None:
        """
        Check the option combinations accepted on the command line.

        Raises:
            ConfigError: If the combination is not usable
        """
        if not self.guess:
            if not self.database_url:
                raise ConfigError("database URL cannot be blank")
            if self.workers < 0:
                raise ConfigError(f"workers must not be negative, got {self.workers}")
            if self.workload_duration <= 0:
                raise ConfigError(
                    f"workload duration must be positive, got {self.workload_duration}"
                )
        if self.uri:
            if self.endpoint or self.path:
                raise ConfigError("URI and (endpoint + path) cannot be set simultaneously")
        elif not self.endpoint or not self.path:
            raise ConfigError("set (endpoint + path) or URI")


_CONFIG_FIELDS = {f.name for f in fields(Env)} - {"lookup_env"}

_FIELD_ALIASES = {
    "databaseUrl": "database_url",
    "db": "database_url",
    "workloadDuration": "workload_duration",
}


def parse_config(data: Dict[str, Any]) -> Env:
    """
    Parse a configuration dictionary into an Env object.

    Keys may use snake_case or the camelCase spelling used in YAML files.

    Args:
        data: Configuration dictionary

    Returns:
        Env object
    """
    env = Env()
    for key, value in data.items():
        name = _FIELD_ALIASES.get(key, key)
        if name not in _CONFIG_FIELDS:
            raise ConfigError(f"unknown configuration key {key!r}")
        setattr(env, name, value)

    try:
        env.workers = int(env.workers)
        env.workload_duration = float(env.workload_duration)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid configuration value: {e}") from e
    return env


def load_config_from_file(config_path: str) -> Env:
    """
    Load run configuration from a YAML or JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed Env object
    """
    with open(config_path, "r") as f:
        if config_path.endswith((".yml", ".yaml")):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    logger.debug(f"Loaded configuration from {config_path}")
    return parse_config(data or {})


def load_config_from_env(base: Optional[Env] = None) -> Env:
    """
    Overlay BLOBCHECK_* environment variables on a configuration.

    Environment variables:
        BLOBCHECK_DB: Database connection URL
        BLOBCHECK_ENDPOINT: S3 endpoint
        BLOBCHECK_PATH: Destination path (bucket/folder)
        BLOBCHECK_URI: Full S3 URI
        BLOBCHECK_WORKERS: Number of concurrent workers
        BLOBCHECK_WORKLOAD_DURATION: Workload duration in seconds

    Returns:
        Env object
    """
    env = base or Env()
    mapping = {
        "BLOBCHECK_DB": "database_url",
        "BLOBCHECK_ENDPOINT": "endpoint",
        "BLOBCHECK_PATH": "path",
        "BLOBCHECK_URI": "uri",
        "BLOBCHECK_WORKERS": "workers",
        "BLOBCHECK_WORKLOAD_DURATION": "workload_duration",
    }
    data = {}
    for var, name in mapping.items():
        value = os.environ.get(var)
        if value:
            data[name] = value

    overlay = parse_config(data)
    for name in data:
        setattr(env, name, getattr(overlay, name))
    return env
