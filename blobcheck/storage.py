"""
S3 destinations and their configuration variants.

An S3Storage names a destination (bucket plus path prefix) and the
parameters used to reach it. It never talks to the network itself; the
probe in connectivity.py does that for each variant produced by
candidate_configs().
"""

import itertools
import logging
import posixpath
import uuid
from typing import Iterable, Iterator, List, Sequence, Tuple
from urllib.parse import parse_qsl, urlparse

from .config import Env
from .errors import ConfigError, MissingCredential
from .params import (
    ACCOUNT_PARAM,
    DEFAULT_REGION,
    ENDPOINT_PARAM,
    REGION_PARAM,
    SECRET_PARAM,
    SKIP_CHECKSUM_PARAM,
    SKIP_TLS_VERIFY_PARAM,
    TOKEN_PARAM,
    USE_PATH_STYLE_PARAM,
    Params,
)

logger = logging.getLogger(__name__)

OBJECT_KEY = "_blobcheck"

# Boolean parameters the discovery engine flips, in enumeration order.
TOGGLES: List[str] = [SKIP_CHECKSUM_PARAM, SKIP_TLS_VERIFY_PARAM, USE_PATH_STYLE_PARAM]

REQUIRED_CREDENTIALS = [ACCOUNT_PARAM, SECRET_PARAM]
OPTIONAL_CREDENTIALS = [TOKEN_PARAM, REGION_PARAM]


def combinations(items: Sequence[str]) -> Iterator[Tuple[str, ...]]:
    """
    Yield the power set of items, smallest subsets first.

    The empty subset comes first; subsets of equal size follow the order
    of items.
    """
    for size in range(len(items) + 1):
        yield from itertools.combinations(items, size)


class S3Storage:
    """An S3 destination and the parameters used to reach it."""

    def __init__(self, dest: str, params: Params, verbose: bool = False):
        self._dest = dest
        self._params = params.copy()
        self.verbose = verbose

    @classmethod
    def from_env(cls, env: Env) -> "S3Storage":
        """
        Build the initial destination from the endpoint and path settings.

        Raises:
            MissingCredential: If the access key or secret are not set
        """
        params = _lookup_credentials(env, REQUIRED_CREDENTIALS, OPTIONAL_CREDENTIALS)
        if env.endpoint:
            params.set(ENDPOINT_PARAM, env.endpoint)
        if REGION_PARAM not in params:
            params.set(REGION_PARAM, DEFAULT_REGION)
        dest = posixpath.join(env.path, str(uuid.uuid4()))
        return cls(dest, params, verbose=env.verbose)

    @classmethod
    def from_uri(cls, env: Env) -> "S3Storage":
        """
        Build the initial destination from a full s3:// URI.

        Query parameters in the URI take precedence over credentials found
        in the environment.

        Raises:
            ConfigError: If the URI is not an s3:// URI with a bucket
            InvalidParameter: If the URI carries an unrecognized parameter
            MissingCredential: If the access key or secret are not set
        """
        parsed = urlparse(env.uri)
        if parsed.scheme != "s3" or not parsed.netloc:
            raise ConfigError(f"invalid S3 URI {env.uri!r}")

        params = _lookup_credentials(env, [], REQUIRED_CREDENTIALS + OPTIONAL_CREDENTIALS)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True):
            params.set(key, value)

        missing = [name for name in REQUIRED_CREDENTIALS if name not in params]
        if missing:
            raise MissingCredential(missing)
        if REGION_PARAM not in params:
            params.set(REGION_PARAM, DEFAULT_REGION)

        path = parsed.netloc + parsed.path.rstrip("/")
        dest = posixpath.join(path, str(uuid.uuid4()))
        return cls(dest, params, verbose=env.verbose)

    @property
    def dest(self) -> str:
        return self._dest

    @property
    def params(self) -> Params:
        """A copy of the operational (non-obfuscated) parameters."""
        return self._params.copy()

    def display_params(self) -> Params:
        return self._params.obfuscated()

    def bucket_name(self) -> str:
        components = posixpath.normpath(self._dest).split("/")
        return components[0]

    def probe_key(self) -> str:
        """Key of the probe object, placed under the destination prefix."""
        prefix = self._dest[len(self.bucket_name()):].strip("/")
        if prefix:
            return posixpath.join(prefix, OBJECT_KEY)
        return OBJECT_KEY

    def url(self) -> str:
        return f"s3://{self._dest}?{self._params.escaped_query_string()}"

    def clone(self, params: Params) -> "S3Storage":
        return S3Storage(self._dest, params, verbose=self.verbose)

    def candidate_configs(self, toggles: Iterable[str] = TOGGLES) -> Iterator["S3Storage"]:
        """
        Yield configuration variants of this destination, baseline first.

        Every subset of toggles is applied to a copy of the parameters. A
        toggle in the subset takes the alternate of its current value, so a
        toggle already set to "true" is tried as "false".
        """
        for combo in combinations(list(toggles)):
            params = self._params.copy()
            for option in combo:
                params.set(option, "false" if self._params.is_true(option) else "true")
            yield self.clone(params)

    def __repr__(self) -> str:
        return f"S3Storage(dest={self._dest!r}, params={self.display_params().to_dict()!r})"


def _lookup_credentials(env: Env, required: List[str], optional: List[str]) -> Params:
    params = Params()
    missing = []
    for name in required:
        value, ok = env.lookup_env(name)
        if not ok:
            missing.append(name)
            continue
        params.set(name, value)
    if missing:
        raise MissingCredential(required)

    for name in optional:
        value, ok = env.lookup_env(name)
        if ok:
            params.set(name, value)
    return params
