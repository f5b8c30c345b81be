"""
Connection parameters for S3-compatible destinations.

The parameter names match the query parameters CockroachDB accepts in an
``s3://`` URL, so a Params instance can be rendered straight into the
external connection URL.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote_plus

from .errors import InvalidParameter

ACCOUNT_PARAM = "AWS_ACCESS_KEY_ID"
SECRET_PARAM = "AWS_SECRET_ACCESS_KEY"
TOKEN_PARAM = "AWS_SESSION_TOKEN"
ENDPOINT_PARAM = "AWS_ENDPOINT"
REGION_PARAM = "AWS_REGION"
USE_PATH_STYLE_PARAM = "AWS_USE_PATH_STYLE"
SKIP_CHECKSUM_PARAM = "AWS_SKIP_CHECKSUM"
SKIP_TLS_VERIFY_PARAM = "AWS_SKIP_TLS_VERIFY"

DEFAULT_REGION = "aws-global"

VALID_PARAMS: List[str] = [
    ACCOUNT_PARAM,
    SECRET_PARAM,
    TOKEN_PARAM,
    ENDPOINT_PARAM,
    REGION_PARAM,
    USE_PATH_STYLE_PARAM,
    SKIP_CHECKSUM_PARAM,
    SKIP_TLS_VERIFY_PARAM,
]

OBFUSCATED_PARAMS: List[str] = [SECRET_PARAM, TOKEN_PARAM]
OBFUSCATED = "******"


class Params:
    """An ordered set of recognized S3 parameters."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "Params":
        return cls(values)

    def set(self, key: str, value: str) -> None:
        """
        Set a parameter.

        Raises:
            InvalidParameter: If key is not one of VALID_PARAMS
        """
        if key not in VALID_PARAMS:
            raise InvalidParameter(key)
        self._values[key] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def is_true(self, key: str) -> bool:
        return self._values.get(key) == "true"

    def copy(self) -> "Params":
        return Params(self._values)

    def obfuscated(self) -> "Params":
        """Return a copy with sensitive values replaced by the obfuscation marker."""
        res = self.copy()
        for key in OBFUSCATED_PARAMS:
            if key in res._values:
                res._values[key] = OBFUSCATED
        return res

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yield (key, value) pairs in lexicographic key order."""
        for key in sorted(self._values):
            yield key, self._values[key]

    def escaped_query_string(self) -> str:
        return "&".join(
            f"{quote_plus(key)}={quote_plus(value)}" for key, value in self.items()
        )

    def to_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Params):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Params({self.obfuscated().to_dict()!r})"
