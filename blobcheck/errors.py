"""
Error taxonomy for blobcheck.

Every failure raised by the package derives from BlobcheckError so the CLI
can report it with a single handler. Cancelled is a control-flow signal
used to unwind a run when the stop scope fires, it is not a failure.
"""

from typing import List, Optional


class BlobcheckError(Exception):
    """Base exception for blobcheck errors."""
    pass


class ConfigError(BlobcheckError, ValueError):
    """Invalid run configuration, detected before any resource is created."""
    pass


class InvalidParameter(BlobcheckError, KeyError):
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"invalid param {self.key!r}"


class MissingCredential(BlobcheckError):
    def __init__(self, names: List[str]):
        super().__init__(f"{', '.join(names)} must be set")
        self.names = names


class StorageUnreachable(BlobcheckError):
    def __init__(self, dest: str):
        super().__init__(f"unable to connect to storage provider {dest!r}")
        self.dest = dest


class ProbeAnomaly(BlobcheckError):
    """Read-back content did not match what was just written."""

    def __init__(self, got: bytes, want: bytes):
        super().__init__(f"unexpected content: got {got!r}, want {want!r}")
        self.got = got
        self.want = want


class RegistrationFailed(BlobcheckError):
    pass


class StateMismatch(BlobcheckError):
    pass


class IntegrityMismatch(BlobcheckError):
    def __init__(self, original: str, restored: str):
        super().__init__(
            f"integrity check failed: got {restored}, expected {original} "
            "while comparing restored data with original"
        )
        self.original = original
        self.restored = restored


class PhaseError(BlobcheckError):
    """A validation phase failed; the original error is chained as __cause__."""

    def __init__(self, phase: str, cause: Optional[BaseException] = None):
        message = f"{phase} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.phase = phase


class CleanupError(BlobcheckError):
    def __init__(self, errors: List[BaseException]):
        super().__init__("; ".join(str(e) for e in errors))
        self.errors = errors


class Cancelled(Exception):
    """The stop scope fired while a run was in progress."""
    pass
