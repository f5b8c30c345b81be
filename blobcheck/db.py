"""
Database objects used by the validator.

Statements are CockroachDB SQL issued over a psycopg connection. Object
names are fixed identifiers owned by blobcheck; string values are passed as
query parameters or quoted with psycopg.sql.quote.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from psycopg import Connection, sql

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"v(\d+)\.(\d+)\.(\d+)")

UNFINISHED_JOB_STATUSES = (
    "pending",
    "running",
    "paused",
    "pause-requested",
    "reverting",
    "cancel-requested",
)


@dataclass(frozen=True)
class Database:
    name: str

    def create(self, conn: Connection) -> None:
        conn.execute(f"CREATE DATABASE IF NOT EXISTS {self.name}")

    def drop(self, conn: Connection) -> None:
        logger.debug(f"Dropping database {self.name}")
        conn.execute(f"DROP DATABASE IF EXISTS {self.name} CASCADE")

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Schema:
    name: str

    def __str__(self) -> str:
        return self.name


PUBLIC = Schema("public")


@dataclass(frozen=True)
class KvTable:
    """A two-column key/value table."""

    database: Database
    schema: Schema
    name: str

    def __str__(self) -> str:
        return f"{self.database}.{self.schema}.{self.name}"

    @property
    def local_name(self) -> str:
        return f"{self.schema}.{self.name}"

    def create(self, conn: Connection) -> None:
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {self} ("
            "k STRING DEFAULT gen_random_uuid()::STRING PRIMARY KEY, "
            "v STRING)"
        )

    def drop(self, conn: Connection) -> None:
        logger.info(f"Dropping table {self}")
        conn.execute(f"DROP TABLE IF EXISTS {self}")

    def insert(self, conn: Connection, key: str, value: str) -> None:
        conn.execute(
            f"INSERT INTO {self} (k, v) VALUES (%(key)s, %(value)s)",
            {"key": key, "value": value},
        )

    def upsert(self, conn: Connection, key: str, value: str) -> None:
        conn.execute(
            f"UPSERT INTO {self} (k, v) VALUES (%(key)s, %(value)s)",
            {"key": key, "value": value},
        )

    def count(self, conn: Connection) -> int:
        row = conn.execute(f"SELECT count(*) FROM {self}").fetchone()
        return int(row[0])

    def backup(self, conn: Connection, connection_name: str, incremental: bool = False) -> None:
        """
        Back up the table to an external connection.

        A full backup starts a new collection; an incremental backup is
        appended to the latest collection.
        """
        target = sql.quote(f"external://{connection_name}")
        mode = "LATEST IN " if incremental else ""
        stmt = f"BACKUP TABLE {self} INTO {mode}{target}"
        logger.debug(stmt)
        conn.execute(stmt)

    def restore(
        self,
        conn: Connection,
        connection_name: str,
        original: "KvTable",
        collection: Optional[str] = None,
    ) -> None:
        """
        Restore original's backup into this table's database.

        Args:
            conn: Database connection
            connection_name: External connection holding the backup
            original: The table that was backed up
            collection: Backup collection (default: the latest one)
        """
        source = sql.quote(collection) if collection else "LATEST"
        target = sql.quote(f"external://{connection_name}")
        into_db = sql.quote(self.database.name)
        stmt = f"RESTORE TABLE {original} FROM {source} IN {target} WITH into_db = {into_db}"
        logger.info(stmt)
        conn.execute(stmt)

    def fingerprint(self, conn: Connection) -> str:
        """Return the per-index content fingerprints of the table as one string."""
        rows = conn.execute(f"SHOW EXPERIMENTAL_FINGERPRINTS FROM TABLE {self}").fetchall()
        return "".join(f"{name}: {fp}\n" for name, fp in rows)

    def unfinished_jobs(self, conn: Connection) -> List[Tuple[int, str, str]]:
        """List BACKUP and RESTORE jobs on this table that have not finished."""
        rows = conn.execute(
            "SELECT job_id, job_type, status FROM [SHOW JOBS] "
            "WHERE job_type IN ('BACKUP', 'RESTORE') "
            "AND status = ANY(%(statuses)s) "
            "AND description LIKE %(pattern)s",
            {"statuses": list(UNFINISHED_JOB_STATUSES), "pattern": f"%{self}%"},
        ).fetchall()
        return [(row[0], row[1], row[2]) for row in rows]


def parse_version(version: str) -> Tuple[int, int, int]:
    """
    Extract the release version from a CockroachDB version string.

    Args:
        version: e.g. "CockroachDB CCL v25.1.0 (x86_64-pc-linux-gnu, ...)"

    Returns:
        (major, minor, patch)
    """
    match = _VERSION_RE.search(version)
    if not match:
        raise ValueError(f"unable to parse version {version!r}")
    return tuple(int(part) for part in match.groups())


def server_version(conn: Connection) -> Tuple[int, int, int]:
    row = conn.execute("SELECT version()").fetchone()
    return parse_version(row[0])
