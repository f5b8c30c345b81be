"""
External connections to an object store, registered in the database.

BACKUP and RESTORE address the destination through the connection name, so
the credentials in the URL only travel to the database once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence

from psycopg import Connection, Error, sql

from .db import KvTable, server_version
from .errors import RegistrationFailed
from .params import Params
from .storage import S3Storage

logger = logging.getLogger(__name__)

CONNECTION_NAME = "_blobcheck_backup"

# CHECK EXTERNAL CONNECTION is available from this release on.
MIN_VERSION_FOR_STATS = (25, 1, 0)


@dataclass
class Stats:
    """Per-node result of an external connection check."""

    node: int
    locality: str = ""
    success: bool = True
    err_str: str = ""
    transferred: str = ""
    read_speed: str = ""
    write_speed: str = ""
    can_delete: bool = False

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Stats":
        node, locality, success, err_str, transferred, read_speed, write_speed, can_delete = row
        return cls(
            node=int(node),
            locality=str(locality or ""),
            success=bool(success),
            err_str=str(err_str or ""),
            transferred=str(transferred or ""),
            read_speed=str(read_speed or ""),
            write_speed=str(write_speed or ""),
            can_delete=bool(can_delete),
        )


@dataclass(frozen=True)
class TableBackup:
    table: KvTable
    full: bool
    end_time: datetime


class ExternalConnection:
    """A named external connection pointing at one destination."""

    def __init__(self, storage: S3Storage, name: str = CONNECTION_NAME):
        self.name = name
        self.storage = storage

    @classmethod
    def register(
        cls, conn: Connection, storage: S3Storage, name: str = CONNECTION_NAME
    ) -> "ExternalConnection":
        """
        Replace any connection with the same name and create a new one.

        Raises:
            RegistrationFailed: If the database cannot list backups through it
        """
        ext_conn = cls(storage, name)
        ext_conn.drop(conn)
        ext_conn._create(conn)
        return ext_conn

    def _create(self, conn: Connection) -> None:
        url = self.storage.url()
        logger.info(f"Creating external connection {self.name} to s3://{self.storage.dest}")
        conn.execute(f"CREATE EXTERNAL CONNECTION {sql.quote(self.name)} AS {sql.quote(url)}")

        logger.info("Checking existing backups")
        try:
            backups = self.list_table_backups(conn)
        except Error as e:
            logger.info(f"Listing backups failed: {e}")
            raise RegistrationFailed(f"external connection {self.name} failed: {e}") from e
        logger.info(f"External connection ready, existing backups: {backups}")

    @property
    def uri(self) -> str:
        return f"external://{self.name}"

    def list_table_backups(self, conn: Connection) -> List[str]:
        """List backup collections stored at the destination."""
        stmt = f"SHOW BACKUPS IN {sql.quote(self.uri)}"
        logger.debug(stmt)
        rows = conn.execute(stmt).fetchall()
        return [row[0] for row in rows]

    def backup_info(self, conn: Connection, collection: str, table: KvTable) -> List[TableBackup]:
        """
        Describe the backups of a table within a collection, newest first.

        Args:
            conn: Database connection
            collection: Backup collection, as returned by list_table_backups
            table: The backed up table

        Returns:
            List of TableBackup entries
        """
        stmt = (
            "SELECT backup_type, end_time, parent_schema_name, object_name "
            f"FROM [SHOW BACKUP {sql.quote(collection)} IN {sql.quote(self.uri)}] "
            "WHERE parent_schema_name = %(schema)s AND object_name = %(table)s "
            "ORDER BY end_time DESC"
        )
        rows = conn.execute(stmt, {"schema": table.schema.name, "table": table.name}).fetchall()

        res = []
        for backup_type, end_time, schema_name, table_name in rows:
            full = backup_type == "full"
            logger.info(
                f"Backup info: type={backup_type} full={full} table={schema_name}.{table_name}"
            )
            res.append(TableBackup(table=table, full=full, end_time=end_time))
        return res

    def check(self, conn: Connection) -> List[Sequence[Any]]:
        """Run a connectivity and throughput check from every node."""
        return conn.execute(f"CHECK EXTERNAL CONNECTION {sql.quote(self.uri)}").fetchall()

    def stats(self, conn: Connection) -> Optional[List[Stats]]:
        """
        Collect per-node transfer statistics.

        Returns:
            List of Stats, or None if the server is too old to provide them
        """
        version = server_version(conn)
        if version < MIN_VERSION_FOR_STATS:
            logger.warning(
                "CockroachDB version is less than "
                f"{'.'.join(str(v) for v in MIN_VERSION_FOR_STATS)}. "
                "Statistics are not available"
            )
            return None
        return [Stats.from_row(row) for row in self.check(conn)]

    def drop(self, conn: Connection) -> None:
        """Remove the connection; a missing connection is not an error."""
        row = conn.execute(
            "SELECT connection_name FROM [SHOW EXTERNAL CONNECTIONS] "
            "WHERE connection_name = %(name)s",
            {"name": self.name},
        ).fetchone()
        if row is None:
            logger.info(f"External connection {self.name} not found")
            return
        conn.execute(f"DROP EXTERNAL CONNECTION {sql.quote(self.name)}")

    def suggested_params(self) -> Params:
        return self.storage.display_params()

    def __str__(self) -> str:
        return self.name
