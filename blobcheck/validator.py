"""
Backup/restore validation against a storage provider.

The Validator runs a fixed sequence of phases against a CockroachDB cluster:
it registers the discovered destination as an external connection, writes
synthetic traffic while taking a full backup, adds an incremental backup,
restores into a second database and compares content fingerprints.

Passing does not imply that the provider is supported; it shows minimum
compatibility at the functional level.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from psycopg import Connection, Error
from psycopg_pool import ConnectionPool

from .config import Env
from .db import PUBLIC, Database, KvTable
from .errors import (
    Cancelled,
    CleanupError,
    ConfigError,
    IntegrityMismatch,
    PhaseError,
    StateMismatch,
)
from .ext_conn import ExternalConnection, Stats
from .params import Params
from .stopper import Stopper
from .storage import S3Storage
from .workload import Workload

logger = logging.getLogger(__name__)

# Lower bound; the pool also fits every worker plus the backup task.
MAX_CONNS = 10
SOURCE_DATABASE = "_blobcheck"
RESTORED_DATABASE = "_blobcheck_restored"
TABLE_NAME = "mytable"

EXPECTED_BACKUP_COLLECTIONS = 1
EXPECTED_BACKUP_COUNT = 2
EXPECTED_FULL_BACKUP_COUNT = 1


@dataclass(frozen=True)
class Report:
    """Result of a validation run."""

    suggested_params: Params
    stats: Optional[Tuple[Stats, ...]] = None
    integrity_verified: Optional[bool] = None


class Validator:
    """Verifies backup/restore functionality through one destination."""

    def __init__(
        self,
        env: Env,
        storage: S3Storage,
        pool: Optional[ConnectionPool] = None,
    ):
        """
        Initialize the validator.

        Args:
            env: Run configuration
            storage: Destination with discovered parameters
            pool: Connection pool (default: a new pool on env.database_url)

        Raises:
            ConfigError: If the configuration cannot drive a run
        """
        if env is None:
            raise ConfigError("environment must be provided")
        if storage is None:
            raise ConfigError("storage must be provided")
        if not env.database_url or not env.database_url.strip():
            raise ConfigError("database URL cannot be blank")
        if env.workers < 0:
            raise ConfigError(f"workers must not be negative, got {env.workers}")
        if env.workload_duration <= 0:
            raise ConfigError(
                f"workload duration must be positive, got {env.workload_duration}"
            )

        self.env = env
        self.storage = storage
        if pool is None:
            pool = ConnectionPool(
                env.database_url,
                min_size=1,
                max_size=max(MAX_CONNS, env.workers + 2),
                kwargs={"autocommit": True},
                open=True,
            )
        self.pool = pool

        self.source_table = KvTable(Database(SOURCE_DATABASE), PUBLIC, TABLE_NAME)
        self.restored_table = KvTable(Database(RESTORED_DATABASE), PUBLIC, TABLE_NAME)
        self.ext_conn: Optional[ExternalConnection] = None
        self.latest: Optional[str] = None
        self.stats: Optional[List[Stats]] = None
        self.integrity_verified = False

    def _phases(self, stopper: Stopper) -> List[Tuple[str, Callable[[], None]]]:
        return [
            ("setup tables", self.setup_tables),
            ("register external connection", self.register_external_connection),
            ("capture initial statistics", self.capture_initial_stats),
            ("run workload with backup", lambda: self.run_workload_with_backup(stopper)),
            ("incremental backup", self.run_incremental_backup),
            ("check backups", self.check_backups),
            ("restore", self.perform_restore),
            ("verify integrity", self.verify_integrity),
        ]

    def validate(self, stopper: Optional[Stopper] = None) -> Optional[Report]:
        """
        Run every validation phase in order.

        The caller must invoke clean() afterwards, whatever the outcome.

        Args:
            stopper: Cancellation scope for the run

        Returns:
            The report, or None if the run was cancelled

        Raises:
            PhaseError: If a phase failed; the cause is chained
        """
        stopper = stopper or Stopper()
        try:
            for name, phase in self._phases(stopper):
                if stopper.stopping:
                    raise Cancelled(name)
                logger.info(f"Starting phase: {name}")
                try:
                    phase()
                except Cancelled:
                    raise
                except Exception as e:
                    logger.error(f"Phase {name} failed: {e}")
                    raise PhaseError(name, e) from e
        except Cancelled as e:
            logger.warning(f"Validation cancelled before phase: {e}")
            return None

        stats = tuple(self.stats) if self.stats is not None else None
        return Report(
            suggested_params=self.ext_conn.suggested_params(),
            stats=stats,
            integrity_verified=self.integrity_verified,
        )

    def setup_tables(self) -> None:
        """
        Create the source table and the database the backup is restored into.

        Raises:
            StateMismatch: If backup or restore jobs on the source table are
                still running from an earlier run
        """
        with self.pool.connection() as conn:
            self.source_table.database.create(conn)
            self.source_table.create(conn)
            # Only the database is created here; RESTORE creates the table.
            self.restored_table.database.create(conn)
            self.restored_table.drop(conn)

            jobs = self.source_table.unfinished_jobs(conn)
            if jobs:
                job_ids = ", ".join(str(job[0]) for job in jobs)
                raise StateMismatch(
                    f"found {len(jobs)} unfinished backup/restore job(s) "
                    f"on {self.source_table}: {job_ids}"
                )

    def register_external_connection(self) -> None:
        with self.pool.connection() as conn:
            self.ext_conn = ExternalConnection.register(conn, self.storage)

    def capture_initial_stats(self) -> None:
        with self.pool.connection() as conn:
            logger.info("Capturing initial statistics")
            self.stats = self.ext_conn.stats(conn)

    def run_workload(self, stopper: Stopper, duration: float) -> int:
        """
        Run one workload for duration seconds, or until stopper is stopped.

        Returns:
            Number of rows written
        """
        workload = Workload(self.source_table)
        scope = stopper.child()
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(self._run_workload_task, workload, scope)
            scope.wait(duration)
            scope.stop()
            future.result()
        return workload.rows_written

    def _run_workload_task(self, workload: Workload, scope: Stopper) -> None:
        try:
            with self.pool.connection() as conn:
                workload.run(conn, scope)
        except Exception:
            scope.stop()
            raise

    def _run_workload_worker(self, stopper: Stopper, worker_id: int) -> None:
        logger.info(f"Starting worker {worker_id}")
        rows = self.run_workload(stopper, self.env.workload_duration)
        logger.debug(f"Worker {worker_id} wrote {rows} rows")

    def run_workload_with_backup(self, stopper: Stopper) -> None:
        """
        Populate the table, then take a full backup while workers keep writing.

        The workers and the backup share one cancellation scope; this
        returns once all of them have finished.
        """
        logger.info("Running workload to populate some data")
        self.run_workload(stopper, self.env.workload_duration)

        group = stopper.child()
        errors = []
        with ThreadPoolExecutor(max_workers=self.env.workers + 1) as executor:
            futures = [
                executor.submit(self._run_workload_worker, group, worker_id)
                for worker_id in range(self.env.workers)
            ]
            futures.append(executor.submit(self.run_full_backup))

            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    errors.append(e)
                    group.stop()

        logger.info("Workers done")
        if errors:
            raise errors[0]

    def run_full_backup(self) -> None:
        with self.pool.connection() as conn:
            logger.info("Starting full backup")
            self.source_table.backup(conn, self.ext_conn.name, incremental=False)

    def run_incremental_backup(self) -> None:
        with self.pool.connection() as conn:
            logger.info("Starting incremental backup")
            self.source_table.backup(conn, self.ext_conn.name, incremental=True)

    def check_backups(self) -> None:
        """
        Verify the destination holds one collection with one full and one
        incremental backup of the source table.

        Raises:
            StateMismatch: If the backup set has any other shape
        """
        with self.pool.connection() as conn:
            backups = self.ext_conn.list_table_backups(conn)
            if len(backups) != EXPECTED_BACKUP_COLLECTIONS:
                raise StateMismatch(
                    f"expected exactly {EXPECTED_BACKUP_COLLECTIONS} backup collection, "
                    f"got {len(backups)}"
                )

            self.latest = backups[0]
            info = self.ext_conn.backup_info(conn, self.latest, self.source_table)

        if len(info) != EXPECTED_BACKUP_COUNT:
            raise StateMismatch(
                f"expected exactly {EXPECTED_BACKUP_COUNT} backups (1 full, 1 incremental), "
                f"got {len(info)} backups"
            )
        full_count = sum(1 for backup in info if backup.full)
        if full_count != EXPECTED_FULL_BACKUP_COUNT:
            raise StateMismatch(
                f"expected exactly {EXPECTED_FULL_BACKUP_COUNT} full backup, got {full_count}"
            )

    def perform_restore(self) -> None:
        with self.pool.connection() as conn:
            logger.info("Restoring backup")
            self.restored_table.restore(
                conn, self.ext_conn.name, self.source_table, collection=self.latest
            )

    def verify_integrity(self) -> bool:
        """
        Compare fingerprints of the source and restored tables.

        A mismatch is logged and recorded on the report; it does not stop
        the run.

        Returns:
            True if the fingerprints match
        """
        with self.pool.connection() as conn:
            logger.info("Checking integrity")
            original = self.source_table.fingerprint(conn)
            restored = self.restored_table.fingerprint(conn)

        if original != restored:
            logger.error(str(IntegrityMismatch(original, restored)))
            self.integrity_verified = False
        else:
            self.integrity_verified = True
        return self.integrity_verified

    def clean(self) -> None:
        """
        Drop everything the run created.

        Every drop is attempted even if an earlier one fails. Failing to
        get a connection at all is reported the same way as a failed drop.

        Raises:
            CleanupError: Carrying every drop failure
        """
        errors = []
        try:
            with self.pool.connection() as conn:
                errors.extend(self._drop_all(conn))
        except Error as e:
            logger.error(f"cleanup connection: {e}")
            errors.append(e)
        if errors:
            raise CleanupError(errors)

    def _drop_all(self, conn: Connection) -> List[Exception]:
        errors = []
        if self.ext_conn is not None:
            try:
                self.ext_conn.drop(conn)
            except Exception as e:
                logger.error(f"drop external connection: {e}")
                errors.append(e)
        for label, database in (
            ("source", self.source_table.database),
            ("restored", self.restored_table.database),
        ):
            try:
                database.drop(conn)
            except Exception as e:
                logger.error(f"drop {label} DB: {e}")
                errors.append(e)
        return errors

    def close(self) -> None:
        self.pool.close()
