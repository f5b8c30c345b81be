"""
Synthetic write traffic against a key/value table.
"""

import logging
import uuid
from dataclasses import dataclass, field

from psycopg import Connection

from .db import KvTable
from .stopper import Stopper

logger = logging.getLogger(__name__)

THINK_TIME = 0.001


@dataclass
class Workload:
    """
    Upserts rows with keys "<prefix>-<n>" until stopped.

    The prefix is random per workload so concurrent workers never write the
    same key.
    """

    table: KvTable
    prefix: str = field(default_factory=lambda: str(uuid.uuid4()))
    think_time: float = THINK_TIME
    rows_written: int = 0

    def run(self, conn: Connection, stopper: Stopper) -> None:
        """
        Write rows until stopper is stopped.

        At least one row is written. Write errors propagate immediately.
        """
        idx = 0
        while True:
            key = f"{self.prefix}-{idx}"
            try:
                self.table.upsert(conn, key, str(uuid.uuid4()))
            except Exception as e:
                logger.error(f"Failed to upsert row {idx}: {e}")
                raise
            self.rows_written += 1
            if stopper.wait(self.think_time):
                logger.debug(f"Workload {self.prefix} stopped after {self.rows_written} rows")
                return
            idx += 1
