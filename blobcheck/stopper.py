"""
Hierarchical stop signals for cooperating threads.

Stopping a Stopper stops every child created from it. A child can also be
stopped on its own, which ends only its subtree.
"""

import threading
from typing import List, Optional


class Stopper:
    """A cancellation scope shared by a group of threads."""

    def __init__(self, parent: Optional["Stopper"] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List["Stopper"] = []
        self.parent = parent
        if parent is not None:
            parent._adopt(self)

    def child(self) -> "Stopper":
        return Stopper(self)

    def _adopt(self, child: "Stopper") -> None:
        with self._lock:
            self._children.append(child)
            stopped = self._event.is_set()
        if stopped:
            child.stop()

    def stop(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
            self._children.clear()
        for child in children:
            child.stop()
        if self.parent is not None:
            self.parent._detach(self)

    def _detach(self, child: "Stopper") -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    @property
    def stopping(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until this scope is stopped or timeout elapses.

        Returns:
            True if the scope was stopped
        """
        return self._event.wait(timeout)
