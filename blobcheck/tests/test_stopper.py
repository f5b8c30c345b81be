"""
Tests for stopper module.
"""

import threading

from blobcheck.stopper import Stopper


class TestStopper:
    """Tests for Stopper class."""

    def test_initial(self):
        assert not Stopper().stopping

    def test_stop(self):
        stopper = Stopper()
        stopper.stop()

        assert stopper.stopping
        assert stopper.wait(0) is True

    def test_wait_timeout(self):
        assert Stopper().wait(0.01) is False

    def test_stop_propagates_to_children(self):
        """Test stopping a parent stops every descendant."""
        root = Stopper()
        child = root.child()
        grandchild = child.child()

        root.stop()

        assert child.stopping
        assert grandchild.stopping

    def test_child_stop_is_local(self):
        """Test stopping a child leaves parent and siblings running."""
        root = Stopper()
        child = root.child()
        sibling = root.child()

        child.stop()

        assert not root.stopping
        assert not sibling.stopping

    def test_child_of_stopped_parent(self):
        root = Stopper()
        root.stop()

        assert root.child().stopping

    def test_stop_wakes_waiters(self):
        """Test a thread blocked in wait() returns once stopped."""
        stopper = Stopper()
        result = []
        thread = threading.Thread(target=lambda: result.append(stopper.wait(5)))
        thread.start()

        stopper.stop()
        thread.join(timeout=5)

        assert result == [True]

    def test_stop_idempotent(self):
        stopper = Stopper()
        stopper.stop()
        stopper.stop()

        assert stopper.stopping

    def test_stopped_child_is_released(self):
        """Test a finished scope is no longer held by its parent."""
        root = Stopper()
        for _ in range(3):
            root.child().stop()
        running = root.child()

        assert root._children == [running]
        assert not running.stopping

    def test_parent_stop_releases_children(self):
        root = Stopper()
        root.child()
        root.child()

        root.stop()

        assert root._children == []
