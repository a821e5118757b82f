"""Unit tests for publisher.run_lock module."""

import pytest

from src.publisher.errors import RunLockError
from src.publisher.run_lock import HAS_FCNTL, RunLock


class TestRunLock:
    """Test cases for the state directory run lock."""

    def test_creates_lock_file(self, tmp_path):
        """Acquiring creates the state directory and lock file."""
        state_dir = tmp_path / "state"

        with RunLock(str(state_dir)):
            assert (state_dir / "run.lock").exists()

    def test_release_is_idempotent(self, tmp_path):
        """Releasing twice, or without acquiring, is harmless."""
        lock = RunLock(str(tmp_path))
        lock.release()
        lock.acquire()
        lock.release()
        lock.release()

        with RunLock(str(tmp_path), timeout=0.2):
            pass

    @pytest.mark.skipif(not HAS_FCNTL, reason="fcntl not available on this platform")
    def test_second_run_times_out(self, tmp_path):
        """A second lock on the same directory fails after the timeout."""
        with RunLock(str(tmp_path)):
            second = RunLock(str(tmp_path), timeout=0.2)
            with pytest.raises(RunLockError) as exc_info:
                second.acquire()

        assert exc_info.value.timeout == 0.2
        assert "run.lock" in exc_info.value.lock_path

    @pytest.mark.skipif(not HAS_FCNTL, reason="fcntl not available on this platform")
    def test_lock_available_after_release(self, tmp_path):
        """Once the first run ends, the next one gets the lock."""
        with RunLock(str(tmp_path)):
            pass

        with RunLock(str(tmp_path), timeout=0.2):
            with pytest.raises(RunLockError):
                RunLock(str(tmp_path), timeout=0.2).acquire()
