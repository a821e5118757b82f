"""Exclusive lock that keeps publish runs against one state directory apart."""

import logging
import time
from pathlib import Path
from typing import Optional

# Import fcntl for POSIX file locking (not available on Windows)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

from .errors import RunLockError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = 'run.lock'
POLL_INTERVAL = 0.1


class RunLock:
    """Advisory ``flock`` on ``<state_dir>/run.lock`` held for a whole run.

    The identity map and snapshot files are rewritten during a run, so two
    runs against the same vault would overwrite each other's state.

    Example:
        >>> with RunLock(".confluence-publish", timeout=5):
        ...     orchestrator.export("index.md")

    Raises:
        RunLockError: If the lock is still held after timeout seconds
    """

    def __init__(self, state_dir: str, timeout: float = 30.0):
        self.lock_path = Path(state_dir) / LOCK_FILE_NAME
        self.timeout = timeout
        self._lock_file = None
        self._acquired = False

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_file = open(self.lock_path, 'w')

        if not HAS_FCNTL:
            logger.warning(
                "File locking not available on this platform. "
                "Concurrent publish runs may corrupt the identity map."
            )
            return

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                self._acquired = True
                logger.debug(f"Run lock acquired: {self.lock_path}")
                return
            except OSError:
                if time.time() - start_time > self.timeout:
                    self._lock_file.close()
                    self._lock_file = None
                    raise RunLockError(str(self.lock_path), self.timeout)
                time.sleep(POLL_INTERVAL)

    def release(self) -> None:
        if self._lock_file is None:
            return
        if HAS_FCNTL and self._acquired:
            try:
                fcntl.flock(self._lock_file.fileno(), fcntl.LOCK_UN)
                logger.debug("Run lock released")
            except OSError as e:
                logger.warning(f"Failed to release run lock: {e}")
        self._lock_file.close()
        self._lock_file = None
        self._acquired = False

    def __enter__(self) -> 'RunLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> Optional[bool]:
        self.release()
        return None
