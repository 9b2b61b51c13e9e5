"""
Run lock for loopguard.

Two runs must never work against the same state directory at once. The
trigger pipeline is expected to serialize runs; this flock makes an
overlapping local invocation fail fast instead of racing.

The lock file holds the pid of the current holder. It is never deleted:
deleting would let two processes hold "exclusive" locks on different
inodes with the same path.
"""

import fcntl
import logging
import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0


class LockTimeout(Exception):
    """Another run holds the lock."""

    def __init__(self, lock_file: Path, timeout: int, holder_pid: Optional[int] = None):
        self.lock_file = lock_file
        self.holder_pid = holder_pid
        holder = f" (held by pid {holder_pid})" if holder_pid else ""
        super().__init__(f"Could not acquire run lock {lock_file} within {timeout}s{holder}")


def _holder_pid(fd) -> Optional[int]:
    fd.seek(0)
    content = fd.read().strip()
    return int(content) if content.isdigit() else None


def _try_lock(fd) -> bool:
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


@contextmanager
def run_lock(lock_file: Path, timeout: int = 0, poll_interval: float = POLL_INTERVAL):
    """
    Acquire the run lock for a state directory, yield, release on exit.

    timeout=0 fails immediately if another run holds the lock. SIGTERM
    while holding it exits through the finally block so the lock is
    released.

    Raises:
        LockTimeout: If the lock is still held after timeout seconds
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    # a+ so a waiting process does not clobber the holder's pid
    fd = open(lock_file, "a+")
    deadline = time.monotonic() + timeout
    while not _try_lock(fd):
        if time.monotonic() >= deadline:
            holder = _holder_pid(fd)
            fd.close()
            raise LockTimeout(lock_file, timeout, holder)
        time.sleep(poll_interval)

    fd.seek(0)
    fd.truncate()
    fd.write(f"{os.getpid()}\n")
    fd.flush()
    logger.debug(f"[LOCK] Acquired {lock_file}")

    previous_sigterm = signal.signal(signal.SIGTERM, lambda *_: sys.exit(1))
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous_sigterm)
        fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()
        logger.debug(f"[LOCK] Released {lock_file}")
