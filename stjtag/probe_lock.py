"""
Per-probe lock for exclusive sessions.

A session opened with ``exclusive=True`` holds an exclusive portalocker lock
on ``$STJTAG_RUN_DIR/stjtag-locks/<serial>.lock`` until it is closed, so two
processes cannot drive the same ST-LINK at once.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import IO, Optional

import portalocker

from stjtag.errors import ProbeBusyError

logger = logging.getLogger(__name__)


def lock_dir() -> Path:
    return Path(os.environ.get("STJTAG_RUN_DIR", tempfile.gettempdir())) / "stjtag-locks"


class ProbeLock:
    """Exclusive, non-blocking lock on one probe serial.

    Usage:
        with ProbeLock("066CFF535752877167012515"):
            ...  # drive the probe
    """

    def __init__(self, probe_id: str):
        self.probe_id = probe_id
        safe_name = probe_id.replace("/", "_").replace("\\", "_")
        self.path = lock_dir() / f"{safe_name}.lock"
        self._fh: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._fh is not None

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            ProbeBusyError: Another process holds it.
        """
        if self._fh is not None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Append mode keeps the previous owner's PID readable until we win.
        fh = open(self.path, "a+", encoding="utf-8")
        try:
            portalocker.lock(fh, portalocker.LOCK_EX | portalocker.LOCK_NB)
        except portalocker.LockException:
            fh.seek(0)
            owner = fh.read().strip()
            fh.close()
            owner_pid = int(owner) if owner.isdigit() else None
            logger.warning("Probe %s is locked by PID %s", self.probe_id, owner_pid or "unknown")
            raise ProbeBusyError(self.probe_id, owner_pid) from None

        fh.seek(0)
        fh.truncate()
        fh.write(str(os.getpid()))
        fh.flush()
        self._fh = fh
        logger.debug("Acquired probe lock %s", self.path)

    def release(self) -> None:
        """Release the lock. Safe to call more than once."""
        if self._fh is None:
            return
        try:
            self._fh.seek(0)
            self._fh.truncate()
            portalocker.unlock(self._fh)
        finally:
            self._fh.close()
            self._fh = None
        logger.debug("Released probe lock %s", self.path)

    def __enter__(self) -> "ProbeLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False
