from __future__ import annotations

import logging
import os
import time
import uuid
from pathlib import Path

from selfheal.core.exceptions import ReportLockTimeout
from selfheal.utils.wait import wait_until

log = logging.getLogger(__name__)


class FileLock:
    """Advisory lock held by creating ``<path>`` exclusively.

    Lock files older than ``stale_after`` seconds are treated as abandoned by
    a crashed holder and removed.
    """

    def __init__(self, path: str | Path, timeout: float = 30.0, stale_after: float = 300.0) -> None:
        self.path = Path(path)
        self.timeout = timeout
        self.stale_after = stale_after
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not wait_until(self._try_acquire, self.timeout, interval=0.05):
            raise ReportLockTimeout(f"Could not acquire {self.path} within {self.timeout}s")
        self._held = True

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            log.warning("Lock file %s vanished before release", self.path)

    def _try_acquire(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            self._break_if_stale()
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        return True

    def _break_if_stale(self) -> None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return
        age = time.time() - stat.st_mtime
        if age <= self.stale_after:
            return
        # Renaming is atomic, so only one waiter can claim a given lock file.
        claimed = self.path.with_name(f"{self.path.name}.stale-{os.getpid()}-{uuid.uuid4().hex[:8]}")
        try:
            os.rename(self.path, claimed)
        except FileNotFoundError:
            return
        current = os.stat(claimed)
        if (current.st_ino, current.st_mtime_ns) == (stat.st_ino, stat.st_mtime_ns):
            log.warning("Removing stale lock %s (%.0fs old)", self.path, age)
        else:
            # Another waiter replaced the stale lock first; hand its fresh lock back.
            try:
                os.link(claimed, self.path)
            except OSError as exc:
                log.warning("Could not restore lock %s taken over by another process: %s", self.path, exc)
        claimed.unlink(missing_ok=True)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
