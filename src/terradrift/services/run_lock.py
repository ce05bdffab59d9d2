"""Filesystem run lock preventing overlapping drift checks."""

import os
import tempfile
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from terradrift.constants import LOCK_FILE_NAME, STALE_LOCK_SECONDS
from terradrift.errors import LockContentionError, WatcherError
from terradrift.errors_catalog import actionable_error
from terradrift.models import RunLockHandle


class RunLock:
    """Exclusive-create lock marker shared by every process on the host.

    The marker's existence is the lock. Its content (PID and timestamp) is
    informational only. A marker whose mtime is older than ``stale_after``
    seconds is treated as abandoned and reclaimed once.
    """

    def __init__(
        self,
        logger,
        lock_dir: Optional[str] = None,
        stale_after: float = STALE_LOCK_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.logger = logger
        self.lock_path = os.path.join(lock_dir or tempfile.gettempdir(), LOCK_FILE_NAME)
        self.stale_after = stale_after
        self.clock = clock

    def acquire(self) -> RunLockHandle:
        for attempt in range(2):
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if attempt == 0 and self._is_stale() and self._reclaim_stale():
                    continue
                raise LockContentionError(actionable_error("lock_contention", path=self.lock_path))
            except OSError as exc:
                raise WatcherError(f"Failed to create lock file {self.lock_path}: {exc}") from exc

            handle = RunLockHandle(
                path=self.lock_path,
                pid=os.getpid(),
                acquired_at=datetime.now(timezone.utc),
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                    file_obj.write(f"PID: {handle.pid}\nTime: {handle.acquired_at.isoformat()}\n")
            except OSError as exc:
                self._remove()
                raise WatcherError(f"Failed to write lock file {self.lock_path}: {exc}") from exc

            self.logger.debug("Acquired run lock %s (pid %s)", self.lock_path, handle.pid)
            return handle

        raise LockContentionError(actionable_error("lock_contention", path=self.lock_path))

    def release(self, handle: Optional[RunLockHandle] = None):
        path = handle.path if handle else self.lock_path
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise WatcherError(f"Failed to remove lock file {path}: {exc}") from exc
        self.logger.debug("Released run lock %s", path)

    def force_release(self):
        try:
            self.release()
        except WatcherError as exc:
            self.logger.warning("Failed to force release lock: %s", exc)
            return
        self.logger.info("Force released run lock %s", self.lock_path)

    def _is_stale(self, path: Optional[str] = None) -> bool:
        path = path or self.lock_path
        try:
            modified = os.stat(path).st_mtime
        except FileNotFoundError:
            return True
        except OSError as exc:
            raise WatcherError(f"Could not inspect lock file {path}: {exc}") from exc
        return self.clock() - modified > self.stale_after

    def _reclaim_stale(self) -> bool:
        """Moves a stale marker aside; returns False if another run got there first.

        Renaming is atomic, so only one process can take a given marker. The
        moved file is checked again: a fresh one belongs to a process that
        already reclaimed the lock and is linked back into place.
        """
        aside = f"{self.lock_path}.stale-{os.getpid()}"
        try:
            os.rename(self.lock_path, aside)
        except FileNotFoundError:
            return True
        except OSError as exc:
            raise WatcherError(f"Failed to move stale lock file {self.lock_path}: {exc}") from exc

        try:
            if not self._is_stale(aside):
                try:
                    os.link(aside, self.lock_path)
                except FileExistsError:
                    pass
                except OSError as exc:
                    raise WatcherError(f"Failed to restore lock file {self.lock_path}: {exc}") from exc
                return False
            self.logger.warning("Removing stale lock file: %s", self.lock_path)
            return True
        finally:
            try:
                os.remove(aside)
            except FileNotFoundError:
                pass
            except OSError as exc:
                self.logger.warning("Failed to remove %s: %s", aside, exc)

    def _remove(self):
        try:
            os.remove(self.lock_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise WatcherError(f"Failed to remove lock file {self.lock_path}: {exc}") from exc
