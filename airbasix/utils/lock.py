"""
Run lock preventing overlapping sync runs.

A sync run reads the full source table and then prunes the target
collection based on what it saw. Two runs interleaving would race on the
same identifier set, so each run holds a PID file for its duration.
Within one process a threading.Lock guards the same section.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from types import TracebackType

from airbasix.exceptions import AirbasixError
from airbasix.utils.paths import DEFAULT_CONFIG_DIR

logger = logging.getLogger(__name__)

# Default lock file location
DEFAULT_LOCK_FILE = DEFAULT_CONFIG_DIR / "sync.lock"

# Attempts at creating the lock file before giving up
ACQUIRE_ATTEMPTS = 3
ACQUIRE_RETRY_DELAY = 0.1  # seconds

_process_lock = threading.Lock()


class LockFileError(AirbasixError):
    """Raised when the lock file cannot be read, written or removed."""

    code = "lock_file_error"


class SyncAlreadyRunningError(AirbasixError):
    """Raised when another sync run already holds the lock."""

    code = "sync_already_running"


class RunLock:
    """
    PID-file based mutex for sync runs.

    Usage:
        with RunLock(Path("~/.airbasix/sync.lock")):
            engine.run_sync()

    The lock file is created exclusively, so of two runs starting together
    only one gets it. A lock file left behind by a process that no longer
    exists is treated as stale and replaced.
    """

    def __init__(self, lock_file: Path | None = None):
        self.lock_file = Path(lock_file).expanduser() if lock_file else DEFAULT_LOCK_FILE
        self._held = False

    def acquire(self) -> None:
        """
        Take the lock.

        Raises:
            SyncAlreadyRunningError: If another run holds the lock.
            LockFileError: If the lock file cannot be written.
        """
        if not _process_lock.acquire(blocking=False):
            raise SyncAlreadyRunningError("A sync run is already in progress")

        try:
            self._acquire_file()
        except BaseException:
            _process_lock.release()
            raise

        self._held = True
        logger.debug(f"Acquired run lock: {self.lock_file} (PID: {os.getpid()})")

    def _acquire_file(self) -> None:
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LockFileError(
                f"Failed to create lock directory {self.lock_file.parent}: {e}"
            ) from e

        for _ in range(ACQUIRE_ATTEMPTS):
            if self._create_file():
                return

            existing_pid = self.read()
            if existing_pid is None:
                # Removed, or created but not yet written, by another run
                time.sleep(ACQUIRE_RETRY_DELAY)
                continue

            if existing_pid != os.getpid() and self._is_process_running(existing_pid):
                raise SyncAlreadyRunningError(
                    f"Sync already running with PID {existing_pid} "
                    f"(lock file {self.lock_file})"
                )

            # Another run may have replaced the stale file in the meantime
            if self.read() != existing_pid:
                continue
            logger.warning(
                f"Removing stale lock file (process {existing_pid} not running)"
            )
            self._remove_file()

        raise SyncAlreadyRunningError(
            f"Could not take lock file {self.lock_file} after "
            f"{ACQUIRE_ATTEMPTS} attempts; another run is starting"
        )

    def _create_file(self) -> bool:
        """
        Create the lock file holding this process id.

        Returns:
            False if the file already exists.

        Raises:
            LockFileError: If the file cannot be created for another reason.
        """
        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise LockFileError(
                f"Failed to create lock file {self.lock_file}: {e}"
            ) from e

        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
        except OSError as e:
            os.close(fd)
            self._remove_file()
            raise LockFileError(
                f"Failed to write lock file {self.lock_file}: {e}"
            ) from e
        os.close(fd)
        return True

    def release(self) -> None:
        """Release the lock. Does nothing if it is not held."""
        if not self._held:
            return

        try:
            self._remove_file()
        finally:
            self._held = False
            _process_lock.release()
            logger.debug(f"Released run lock: {self.lock_file}")

    def read(self) -> int | None:
        """
        Read the PID stored in the lock file.

        Returns:
            The PID, or None if there is no lock file or it is still empty.

        Raises:
            LockFileError: If the file exists but cannot be read or parsed.
        """
        try:
            content = self.lock_file.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise LockFileError(
                f"Failed to read lock file {self.lock_file}: {e}"
            ) from e

        if not content:
            return None

        try:
            return int(content)
        except ValueError as e:
            raise LockFileError(
                f"Invalid PID in lock file {self.lock_file}: {content!r}"
            ) from e

    @property
    def held(self) -> bool:
        return self._held

    def _remove_file(self) -> None:
        try:
            self.lock_file.unlink(missing_ok=True)
        except OSError as e:
            raise LockFileError(
                f"Failed to remove lock file {self.lock_file}: {e}"
            ) from e

    @staticmethod
    def _is_process_running(pid: int) -> bool:
        try:
            # Signal 0 only checks for existence
            os.kill(pid, 0)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            # Exists, owned by someone else
            return True

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
