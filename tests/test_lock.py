"""
Tests for the run lock.
"""

import os
from unittest.mock import patch

import pytest

from airbasix.utils.lock import LockFileError, RunLock, SyncAlreadyRunningError


@pytest.fixture
def lock_file(tmp_path):
    return tmp_path / "state" / "sync.lock"


class TestRunLock:
    """Tests for RunLock."""

    def test_acquire_writes_pid(self, lock_file):
        """Acquiring creates the lock file holding this process id."""
        lock = RunLock(lock_file)
        lock.acquire()
        try:
            assert lock.held is True
            assert lock.read() == os.getpid()
        finally:
            lock.release()

    def test_release_removes_file(self, lock_file):
        """Releasing deletes the lock file."""
        lock = RunLock(lock_file)
        lock.acquire()
        lock.release()
        assert lock.held is False
        assert not lock_file.exists()

    def test_release_when_not_held(self, lock_file):
        """Releasing an unheld lock is a no-op."""
        RunLock(lock_file).release()

    def test_context_manager(self, lock_file):
        """The lock is held inside the with block only."""
        with RunLock(lock_file) as lock:
            assert lock.held is True
            assert lock_file.exists()
        assert not lock_file.exists()

    def test_released_on_error(self, lock_file):
        """An exception inside the block still releases the lock."""
        with pytest.raises(RuntimeError):
            with RunLock(lock_file):
                raise RuntimeError("boom")
        assert not lock_file.exists()
        with RunLock(lock_file):
            pass

    def test_same_process_rejected(self, lock_file, tmp_path):
        """A second lock in the same process is rejected."""
        with RunLock(lock_file):
            with pytest.raises(SyncAlreadyRunningError):
                RunLock(tmp_path / "other.lock").acquire()

    def test_live_process_rejected(self, lock_file):
        """A lock file owned by a running process blocks acquisition."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("424242")
        lock = RunLock(lock_file)

        with patch.object(RunLock, "_is_process_running", return_value=True):
            with pytest.raises(SyncAlreadyRunningError) as exc_info:
                lock.acquire()

        assert "424242" in str(exc_info.value)
        assert lock.held is False
        assert lock_file.read_text() == "424242"
        # The in-process lock was released on failure
        with patch.object(RunLock, "_is_process_running", return_value=False):
            lock.acquire()
            lock.release()

    def test_stale_lock_replaced(self, lock_file, caplog):
        """A lock file left by a dead process is taken over."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("424242")

        with patch.object(RunLock, "_is_process_running", return_value=False):
            with RunLock(lock_file) as lock:
                assert lock.read() == os.getpid()

        assert "stale lock" in caplog.text

    def test_invalid_pid_raises(self, lock_file):
        """Garbage in the lock file is an error."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("not-a-pid")
        with pytest.raises(LockFileError):
            RunLock(lock_file).acquire()

    def test_read_without_file(self, lock_file):
        """read() returns None when there is no lock file."""
        assert RunLock(lock_file).read() is None

    def test_read_empty_file(self, lock_file):
        """read() returns None for a lock file whose PID is not written yet."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("")
        assert RunLock(lock_file).read() is None

    def test_create_file_does_not_overwrite(self, lock_file):
        """Creating the lock file fails if another run created it first."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("424242")

        assert RunLock(lock_file)._create_file() is False
        assert lock_file.read_text() == "424242"

    def test_create_file_writes_pid(self, lock_file):
        """Creating the lock file stores this process id."""
        lock_file.parent.mkdir(parents=True)
        assert RunLock(lock_file)._create_file() is True
        assert lock_file.read_text() == str(os.getpid())

    def test_empty_lock_file_treated_as_contended(self, lock_file):
        """A lock file another run has created but not yet written blocks acquisition."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("")
        lock = RunLock(lock_file)

        with patch("airbasix.utils.lock.time.sleep"):
            with pytest.raises(SyncAlreadyRunningError):
                lock.acquire()

        assert lock.held is False
        assert lock_file.read_text() == ""

    def test_lock_taken_between_create_and_read(self, lock_file):
        """A run that loses the creation race sees the winner's PID."""
        lock = RunLock(lock_file)

        def winner_creates():
            lock_file.write_text("424242")
            return False

        with patch.object(RunLock, "_create_file", side_effect=winner_creates):
            with patch.object(RunLock, "_is_process_running", return_value=True):
                with pytest.raises(SyncAlreadyRunningError) as exc_info:
                    lock.acquire()

        assert "424242" in str(exc_info.value)
        assert lock_file.read_text() == "424242"

    def test_vanished_lock_file_retried(self, lock_file):
        """If the other run's file disappears before it is read, creation is retried."""
        lock = RunLock(lock_file)
        real_create = RunLock._create_file
        attempts = []

        def create_after_first_miss(self):
            attempts.append(1)
            if len(attempts) == 1:
                return False
            return real_create(self)

        with patch.object(RunLock, "_create_file", create_after_first_miss):
            with patch("airbasix.utils.lock.time.sleep"):
                lock.acquire()
        try:
            assert len(attempts) == 2
            assert lock.read() == os.getpid()
        finally:
            lock.release()

    def test_is_process_running(self):
        """The current process is reported as running."""
        assert RunLock._is_process_running(os.getpid()) is True

    def test_dead_process(self):
        """A missing process is reported as not running."""
        with patch("os.kill", side_effect=ProcessLookupError):
            assert RunLock._is_process_running(999999) is False
