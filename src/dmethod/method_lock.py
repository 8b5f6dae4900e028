import errno
import fcntl
import os
from typing import Callable, Optional

from dmethod.exceptions import (
    MethodAreaLockedError,
    MethodAreaLockIOError,
    MethodAreaPermissionError,
)
from dmethod.util import _debug

FailureReporter = Callable[[str], None]

# Python documents that a conflicting non-blocking lockf() fails with either
# of these, depending on the OS.
_LOCK_CONTENTION_ERRNOS = frozenset({errno.EAGAIN, errno.EWOULDBLOCK, errno.EACCES})


class MethodLockGuard:
    """Holds the method area lock until the guard is released or its scope ends

    >>> # with lock_manager.acquire():
    >>> #     ...  # the access method area is locked here
    """

    __slots__ = ("_manager", "_released")

    def __init__(self, manager: "MethodLockManager") -> None:
        self._manager = manager
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._manager.release()

    def __enter__(self) -> "MethodLockGuard":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class MethodLockManager:
    """The exclusive advisory lock guarding the access method area

    The lock file is opened lazily on the first acquire and the descriptor is
    kept open afterwards, so later acquisitions re-lock the same descriptor.
    The file itself is never removed.
    """

    def __init__(
        self,
        admindir: str,
        lock_filename: str,
        failure_reporter: FailureReporter,
    ) -> None:
        self._admindir = admindir
        self._lock_filename = lock_filename
        self._failure_reporter = failure_reporter
        self._lock_path: Optional[str] = None
        self._fd: Optional[int] = None

    @property
    def lock_path(self) -> str:
        lock_path = self._lock_path
        if lock_path is None:
            lock_path = os.path.join(self._admindir, self._lock_filename)
            self._lock_path = lock_path
        return lock_path

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def _open_lock_file(self) -> int:
        fd = self._fd
        if fd is not None:
            return fd
        lock_path = self.lock_path
        try:
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o660)
        except OSError as e:
            if e.errno in (errno.EPERM, errno.EACCES):
                raise MethodAreaPermissionError(
                    "requested operation requires superuser privilege"
                ) from e
            raise MethodAreaLockIOError(
                "unable to open/create access method lockfile"
            ) from e
        self._fd = fd
        return fd

    def acquire(self) -> MethodLockGuard:
        fd = self._open_lock_file()
        try:
            fcntl.lockf(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            if e.errno in _LOCK_CONTENTION_ERRNOS:
                raise MethodAreaLockedError(
                    "the access method area is already locked"
                ) from e
            raise MethodAreaLockIOError("unable to lock access method area") from e
        _debug(f"Locked the access method area via {self.lock_path}")
        return MethodLockGuard(self)

    def release(self) -> None:
        fd = self._fd
        assert fd is not None, "release() called without the lock file being open"
        try:
            fcntl.lockf(fd, fcntl.LOCK_UN)
        except OSError:
            self._failure_reporter("unable to unlock access method area")
            return
        _debug(f"Unlocked the access method area via {self.lock_path}")

    def close(self) -> None:
        fd = self._fd
        if fd is not None:
            self._fd = None
            os.close(fd)
