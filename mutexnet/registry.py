"""Thread-safe table of named mutexes shared by all connected clients."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace

from mutexnet.commands import BUFFER_SIZE, MAX_MSG_SIZE, MAX_MUTEX_NAME, MAX_MUTEXES

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_LIST_RESERVE = 200


class MutexError(Exception):
    """Base class of every registry failure."""


class InvalidNameError(MutexError):
    """The mutex name is empty."""


class MutexLimitError(MutexError):
    """The registry holds as many mutexes as it can."""


class MutexExistsError(MutexError):
    """A mutex with this name already exists."""


class MutexNotFoundError(MutexError):
    """No mutex has this name."""


class LockedByOtherError(MutexError):
    """The mutex is locked by another client."""


class OtherLockHeldError(MutexError):
    """Another client holds a lock on some mutex, so no new lock is granted."""


class AlreadyUnlockedError(MutexError):
    """The mutex is not locked."""


class NotOwnerError(MutexError):
    """The client does not own the mutex."""


@dataclass
class MutexRecord:
    """State of one named mutex."""

    name: str
    owner_pid: int = -1
    is_locked: bool = False
    lock_time: int = 0
    last_message: str = ""
    last_message_time: int = 0


@dataclass(frozen=True)
class SendReceipt:
    """Texts produced by a successful send."""

    response: str
    welcome: str


def _format_time(timestamp: float) -> str:
    return time.strftime(_TIME_FORMAT, time.localtime(timestamp))


class MutexRegistry:
    """Named mutexes with owners, guarded by one internal lock."""

    def __init__(self, capacity: int = MAX_MUTEXES) -> None:
        self.capacity = capacity
        self._guard = threading.Lock()
        self._records: list[MutexRecord] = []

    def reset(self) -> None:
        """Remove every mutex."""
        with self._guard:
            self._records.clear()

    def _find(self, name: str) -> MutexRecord | None:
        return next((record for record in self._records if record.name == name), None)

    def create(self, name: str, client_pid: int) -> MutexRecord:
        """Create an unlocked mutex owned by the client."""
        if not name:
            raise InvalidNameError("mutex name is empty")
        name = name[: MAX_MUTEX_NAME - 1]
        with self._guard:
            if len(self._records) >= self.capacity:
                raise MutexLimitError("Cannot create mutex: maximum limit reached")
            if self._find(name) is not None:
                raise MutexExistsError(f"Mutex '{name}' already exists")
            record = MutexRecord(name=name, owner_pid=client_pid)
            self._records.append(record)
            return replace(record)

    def lock(self, name: str, client_pid: int) -> None:
        """Lock the mutex for the client; locking one's own lock again succeeds."""
        with self._guard:
            if any(r.is_locked and r.owner_pid != client_pid for r in self._records):
                raise OtherLockHeldError("Cannot lock: mutex was locked by another client")
            record = self._find(name)
            if record is None:
                raise MutexNotFoundError(f"Mutex '{name}' not found")
            if record.is_locked:
                if record.owner_pid == client_pid:
                    return
                raise LockedByOtherError(f"Mutex '{name}' already locked by another client")
            record.is_locked = True
            record.owner_pid = client_pid
            record.lock_time = int(time.time())

    def unlock(self, name: str, client_pid: int) -> None:
        """Release the client's lock on the mutex."""
        with self._guard:
            record = self._find(name)
            if record is None:
                raise MutexNotFoundError(f"Mutex '{name}' not found")
            if not record.is_locked:
                raise AlreadyUnlockedError(f"Mutex '{name}' already unlocked")
            if record.owner_pid != client_pid:
                raise NotOwnerError(f"Cannot unlock: you don't own mutex '{name}'")
            record.is_locked = False
            record.lock_time = 0

    def delete(self, name: str, client_pid: int) -> None:
        """Remove the mutex unless another client holds it locked."""
        with self._guard:
            record = self._find(name)
            if record is None:
                raise MutexNotFoundError(f"Mutex '{name}' not found")
            if record.is_locked and record.owner_pid != client_pid:
                raise LockedByOtherError(
                    f"Cannot delete: mutex '{name}' is locked by another client"
                )
            self._records.remove(record)

    def list_table(self) -> str:
        """A text table of all mutexes, limited to the size of one reply."""
        with self._guard:
            text = (
                f"Mutex List (Total: {len(self._records)})\n"
                f"{'Name':<20} {'Owner PID':<10} {'Locked':<10} {'Lock Time':<20}\n"
                "--------------------------------------------------\n"
            )
            for record in self._records:
                if len(text) >= BUFFER_SIZE - _LIST_RESERVE:
                    break
                lock_time = _format_time(record.lock_time) if record.lock_time > 0 else "N/A"
                locked = "Yes" if record.is_locked else "No"
                text += (
                    f"{record.name:<20} {record.owner_pid:<10} {locked:<10} {lock_time:<20}\n"
                )
        return text[: BUFFER_SIZE - 1]

    def send(self, name: str, client_pid: int, message: str) -> SendReceipt:
        """Record a message through a mutex the client holds locked."""
        with self._guard:
            record = self._find(name)
            if record is None:
                raise MutexNotFoundError(f"Mutex '{name[:20]}' not found")
            if not record.is_locked or record.owner_pid != client_pid:
                raise NotOwnerError(f"Cannot send: you don't own mutex '{name[:20]}'")
            now = time.time()
            response = (
                f"Message received via mutex '{name[:20]}' from PID {client_pid}: "
                f"{message[:200]}"
            )
            welcome = (
                f"Welcome client PID {client_pid}! Sent message successfully at "
                f"{_format_time(now)}"
            )
            record.last_message = message[: MAX_MSG_SIZE - 1]
            record.last_message_time = int(now)
            return SendReceipt(response=response[: BUFFER_SIZE - 1], welcome=welcome)

    def has_permission(self, name: str, client_pid: int) -> bool:
        """True if the mutex exists and is unlocked or owned by the client."""
        with self._guard:
            record = self._find(name)
            if record is None:
                return False
            return not record.is_locked or record.owner_pid == client_pid

    def snapshot(self) -> list[MutexRecord]:
        """Copies of every record, in creation order."""
        with self._guard:
            return [replace(record) for record in self._records]