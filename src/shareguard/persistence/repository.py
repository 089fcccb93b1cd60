"""Repositories - durable user, device and session-log records.

The login pipeline only needs lookup by id, lookup by composite key,
create, field updates and a "sessions created after T" query. Anything
that implements these interfaces (a document store, SQL, ...) can back it.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from shareguard.common.exceptions import UserAlreadyExists
from shareguard.data.schemas import DeviceRecord, SessionLogEntry, User


class UserRepository(ABC):

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def create(self, user: User) -> User:
        """Persist a new user.

        Raises:
            UserAlreadyExists: If the email is taken
        """
        pass

    @abstractmethod
    def update(self, user_id: str, **fields) -> Optional[User]:
        """Update selected fields. Returns the updated user or None."""
        pass

    @abstractmethod
    def list_all(self) -> List[User]:
        pass


class DeviceRepository(ABC):

    @abstractmethod
    def get(self, user_id: str, device_id: str) -> Optional[DeviceRecord]:
        pass

    @abstractmethod
    def create(self, device: DeviceRecord) -> DeviceRecord:
        pass

    @abstractmethod
    def touch_last_login(self, user_id: str, device_id: str, when: datetime) -> None:
        pass

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[DeviceRecord]:
        pass


class SessionLogRepository(ABC):

    @abstractmethod
    def record(self, entry: SessionLogEntry) -> None:
        pass

    @abstractmethod
    def deactivate(self, user_id: str, device_id: str) -> None:
        pass

    @abstractmethod
    def created_after(self, since: datetime) -> List[SessionLogEntry]:
        pass


class InMemoryUserRepository(UserRepository):

    def __init__(self):
        self._by_id: Dict[str, User] = {}
        self._lock = threading.RLock()

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self._by_id.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        needle = email.strip().lower()
        with self._lock:
            for user in self._by_id.values():
                if user.email.lower() == needle:
                    return user
        return None

    def create(self, user: User) -> User:
        with self._lock:
            if self.get_by_email(user.email) is not None:
                raise UserAlreadyExists(user.email)
            self._by_id[user.user_id] = user
        return user

    def update(self, user_id: str, **fields) -> Optional[User]:
        with self._lock:
            user = self._by_id.get(user_id)
            if user is None:
                return None
            updated = user.model_copy(update=fields)
            self._by_id[user_id] = updated
            return updated

    def list_all(self) -> List[User]:
        with self._lock:
            return list(self._by_id.values())


class InMemoryDeviceRepository(DeviceRepository):

    def __init__(self):
        self._devices: Dict[Tuple[str, str], DeviceRecord] = {}
        self._lock = threading.RLock()

    def get(self, user_id: str, device_id: str) -> Optional[DeviceRecord]:
        return self._devices.get((user_id, device_id))

    def create(self, device: DeviceRecord) -> DeviceRecord:
        with self._lock:
            self._devices[(device.user_id, device.device_id)] = device
        return device

    def touch_last_login(self, user_id: str, device_id: str, when: datetime) -> None:
        with self._lock:
            device = self._devices.get((user_id, device_id))
            if device is not None:
                self._devices[(user_id, device_id)] = device.model_copy(
                    update={"last_login": when}
                )

    def list_for_user(self, user_id: str) -> List[DeviceRecord]:
        with self._lock:
            return [d for (uid, _), d in self._devices.items() if uid == user_id]


class InMemorySessionLogRepository(SessionLogRepository):

    def __init__(self):
        self._entries: List[SessionLogEntry] = []
        self._lock = threading.RLock()

    def record(self, entry: SessionLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def deactivate(self, user_id: str, device_id: str) -> None:
        with self._lock:
            self._entries = [
                e.model_copy(update={"is_active": False})
                if e.user_id == user_id and e.device_id == device_id else e
                for e in self._entries
            ]

    def created_after(self, since: datetime) -> List[SessionLogEntry]:
        with self._lock:
            return [e for e in self._entries if e.created_at >= since]
