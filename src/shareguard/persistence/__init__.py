"""Persistence - repositories for users, devices and the session log."""

from shareguard.persistence.repository import (
    DeviceRepository,
    InMemoryDeviceRepository,
    InMemorySessionLogRepository,
    InMemoryUserRepository,
    SessionLogRepository,
    UserRepository,
)

__all__ = [
    "UserRepository",
    "DeviceRepository",
    "SessionLogRepository",
    "InMemoryUserRepository",
    "InMemoryDeviceRepository",
    "InMemorySessionLogRepository",
]
