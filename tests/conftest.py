"""Shared fixtures.

Components take an injectable clock returning epoch seconds. FixedClock
starts at 2026-01-15 12:00 UTC and only moves when a test advances it.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Tuple

import pytest

from shareguard.api.service import AuthService
from shareguard.auth.otp import OTPSender
from shareguard.auth.passwords import PasswordHasher
from shareguard.common.config import Config, Environment, StoreBackend
from shareguard.data.schemas import GeoLocation
from shareguard.geo.resolver import StaticGeoResolver
from shareguard.store.memory import InMemoryKeyedStore


START = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

DELHI_IP = "198.51.100.10"
MUMBAI_IP = "198.51.100.20"
NEW_YORK_IP = "198.51.100.30"
LONDON_IP = "198.51.100.40"
UNRESOLVED_IP = "203.0.113.10"
PRIVATE_IP = "192.168.1.10"

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CLIENT_FINGERPRINT = {
    "screenResolution": "1920x1080",
    "timezone": "Asia/Kolkata",
    "canvas": "c4nv4s-hash",
    "webgl": "ANGLE (NVIDIA GeForce)",
    "fonts": "Arial,Calibri,Segoe UI",
    "platform": "Win32",
    "hardwareConcurrency": 8,
}


class FixedClock:
    """Callable clock that only moves when advanced."""

    def __init__(self, start: datetime = START):
        self.now = start.timestamp()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def datetime(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=timezone.utc)


class RecordingOTPSender(OTPSender):
    """Captures codes instead of delivering them."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def send(self, email: str, code: str) -> None:
        self.sent.append((email, code))

    def last_code(self, email: str) -> str:
        return [code for to, code in self.sent if to == email][-1]


def browser_headers(ip: str = UNRESOLVED_IP, user_agent: str = BROWSER_UA) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "X-Forwarded-For": ip,
        "Accept-Language": "en-IN,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Accept": "application/json",
    }


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(clock):
    return InMemoryKeyedStore(clock=clock)


@pytest.fixture
def locations():
    return {
        DELHI_IP: GeoLocation(country="IN", city="Delhi", latitude=28.70, longitude=77.10),
        MUMBAI_IP: GeoLocation(country="IN", city="Mumbai", latitude=19.08, longitude=72.88),
        NEW_YORK_IP: GeoLocation(country="US", city="New York", latitude=40.71, longitude=-74.01),
        LONDON_IP: GeoLocation(country="GB", city="London", latitude=51.51, longitude=-0.13),
    }


@pytest.fixture
def resolver(locations):
    return StaticGeoResolver(locations)


@pytest.fixture(scope="session")
def passwords():
    """Low-cost bcrypt so tests stay fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def otp_sender():
    return RecordingOTPSender()


@pytest.fixture
def service_config():
    return Config(
        environment=Environment.DEVELOPMENT,
        debug=False,
        admin_key="admin-secret",
        jwt_secret="test-secret",
        store_backend=StoreBackend.MEMORY,
        redis_url=None,
        geoip_database=None,
        scoring_timezone="UTC",
        mail_username=None,
        mail_password=None,
        mail_from=None,
    )


@pytest.fixture
def service(service_config, store, resolver, clock, passwords, otp_sender):
    """AuthService on the in-memory store with no external alert channels."""
    executor = ThreadPoolExecutor(max_workers=2)
    service = AuthService(
        config=service_config,
        store=store,
        resolver=resolver,
        otp_sender=otp_sender,
        channels={},
        passwords=passwords,
        executor=executor,
        clock=clock,
    )
    yield service
    service.shutdown()
    executor.shutdown(wait=True)
