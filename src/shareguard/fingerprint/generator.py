"""Fingerprint Generator - derives a stable device identity from a request.

The device id is a SHA-256 digest over every component, sorted by key and
rendered as key:value pairs joined with "|". Identical component sets always
hash to the same id; changing any single component changes it.
"""

import hashlib
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from user_agents import parse as parse_user_agent

from shareguard.common.constants import FingerprintConstants
from shareguard.data.schemas import (
    FingerprintChange,
    FingerprintDiff,
    FingerprintMetadata,
    FingerprintResult,
    SpoofAssessment,
)
from shareguard.data.schemas.fingerprint import ComponentValue

logger = logging.getLogger(__name__)


CLIENT_KEYS = (
    "screenResolution", "timezone", "timezoneOffset", "canvas", "webgl",
    "fonts", "plugins", "audioContext", "platform", "hardwareConcurrency",
    "deviceMemory", "colorDepth", "pixelRatio",
)

# Declared platform prefix -> OS family names it is consistent with
PLATFORM_OS_FAMILIES = {
    "win": ("windows",),
    "mac": ("mac", "os x"),
    "linux": ("linux", "ubuntu", "debian", "fedora", "android", "chrome os"),
}

# Stability weights (component keys that must all be present, points)
STABILITY_WEIGHTS = (
    (("canvas",), 20),
    (("webgl",), 20),
    (("fonts",), 15),
    (("audioContext",), 10),
    (("browser", "browserVersion"), 10),
    (("os", "osVersion"), 10),
    (("screenResolution",), 10),
    (("hardwareConcurrency",), 5),
)


def _known(family: Optional[str]) -> str:
    """ua-parser reports unknown families as "Other"."""
    if not family or family == "Other":
        return ""
    return family


def _engine(user_agent: str) -> str:
    if "Trident/" in user_agent:
        return "Trident"
    if "Gecko/" in user_agent and "Firefox" in user_agent:
        return "Gecko"
    if "AppleWebKit" in user_agent:
        return "Blink" if "Chrome/" in user_agent or "Chromium/" in user_agent else "WebKit"
    return ""


def _cpu(user_agent: str) -> str:
    lowered = user_agent.lower()
    for token, arch in (
        ("x86_64", "amd64"), ("win64", "amd64"), ("x64", "amd64"),
        ("aarch64", "arm64"), ("arm64", "arm64"), ("armv7", "arm"),
        ("i686", "ia32"),
    ):
        if token in lowered:
            return arch
    return ""


def compute_device_id(components: Mapping[str, Any]) -> str:
    """Hash a component mapping into a device id."""
    canonical = "|".join(
        f"{key}:{components[key]}" for key in sorted(components)
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class FingerprintGenerator:
    """Builds device fingerprints and assesses them for spoofing."""

    SUSPICIOUS_THRESHOLD = FingerprintConstants.SUSPICIOUS_THRESHOLD
    BLOCK_THRESHOLD = FingerprintConstants.BLOCK_THRESHOLD

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time

    def generate(
        self,
        headers: Mapping[str, str],
        client_fingerprint: Optional[Mapping[str, Any]] = None,
        remote_addr: Optional[str] = None,
    ) -> FingerprintResult:
        """Generate a fingerprint from request headers and client signals.

        Args:
            headers: Request headers (any case)
            client_fingerprint: Signals collected by the browser, if any
            remote_addr: Socket peer address, used when no X-Forwarded-For

        Returns:
            FingerprintResult with device_id, components and display metadata
        """
        lowered = {str(k).lower(): str(v) for k, v in (headers or {}).items()}
        client = dict(client_fingerprint or {})

        user_agent = lowered.get("user-agent", "")
        ua = parse_user_agent(user_agent)

        forwarded = lowered.get("x-forwarded-for", "")
        ip = forwarded.split(",")[0].strip() if forwarded else (remote_addr or "")

        if ua.is_tablet:
            device_type = "tablet"
        elif ua.is_mobile:
            device_type = "mobile"
        else:
            device_type = "desktop"

        components: Dict[str, ComponentValue] = {
            "userAgent": user_agent,
            "ip": ip,
            "browser": _known(ua.browser.family),
            "browserVersion": ua.browser.version_string,
            "engine": _engine(user_agent),
            "os": _known(ua.os.family),
            "osVersion": ua.os.version_string,
            "deviceType": device_type,
            "deviceVendor": ua.device.brand or "",
            "deviceModel": ua.device.model or "",
            "cpu": _cpu(user_agent),
            "acceptLanguage": lowered.get("accept-language", ""),
            "acceptEncoding": lowered.get("accept-encoding", ""),
            "accept": lowered.get("accept", ""),
        }
        for key in CLIENT_KEYS:
            value = client.get(key)
            components[key] = value if isinstance(value, (str, int, float)) and value != "" else ""

        metadata = FingerprintMetadata(
            browser_info=f"{components['browser']} {components['browserVersion']}".strip(),
            os_info=f"{components['os']} {components['osVersion']}".strip(),
            device_info=device_type,
            generated_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )

        return FingerprintResult(
            device_id=compute_device_id(components),
            components=components,
            metadata=metadata,
        )

    def assess_spoofing(self, components: Mapping[str, Any]) -> SpoofAssessment:
        """Score how likely the components come from a spoofed or automated client."""
        warnings: List[str] = []
        risk = 0

        user_agent = str(components.get("userAgent") or "")
        if len(user_agent) < FingerprintConstants.MIN_USER_AGENT_LENGTH:
            warnings.append("Suspicious user agent")
            risk += 30

        ua_lower = user_agent.lower()
        for token in FingerprintConstants.AUTOMATION_TOKENS:
            if token in ua_lower:
                warnings.append(f"Automation detected: {token}")
                risk += 50

        platform = str(components.get("platform") or "").lower()
        os_family = str(components.get("os") or "").lower()
        if platform and os_family:
            for prefix, families in PLATFORM_OS_FAMILIES.items():
                if prefix in platform and not any(f in os_family for f in families):
                    warnings.append("Platform-OS mismatch")
                    risk += 25
                    break

        if not any(components.get(key) for key in ("canvas", "webgl", "fonts")):
            warnings.append("No client-side fingerprint provided")
            risk += 40

        risk = min(100, risk)
        return SpoofAssessment(
            is_suspicious=risk > self.SUSPICIOUS_THRESHOLD,
            should_block=risk > self.BLOCK_THRESHOLD,
            risk_score=risk,
            warnings=warnings,
        )

    def stability_score(self, components: Mapping[str, Any]) -> int:
        """How reliable the fingerprint is likely to be across sessions (0-100).

        Informational only; not used in authorization decisions.
        """
        score = sum(
            points for keys, points in STABILITY_WEIGHTS
            if all(components.get(key) for key in keys)
        )
        return min(100, score)

    def compare(
        self,
        old_components: Mapping[str, Any],
        new_components: Mapping[str, Any],
    ) -> FingerprintDiff:
        """Compare critical components of two fingerprints."""
        changes = [
            FingerprintChange(
                field=key,
                old_value=old_components[key],
                new_value=new_components[key],
            )
            for key in FingerprintConstants.CRITICAL_KEYS
            if old_components.get(key)
            and new_components.get(key)
            and old_components[key] != new_components[key]
        ]

        if len(changes) >= 3:
            level = "HIGH"
        elif changes:
            level = "MEDIUM"
        else:
            level = "LOW"

        return FingerprintDiff(changes=changes, suspicion_level=level)
