"""Login Flow - sequences the risk pipeline into one authentication decision.

Stages, each a potential early exit:

    CREDENTIAL_CHECK    unknown email / bad password -> InvalidCredentials
    FINGERPRINT_EVAL    always proceeds
    SPOOF_CHECK         spoof risk above block threshold -> suspend, SuspiciousActivity
    GEO_CHECK           impossible travel -> OTP challenge
    TRUST_SCORE         always proceeds (runs concurrently with GEO_CHECK)
    DEVICE_DECISION     unknown device with low trust -> OTP challenge
    ALERT_EVALUATION    side effects only
    SESSION_ENFORCEMENT plan limit, oldest-created evicted first
    TOKEN_ISSUANCE      success
"""

import atexit
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from shareguard.alerts.context import AlertContext
from shareguard.alerts.engine import AlertRuleEngine
from shareguard.auth.otp import OTPService
from shareguard.auth.passwords import PasswordHasher
from shareguard.auth.suspensions import Suspensions
from shareguard.auth.tokens import TokenService
from shareguard.common.constants import DAY_SECONDS, TrustConstants
from shareguard.common.exceptions import (
    AccountSuspended,
    DependencyUnavailable,
    InvalidCredentials,
    SuspiciousActivity,
)
from shareguard.data.schemas import (
    DeviceRecord,
    FingerprintResult,
    GeoCheckResult,
    SessionLogEntry,
    TrustScoreRecord,
    User,
)
from shareguard.fingerprint.generator import FingerprintGenerator
from shareguard.geo.detector import GeoAnomalyDetector
from shareguard.persistence.repository import (
    DeviceRepository,
    SessionLogRepository,
    UserRepository,
)
from shareguard.sessions.registry import SessionRegistry, max_sessions_for
from shareguard.trust.scorer import TrustScorer, is_private_address

logger = logging.getLogger(__name__)


class LoginStage(str, Enum):
    CREDENTIAL_CHECK = "CREDENTIAL_CHECK"
    FINGERPRINT_EVAL = "FINGERPRINT_EVAL"
    SPOOF_CHECK = "SPOOF_CHECK"
    GEO_CHECK = "GEO_CHECK"
    TRUST_SCORE = "TRUST_SCORE"
    DEVICE_DECISION = "DEVICE_DECISION"
    ALERT_EVALUATION = "ALERT_EVALUATION"
    SESSION_ENFORCEMENT = "SESSION_ENFORCEMENT"
    TOKEN_ISSUANCE = "TOKEN_ISSUANCE"


@dataclass
class LoginRequest:
    """Everything the pipeline needs from one login attempt."""
    email: str
    password: str
    headers: Mapping[str, str] = field(default_factory=dict)
    client_fingerprint: Optional[Dict[str, Any]] = None
    remote_addr: Optional[str] = None


class LoginSuccess(BaseModel):
    token: str
    device_id: str
    trust_score: Dict[str, Any]
    active_sessions: int
    max_sessions: int
    evicted: List[str] = Field(default_factory=list, description="Device ids of evicted sessions")
    stage: LoginStage = LoginStage.TOKEN_ISSUANCE


class LoginChallenge(BaseModel):
    """OTP required. Not an error: a valid terminal state."""
    otp_required: bool = True
    reason: Optional[str] = None
    trust_score: Optional[Dict[str, Any]] = None
    stage: LoginStage


LoginOutcome = Union[LoginSuccess, LoginChallenge]


# Module-level shared executor for the concurrent geo/trust stage
_shared_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _get_shared_executor(max_workers: int = 4) -> ThreadPoolExecutor:
    global _shared_executor
    with _executor_lock:
        if _shared_executor is None:
            _shared_executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="LoginRiskWorker",
            )
            atexit.register(_shutdown_shared_executor)
            logger.info(f"Created shared login risk executor with {max_workers} workers")
    return _shared_executor


def _shutdown_shared_executor() -> None:
    global _shared_executor
    if _shared_executor is not None:
        _shared_executor.shutdown(wait=True, cancel_futures=False)
        _shared_executor = None


class LoginOrchestrator:
    """Runs the login pipeline for one request at a time per call.

    Instances hold no per-request state and may be shared across threads.
    """

    NEW_DEVICE_OTP_THRESHOLD = TrustConstants.NEW_DEVICE_OTP_THRESHOLD

    def __init__(
        self,
        users: UserRepository,
        devices: DeviceRepository,
        session_log: SessionLogRepository,
        fingerprints: FingerprintGenerator,
        geo: GeoAnomalyDetector,
        trust: TrustScorer,
        sessions: SessionRegistry,
        alerts: AlertRuleEngine,
        suspensions: Suspensions,
        otp: OTPService,
        tokens: TokenService,
        passwords: PasswordHasher,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Optional[Callable[[], float]] = None,
        scoring_timezone: str = "UTC",
        suspension_seconds: Optional[int] = None,
    ):
        self._users = users
        self._devices = devices
        self._session_log = session_log
        self._fingerprints = fingerprints
        self._geo = geo
        self._trust = trust
        self._sessions = sessions
        self._alerts = alerts
        self._suspensions = suspensions
        self._otp = otp
        self._tokens = tokens
        self._passwords = passwords
        self._executor = executor or _get_shared_executor()
        self._clock = clock or time.time
        self._tz = ZoneInfo(scoring_timezone)
        self._suspension_seconds = suspension_seconds

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def authenticate(self, request: LoginRequest) -> LoginOutcome:
        """Run the full pipeline.

        Returns:
            LoginSuccess or LoginChallenge

        Raises:
            AccountSuspended: User is currently suspended
            InvalidCredentials: Unknown email or wrong password
            SuspiciousActivity: Spoofing or automation detected
        """
        fingerprint = self._fingerprints.generate(
            request.headers, request.client_fingerprint, request.remote_addr
        )
        device_id = fingerprint.device_id
        ip_address = str(fingerprint.components.get("ip") or "")

        # ----- CREDENTIAL_CHECK -----
        user = self._users.get_by_email(request.email)
        if user is not None and self._suspensions.is_blocked(user.user_id):
            raise AccountSuspended(user.user_id)
        if user is None or not self._passwords.verify(request.password, user.password_hash):
            self._safe(lambda: self._trust.signals.record_failed_attempt(device_id), "record_failed_attempt")
            logger.info("Login rejected: invalid credentials", extra={"device_id": device_id})
            raise InvalidCredentials()

        # ----- FINGERPRINT_EVAL -----
        self._safe(lambda: self._trust.signals.track_device_user(device_id, user.user_id), "track_device_user")
        is_new_device = self._devices.get(user.user_id, device_id) is None

        # ----- SPOOF_CHECK -----
        assessment = self._fingerprints.assess_spoofing(fingerprint.components)
        if assessment.should_block:
            self._suspensions.block(user.user_id, self._suspension_seconds)
            logger.warning(
                "Login denied: spoofing suspected",
                extra={"user_id": user.user_id, "risk_score": assessment.risk_score},
            )
            raise SuspiciousActivity(warnings=assessment.warnings)

        # ----- GEO_CHECK + TRUST_SCORE -----
        geo_future = self._executor.submit(self._geo.check, user.user_id, ip_address)
        trust_future = self._executor.submit(self._trust.score, user.user_id, device_id, ip_address)
        geo_check = geo_future.result()
        trust = trust_future.result()

        if geo_check.is_impossible:
            self._otp.issue(user)
            self._evaluate_alerts(user, fingerprint, ip_address, geo_check, trust, is_new_device)
            return LoginChallenge(
                reason=f"Unusual location detected. {geo_check.reason}. OTP sent to email.",
                stage=LoginStage.GEO_CHECK,
            )

        # ----- DEVICE_DECISION -----
        now = self._now()
        if is_new_device:
            if trust.score < self.NEW_DEVICE_OTP_THRESHOLD:
                self._otp.issue(user)
                self._evaluate_alerts(user, fingerprint, ip_address, geo_check, trust, is_new_device)
                return LoginChallenge(
                    reason="New device detected. OTP sent to email.",
                    trust_score=trust.summary(),
                    stage=LoginStage.DEVICE_DECISION,
                )
            self._devices.create(
                DeviceRecord(
                    user_id=user.user_id,
                    device_id=device_id,
                    user_agent=str(fingerprint.components.get("userAgent") or "") or None,
                    ip_address=ip_address or None,
                    trusted=True,
                    created_at=now,
                    last_login=now,
                )
            )
        else:
            self._devices.touch_last_login(user.user_id, device_id, now)

        # ----- ALERT_EVALUATION -----
        self._evaluate_alerts(user, fingerprint, ip_address, geo_check, trust, is_new_device)
        if self._suspensions.is_blocked(user.user_id):
            raise AccountSuspended(user.user_id)

        # ----- SESSION_ENFORCEMENT + TOKEN_ISSUANCE -----
        max_sessions = max_sessions_for(user.plan)
        token = self._tokens.issue(user.user_id, device_id, user.email)
        session, evicted = self._sessions.enforce_and_create(
            user.user_id,
            device_id,
            token,
            {
                "ip_address": ip_address or None,
                "user_agent": fingerprint.components.get("userAgent") or None,
                "trust_score": trust.score,
                "location": geo_check.current_location,
            },
            max_sessions,
        )
        for old in evicted:
            self._session_log.deactivate(user.user_id, old.device_id)
        self._session_log.record(
            SessionLogEntry(user_id=user.user_id, device_id=device_id, created_at=session.created_at)
        )

        self._safe(lambda: self._trust.signals.increment_login_count(device_id), "increment_login_count")
        self._geo.record_history(user.user_id, ip_address, device_id)

        active = len(self._sessions.list_active(user.user_id))
        logger.info(
            "Login succeeded",
            extra={
                "user_id": user.user_id,
                "device_id": device_id,
                "trust_score": trust.score,
                "active_sessions": active,
                "evicted": len(evicted),
            },
        )
        return LoginSuccess(
            token=token,
            device_id=device_id,
            trust_score=trust.summary(),
            active_sessions=active,
            max_sessions=max_sessions,
            evicted=[old.device_id for old in evicted],
        )

    def _evaluate_alerts(
        self,
        user: User,
        fingerprint: FingerprintResult,
        ip_address: str,
        geo_check: GeoCheckResult,
        trust: TrustScoreRecord,
        is_new_device: bool,
    ) -> None:
        context = self.build_alert_context(user, fingerprint, ip_address, geo_check, trust, is_new_device)
        try:
            self._alerts.evaluate(context)
        except Exception as e:
            logger.error(f"Alert evaluation failed: {e}", extra={"user_id": user.user_id})

    def build_alert_context(
        self,
        user: User,
        fingerprint: FingerprintResult,
        ip_address: str,
        geo_check: GeoCheckResult,
        trust: TrustScoreRecord,
        is_new_device: bool,
    ) -> AlertContext:
        """Gather the facts the alert rules are evaluated against."""
        device_id = fingerprint.device_id
        signals = self._trust.signals

        device_users = self._safe(lambda: len(signals.device_users(device_id)), "device_users", 0)
        failed_attempts = self._safe(lambda: signals.failed_attempts(device_id), "failed_attempts", 0)
        location_changes = self._geo.location_change_count(user.user_id)
        existing = self._safe(
            lambda: [s for s in self._sessions.list_active(user.user_id) if s.device_id != device_id],
            "list_active",
            [],
        )

        password_changed = False
        if user.password_changed_at is not None:
            changed_at = user.password_changed_at
            if changed_at.tzinfo is None:
                changed_at = changed_at.replace(tzinfo=timezone.utc)
            password_changed = self._clock() - changed_at.timestamp() < DAY_SECONDS

        return AlertContext(
            user_id=user.user_id,
            email=user.email,
            device_id=device_id,
            ip_address=ip_address or None,
            geo_check=geo_check,
            trust_score=trust.score,
            trust_level=trust.level.value,
            location=geo_check.current_location,
            is_new_device=is_new_device,
            device_user_count=device_users,
            active_sessions=len(existing) + 1,
            max_sessions=max_sessions_for(user.plan),
            failed_attempts=failed_attempts,
            is_vpn=is_private_address(ip_address) if ip_address else False,
            location_change_count=location_changes,
            password_changed=password_changed,
            login_hour=datetime.fromtimestamp(self._clock(), tz=self._tz).hour,
        )

    @staticmethod
    def _safe(operation: Callable[[], Any], name: str, default: Any = None) -> Any:
        """Run a store-backed side step, degrading to default if the store is down."""
        try:
            return operation()
        except DependencyUnavailable as e:
            logger.warning(f"{name} skipped: {e.message}")
            return default
