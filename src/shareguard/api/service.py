"""Auth Service - Core business logic behind the HTTP gateway.

Wires the risk pipeline from configuration and exposes one method per
endpoint. The gateway only translates between HTTP and these calls.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from shareguard.admin.dashboard import Dashboard
from shareguard.alerts.actions import build_actions
from shareguard.alerts.channels import (
    AlertChannel,
    DiscordChannel,
    Mailer,
    SlackChannel,
    WebhookChannel,
    build_email_channel,
)
from shareguard.alerts.dispatcher import BackgroundDispatcher
from shareguard.alerts.engine import AlertRuleEngine
from shareguard.alerts.rules import load_rules
from shareguard.alerts.store import AlertStore, FlagRegistry
from shareguard.auth import (
    EmailOTPSender,
    LoggingOTPSender,
    OTPSender,
    OTPService,
    PasswordHasher,
    RateLimiter,
    Suspensions,
    TokenClaims,
    TokenService,
)
from shareguard.common.config import Config, get_config
from shareguard.common.exceptions import (
    AccountSuspended,
    InvalidCredentials,
    SessionNotFound,
    ValidationError,
)
from shareguard.data.schemas import ActionKind, DeviceRecord, Plan, Session, User
from shareguard.fingerprint.generator import FingerprintGenerator
from shareguard.geo.detector import GeoAnomalyDetector
from shareguard.geo.resolver import GeoIP2Resolver, GeoResolver, StaticGeoResolver
from shareguard.orchestration.login_flow import (
    LoginOrchestrator,
    LoginOutcome,
    LoginRequest,
)
from shareguard.persistence.repository import (
    DeviceRepository,
    InMemoryDeviceRepository,
    InMemorySessionLogRepository,
    InMemoryUserRepository,
    SessionLogRepository,
    UserRepository,
)
from shareguard.sessions.registry import SessionRegistry, max_sessions_for
from shareguard.store import KeyedStore, create_store
from shareguard.trust.scorer import TrustScorer

logger = logging.getLogger(__name__)


def client_address(headers: Mapping[str, str], remote_addr: Optional[str]) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    for key, value in headers.items():
        if key.lower() == "x-forwarded-for" and value:
            return value.split(",")[0].strip()
    return remote_addr or "unknown"


def build_channels(config: Config) -> Dict[ActionKind, Optional[AlertChannel]]:
    """Instantiate every alert channel that has an endpoint configured."""
    timeout = config.http_timeout_seconds
    return {
        ActionKind.EMAIL: build_email_channel(config),
        ActionKind.SLACK: (
            SlackChannel(config.slack_webhook_url, timeout=timeout)
            if config.slack_webhook_url else None
        ),
        ActionKind.DISCORD: (
            DiscordChannel(config.discord_webhook_url, timeout=timeout)
            if config.discord_webhook_url else None
        ),
        ActionKind.WEBHOOK: (
            WebhookChannel(config.alert_webhook_url, secret=config.alert_webhook_secret, timeout=timeout)
            if config.alert_webhook_url else None
        ),
    }


class AuthService:
    """Service for signup, login, OTP approval and session management.

    Every collaborator can be injected; anything not supplied is built from
    configuration. Tests typically pass a store, a static geo resolver and a
    fixed clock.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[KeyedStore] = None,
        resolver: Optional[GeoResolver] = None,
        users: Optional[UserRepository] = None,
        devices: Optional[DeviceRepository] = None,
        session_log: Optional[SessionLogRepository] = None,
        otp_sender: Optional[OTPSender] = None,
        channels: Optional[Dict[ActionKind, Optional[AlertChannel]]] = None,
        passwords: Optional[PasswordHasher] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or get_config()
        self._clock = clock or time.time
        config = self.config

        self.store = store or create_store(config)
        self.resolver = resolver or self._build_resolver(config)
        self.users = users or InMemoryUserRepository()
        self.devices = devices or InMemoryDeviceRepository()
        self.session_log = session_log or InMemorySessionLogRepository()

        self.passwords = passwords or PasswordHasher()
        self.tokens = TokenService(
            config.jwt_secret,
            algorithm=config.jwt_algorithm,
            expiry_minutes=config.jwt_expiry_minutes,
            clock=self._clock,
        )
        self.suspensions = Suspensions(self.store, default_seconds=config.suspension_seconds)
        self.otp = OTPService(
            self.users,
            otp_sender or self._build_otp_sender(config),
            ttl_seconds=config.otp_ttl_seconds,
            clock=self._clock,
        )
        self.login_limiter = RateLimiter(
            self.store, "login", config.login_rate_limit, config.login_rate_window_seconds
        )
        self.otp_limiter = RateLimiter(
            self.store, "otp_verify", config.otp_verify_rate_limit, config.otp_verify_rate_window_seconds
        )
        self.signup_limiter = RateLimiter(
            self.store, "signup", config.signup_rate_limit, config.signup_rate_window_seconds
        )

        self.fingerprints = FingerprintGenerator(clock=self._clock)
        self.geo = GeoAnomalyDetector(self.store, self.resolver, clock=self._clock)
        self.trust = TrustScorer(
            self.store,
            self.devices,
            self.resolver,
            clock=self._clock,
            scoring_timezone=config.scoring_timezone,
        )
        self.sessions = SessionRegistry(self.store, clock=self._clock)

        self.alert_store = AlertStore(self.store, clock=self._clock)
        self.flags = FlagRegistry(self.store, clock=self._clock)
        self.dispatcher = BackgroundDispatcher(max_queue_size=config.dispatcher_queue_size)
        self.alerts = AlertRuleEngine(
            load_rules(),
            build_actions(
                self.dispatcher,
                self.sessions,
                self.suspensions,
                self.flags,
                channels=channels if channels is not None else build_channels(config),
                block_seconds=config.suspension_seconds,
            ),
            self.alert_store,
            clock=self._clock,
        )

        self.orchestrator = LoginOrchestrator(
            users=self.users,
            devices=self.devices,
            session_log=self.session_log,
            fingerprints=self.fingerprints,
            geo=self.geo,
            trust=self.trust,
            sessions=self.sessions,
            alerts=self.alerts,
            suspensions=self.suspensions,
            otp=self.otp,
            tokens=self.tokens,
            passwords=self.passwords,
            executor=executor,
            clock=self._clock,
            scoring_timezone=config.scoring_timezone,
            suspension_seconds=config.suspension_seconds,
        )
        self.dashboard = Dashboard(
            users=self.users,
            devices=self.devices,
            session_log=self.session_log,
            sessions=self.sessions,
            trust=self.trust,
            geo=self.geo,
            alerts=self.alert_store,
            flags=self.flags,
            suspensions=self.suspensions,
            clock=self._clock,
        )

    @staticmethod
    def _build_resolver(config: Config) -> GeoResolver:
        if config.geoip_database:
            return GeoIP2Resolver(config.geoip_database)
        logger.warning("No GeoIP database configured; locations will not resolve")
        return StaticGeoResolver()

    @staticmethod
    def _build_otp_sender(config: Config) -> OTPSender:
        if config.email_enabled:
            return EmailOTPSender(Mailer.from_config(config), ttl_seconds=config.otp_ttl_seconds)
        return LoggingOTPSender()

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def shutdown(self) -> None:
        """Flush pending alert deliveries and release resources."""
        self.dispatcher.shutdown()
        if isinstance(self.resolver, GeoIP2Resolver):
            self.resolver.close()
        logger.info("AuthService shutdown complete")

    # ----- public endpoints -----

    def signup(
        self,
        email: str,
        password: str,
        plan: Plan = Plan.BASIC,
        client_ip: Optional[str] = None,
    ) -> User:
        """Create an account.

        Raises:
            RateLimited: Too many signups from this address
            UserAlreadyExists: Email is taken
        """
        if client_ip:
            self.signup_limiter.hit(client_ip)
        user = User(
            user_id=f"usr_{uuid4().hex[:12]}",
            email=email.strip().lower(),
            password_hash=self.passwords.hash(password),
            plan=plan,
            created_at=self._now(),
        )
        created = self.users.create(user)
        logger.info("User signed up", extra={"user_id": created.user_id, "plan": plan.value})
        return created

    def login(
        self,
        email: str,
        password: str,
        headers: Mapping[str, str],
        client_fingerprint: Optional[Dict[str, Any]] = None,
        remote_addr: Optional[str] = None,
    ) -> LoginOutcome:
        """Rate-limit by client address, then run the risk pipeline."""
        self.login_limiter.hit(client_address(headers, remote_addr))
        return self.orchestrator.authenticate(
            LoginRequest(
                email=email.strip().lower(),
                password=password,
                headers=headers,
                client_fingerprint=client_fingerprint,
                remote_addr=remote_addr,
            )
        )

    def verify_otp(
        self,
        email: str,
        code: str,
        headers: Mapping[str, str],
        client_fingerprint: Optional[Dict[str, Any]] = None,
        remote_addr: Optional[str] = None,
    ) -> DeviceRecord:
        """Consume a pending OTP and approve the requesting device.

        The next login from the same device is a known-device login.

        Raises:
            RateLimited: Too many attempts for this email
            AccountSuspended: User is suspended
            InvalidCredentials: Unknown email
            InvalidOTP: Code missing, wrong or expired
        """
        email = email.strip().lower()
        self.otp_limiter.hit(email)

        user = self.users.get_by_email(email)
        if user is None:
            raise InvalidCredentials("User not found")
        if self.suspensions.is_blocked(user.user_id):
            raise AccountSuspended(user.user_id)

        self.otp.verify(user, code)

        fingerprint = self.fingerprints.generate(headers, client_fingerprint, remote_addr)
        now = self._now()
        existing = self.devices.get(user.user_id, fingerprint.device_id)
        if existing is not None:
            return existing

        device = self.devices.create(
            DeviceRecord(
                user_id=user.user_id,
                device_id=fingerprint.device_id,
                user_agent=str(fingerprint.components.get("userAgent") or "") or None,
                ip_address=str(fingerprint.components.get("ip") or "") or None,
                trusted=True,
                created_at=now,
                last_login=now,
            )
        )
        self.otp_limiter.reset(email)
        logger.info(
            "Device approved via OTP",
            extra={"user_id": user.user_id, "device_id": device.device_id},
        )
        return device

    def authenticate_token(self, token: str) -> TokenClaims:
        """Resolve a bearer token to its live session.

        Raises:
            InvalidToken: Missing, malformed or expired token
            AccountSuspended: User is suspended
            SessionNotFound: Session was logged out, evicted or expired
        """
        claims = self.tokens.verify(token)
        if self.suspensions.is_blocked(claims.user_id):
            raise AccountSuspended(claims.user_id)
        if not self.sessions.validate(claims.user_id, claims.device_id, token):
            raise SessionNotFound(claims.user_id, claims.device_id)
        self.sessions.touch_activity(claims.user_id, claims.device_id)
        return claims

    def logout(self, claims: TokenClaims) -> None:
        self.sessions.delete(claims.user_id, claims.device_id)
        self.session_log.deactivate(claims.user_id, claims.device_id)
        logger.info("User logged out", extra={"user_id": claims.user_id, "device_id": claims.device_id})

    def list_sessions(self, claims: TokenClaims) -> List[Dict[str, Any]]:
        """Active sessions for the caller, annotated with device approval info."""
        views = []
        for session in self.sessions.list_active(claims.user_id):
            device = self.devices.get(claims.user_id, session.device_id)
            views.append(self._session_view(session, device, claims.device_id))
        return views

    def max_sessions(self, user_id: str) -> int:
        user = self.users.get_by_id(user_id)
        return max_sessions_for(user.plan if user else None)

    def terminate_session(self, claims: TokenClaims, device_id: str) -> bool:
        """End one of the caller's other sessions.

        Raises:
            ValidationError: Attempt to terminate the current session
        """
        if device_id == claims.device_id:
            raise ValidationError(
                "Cannot terminate current session. Use logout instead.",
                details={"device_id": device_id},
            )
        removed = self.sessions.delete(claims.user_id, device_id)
        if removed:
            self.session_log.deactivate(claims.user_id, device_id)
        return removed

    @staticmethod
    def _session_view(
        session: Session, device: Optional[DeviceRecord], current_device_id: str
    ) -> Dict[str, Any]:
        return {
            "device_id": session.device_id,
            "ip_address": session.ip_address,
            "user_agent": session.user_agent,
            "trust_score": session.trust_score,
            "location": session.location.model_dump() if session.location else None,
            "created_at": session.created_at,
            "last_activity": session.last_activity,
            "is_current": session.device_id == current_device_id,
            "device_trusted": device.trusted if device else None,
            "device_first_seen": device.created_at if device else None,
        }
