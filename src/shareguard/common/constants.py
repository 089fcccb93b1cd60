"""Centralized constants for ShareGuard."""


DAY_SECONDS = 86400


# ===== FINGERPRINT =====
class FingerprintConstants:
    MIN_USER_AGENT_LENGTH = 20
    SUSPICIOUS_THRESHOLD = 50  # SpoofAssessment.is_suspicious
    BLOCK_THRESHOLD = 70  # orchestrator denies above this
    AUTOMATION_TOKENS = (
        "headless", "phantom", "selenium", "webdriver",
        "puppeteer", "playwright", "automation",
    )
    CRITICAL_KEYS = (
        "browser", "os", "deviceType", "screenResolution",
        "canvas", "webgl", "hardwareConcurrency",
    )


# ===== GEOGRAPHY =====
class GeoConstants:
    EARTH_RADIUS_KM = 6371.0
    FLIGHT_SPEED_KMH = 900.0
    IMPOSSIBLE_MIN_DISTANCE_KM = 500.0
    LONG_HAUL_DISTANCE_KM = 3000.0
    LONG_HAUL_WINDOW_MS = 3600 * 1000
    LOCAL_MOVE_DISTANCE_KM = 100.0

    RISK_IMPOSSIBLE = 95
    RISK_LONG_HAUL = 75
    RISK_COUNTRY_CHANGE = 40
    RISK_LOCAL_MOVE = 20

    LAST_LOCATION_TTL = 7 * DAY_SECONDS
    HISTORY_SIZE = 50
    HISTORY_TTL = 30 * DAY_SECONDS
    LOCATION_CHANGE_WINDOW_SECONDS = DAY_SECONDS


# ===== TRUST SCORING =====
class TrustConstants:
    BASE_SCORE = 50
    MIN_SCORE = 0
    MAX_SCORE = 100

    HIGH_MIN = 80
    MEDIUM_MIN = 60
    LOW_MIN = 40

    # (upper bound exclusive, points); last bucket applies at or above the final bound
    LOGIN_COUNT_BUCKETS = ((5, 0), (15, 5), (30, 10), (50, 15))
    LOGIN_COUNT_MAX_POINTS = 20
    DEVICE_AGE_BUCKETS_DAYS = ((7, 0), (30, 4), (90, 8), (180, 12))
    DEVICE_AGE_MAX_POINTS = 15

    UNUSUAL_HOUR_START = 2
    UNUSUAL_HOUR_END = 6
    UNUSUAL_HOUR_PENALTY = -10
    PRIVATE_NETWORK_PENALTY = -15
    PRIVATE_NETWORKS = ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")

    SCORE_CACHE_TTL = DAY_SECONDS
    LOGIN_COUNT_TTL = 90 * DAY_SECONDS
    FAILED_ATTEMPTS_TTL = 3600
    COUNTRIES_TTL = 30 * DAY_SECONDS
    DEVICE_USERS_TTL = 30 * DAY_SECONDS

    NEW_DEVICE_OTP_THRESHOLD = 60


# ===== SESSIONS =====
class SessionConstants:
    SESSION_TTL = DAY_SECONDS
    LOCK_TIMEOUT_SECONDS = 10
    PLAN_LIMITS = {"BASIC": 1, "STANDARD": 2, "PREMIUM": 4}
    DEFAULT_LIMIT = 1
    PLAN_PRICES = {"BASIC": 199, "STANDARD": 499, "PREMIUM": 799}


# ===== ALERTING =====
class AlertConstants:
    RETENTION_SECONDS = 7 * DAY_SECONDS
    INDEX_KEY = "alerts:sorted"
    INDEX_CAP = 1000
    FLAG_TTL = 30 * DAY_SECONDS
    FLAGGED_USERS_KEY = "flagged_users"
    TEMPORARY_BLOCK_SECONDS = 3600
    DEFAULT_RECENT_LIMIT = 50
    DEFAULT_USER_LIMIT = 20
    STATS_WINDOW = 100
    QUEUE_GET_TIMEOUT = 1.0
    FLUSH_TIMEOUT_SECONDS = 5.0


# ===== DASHBOARD =====
class DashboardConstants:
    RECENT_ACTIVITY_WINDOW_SECONDS = 600
    RECENT_ACTIVITY_LIMIT = 20
    SUSPICIOUS_TRUST_MAX = 40
    LEAKAGE_TRUST_MAX = 50
    DEFAULT_TRUST_SCORE = 50
