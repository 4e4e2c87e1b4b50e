"""Centralized constants for AuthSentry."""


# ===== BASELINE WINDOWS =====
class BaselineConstants:
    BEHAVIOR_WINDOW_DAYS = 7
    USER_AGENT_WINDOW_DAYS = 30
    FINGERPRINT_WINDOW_DAYS = 30
    DEVICE_MISMATCH_WINDOW_DAYS = 7

    # Hours counted as "night" for the time-pattern summary
    NIGHT_START_HOUR = 22
    NIGHT_END_HOUR = 6


# ===== SECURITY ANALYSIS =====
class AnalysisConstants:
    UNUSUAL_FREQUENCY_WINDOW_MINUTES = 60
    UNUSUAL_FREQUENCY_THRESHOLD = 10


# ===== GEO VELOCITY =====
class GeoConstants:
    EARTH_RADIUS_KM = 6371.0
    MAX_VELOCITY_KMH = 900.0
    SIMULTANEOUS_LOGIN_HOURS = 0.001
    # Distance under which two simultaneous logins are treated as the same place
    SIMULTANEOUS_MIN_DISTANCE_KM = 50.0


# ===== SWEEP & SCHEDULING =====
class SweepConstants:
    DEFAULT_WINDOW_MINUTES = 60
    DEFAULT_INTERVAL_SECONDS = 3600
    DEFAULT_TIMEOUT_SECONDS = 300.0
    JOB_NAME = "security_sweep"
    # Detector loops check for cancellation every N events
    CANCEL_CHECK_EVERY = 500


# ===== STORES & RETENTION =====
class StoreConstants:
    DEFAULT_TIMEOUT_SECONDS = 2.0
    EVENT_RETENTION_DAYS = 90
    FINGERPRINT_RETENTION_DAYS = 30
    EXECUTOR_MAX_WORKERS = 4


# ===== ALERTING =====
class AlertConstants:
    QUEUE_SIZE = 10000
    FLUSH_TIMEOUT_SECONDS = 5.0
    QUEUE_GET_TIMEOUT = 1.0


# ===== MONITORING =====
class MonitoringConstants:
    DEFAULT_BATCH_SIZE = 20
    ASSESSMENT_LATENCY_WARNING_MS = 200
