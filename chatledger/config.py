"""chatledger configuration."""
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default

# Classification thresholds
CHECKPOINT_MAX_CHARS = _env_int("CHATLEDGER_CHECKPOINT_MAX_CHARS", 500)
MIN_MESSAGE_CHARS = _env_int("CHATLEDGER_MIN_MESSAGE_CHARS", 5)
MESSAGE_MAX_CHARS = _env_int("CHATLEDGER_MESSAGE_MAX_CHARS", 10000)
CHECKPOINT_DESCRIPTION_MAX_CHARS = 1000

# Timestamp resolution
SIBLING_LOOKAHEAD = _env_int("CHATLEDGER_SIBLING_LOOKAHEAD", 3)
SOURCE_TIMEZONE = os.getenv("CHATLEDGER_SOURCE_TZ", "UTC")

# Commit correlation
COMMIT_WINDOW_SECONDS = _env_float("CHATLEDGER_COMMIT_WINDOW_SECONDS", 180.0)
COMMIT_ADJACENCY_FALLBACK = _env_bool("CHATLEDGER_COMMIT_ADJACENCY_FALLBACK", True)
GIT_LOG_MAX_COUNT = _env_int("CHATLEDGER_GIT_LOG_MAX_COUNT", 5000)

# Checkpoint durations
CHECKPOINT_DURATION_MAX_SECONDS = 24 * 60 * 60

# Idle / liveness gate
IDLE_POLL_INTERVAL_SECONDS = _env_float("CHATLEDGER_IDLE_POLL_INTERVAL_SECONDS", 5.0)
IDLE_SNAPSHOT_DELAY_SECONDS = _env_float("CHATLEDGER_IDLE_SNAPSHOT_DELAY_SECONDS", 2.0)
IDLE_MAX_WAIT_SECONDS = _env_float("CHATLEDGER_IDLE_MAX_WAIT_SECONDS", 600.0)

# Observability
OTEL_ENABLED = _env_bool("CHATLEDGER_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CHATLEDGER_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CHATLEDGER_OTEL_SERVICE_NAME", "chatledger")
PROM_PORT = _env_int("CHATLEDGER_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("CHATLEDGER_HOST", "0.0.0.0")
PORT = int(os.getenv("CHATLEDGER_PORT", "8000"))

# CORS
FRONTEND_ORIGIN = os.getenv("CHATLEDGER_FRONTEND_ORIGIN", "http://localhost:3000")
