"""
GridBrain Configuration Constants

All tunable parameters in one place for easy auditing and modification.
Defaults can be overridden from the environment with load_from_env().
"""

import os
from dataclasses import dataclass, replace

from .errors import PluginConfigError


@dataclass(frozen=True)
class TelemetryConfig:
    """External energy telemetry endpoint."""
    URL: str = "https://p9-scheduler-plugins.vercel.app/data"
    TIMEOUT_SECONDS: float = 2.0


@dataclass(frozen=True)
class ScoreConfig:
    """Scoring output constraints and blend constants."""
    MIN_SCORE: int = 0
    MAX_SCORE: int = 100
    FALLBACK_SCORE: int = 22

    # renew_score = 100 / (1 + e^(-STEEPNESS * renew_diff))
    SIGMOID_STEEPNESS: float = 0.05 * 100
    RENEWABLE_WEIGHT: float = 0.5
    BATTERY_WEIGHT: float = 0.5
    BATTERY_OFFSET: float = 20.0

    # Added when the node name ends in the pod's suffix digit
    SUFFIX_MATCH_BONUS: int = 10


@dataclass(frozen=True)
class NotifierConfig:
    """Post-bind notification endpoint."""
    ENABLED: bool = True
    URL: str = "https://p9-scheduler-plugins.vercel.app/log"
    TIMEOUT_SECONDS: float = 2.0
    MAX_WORKERS: int = 2


@dataclass(frozen=True)
class ServerConfig:
    """gRPC server settings."""
    DEV_UDS_PATH: str = "/tmp/gridbrain-brain.sock"
    TCP_PORT: int = 50051
    MAX_WORKERS: int = 8
    MAX_LIVE_CYCLES: int = 256
    GRACE_SECONDS: float = 5.0


@dataclass(frozen=True)
class MetricsConfig:
    """Prometheus exposition."""
    ENABLED: bool = True
    PORT: int = 9095


@dataclass(frozen=True)
class KubernetesConfig:
    """Node label resolution."""
    LOCATION_LABEL: str = "location"
    REQUEST_TIMEOUT_SECONDS: float = 2.0


@dataclass(frozen=True)
class LoggingConfig:
    LEVEL: str = "INFO"


# Singleton instances for easy access
TELEMETRY = TelemetryConfig()
SCORE = ScoreConfig()
NOTIFIER = NotifierConfig()
SERVER = ServerConfig()
METRICS = MetricsConfig()
KUBERNETES = KubernetesConfig()
LOGGING = LoggingConfig()


def _env_float(env, name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise PluginConfigError(f"{name} must be a number, got {raw!r}")


def _env_int(env, name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise PluginConfigError(f"{name} must be an integer, got {raw!r}")


def _env_bool(env, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise PluginConfigError(f"{name} must be a boolean, got {raw!r}")


def load_from_env(env=None) -> None:
    """
    Rebind the config singletons from GRIDBRAIN_* environment variables.

    Called once by the server entry point before anything is constructed.
    Raises PluginConfigError on malformed values.
    """
    global TELEMETRY, NOTIFIER, SERVER, METRICS, LOGGING
    env = os.environ if env is None else env

    TELEMETRY = replace(
        TELEMETRY,
        URL=env.get("GRIDBRAIN_TELEMETRY_URL") or TELEMETRY.URL,
        TIMEOUT_SECONDS=_env_float(env, "GRIDBRAIN_TELEMETRY_TIMEOUT", TELEMETRY.TIMEOUT_SECONDS),
    )
    if TELEMETRY.TIMEOUT_SECONDS <= 0:
        raise PluginConfigError("GRIDBRAIN_TELEMETRY_TIMEOUT must be positive")

    NOTIFIER = replace(
        NOTIFIER,
        ENABLED=_env_bool(env, "GRIDBRAIN_NOTIFY_ENABLED", NOTIFIER.ENABLED),
        URL=env.get("GRIDBRAIN_NOTIFY_URL") or NOTIFIER.URL,
    )
    SERVER = replace(SERVER, TCP_PORT=_env_int(env, "GRIDBRAIN_TCP_PORT", SERVER.TCP_PORT))
    METRICS = replace(
        METRICS,
        ENABLED=_env_bool(env, "GRIDBRAIN_METRICS_ENABLED", METRICS.ENABLED),
        PORT=_env_int(env, "GRIDBRAIN_METRICS_PORT", METRICS.PORT),
    )
    LOGGING = replace(LOGGING, LEVEL=(env.get("GRIDBRAIN_LOG_LEVEL") or LOGGING.LEVEL).upper())
