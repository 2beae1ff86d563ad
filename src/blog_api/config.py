"""Configuration management for the Blog API.

Provides immutable configuration using dataclasses with validation,
environment variable loading, and sensible defaults.

Signing secret handling:
- ``JWT_SECRET`` is required; the app refuses to start without it
- There is no built-in fallback secret, even in development
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from dotenv import load_dotenv
from limits import RateLimitItem, parse

from blog_api.exceptions import ConfigurationError

# Load .env file for local development
# Does not override existing environment variables (deployment configs take precedence)
# Path from config.py: src/blog_api/config.py -> 3 parents up = project root
_root_env = Path(__file__).parent.parent.parent / ".env"

if _root_env.exists():
    load_dotenv(_root_env, override=False)

logger = logging.getLogger(__name__)

SUPPORTED_JWT_ALGORITHMS: Final[tuple[str, ...]] = ("HS256", "HS384", "HS512")
VALID_ENVIRONMENTS: Final[tuple[str, ...]] = ("development", "test", "production")
VALID_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_TOKEN_TTL_SECONDS: Final[int] = 7 * 24 * 60 * 60
DEFAULT_RATE_LIMIT: Final[str] = "100/15 minutes"
MIN_SECRET_LENGTH: Final[int] = 16

# Paths that bypass the rate limiter
DEFAULT_RATE_LIMIT_EXCLUDED_PATHS: Final[tuple[str, ...]] = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def _str_to_bool(value: str | None, default: bool) -> bool:
    return value.lower() in ("true", "1", "yes") if value else default


def _parse_limit(limit: str) -> RateLimitItem:
    try:
        return parse(limit)
    except ValueError as e:
        msg = f"Invalid rate limit '{limit}'. Use forms like '100/15 minutes' or '2/second'."
        raise ConfigurationError(msg) from e


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Bearer credential configuration.

    Attributes:
        jwt_secret: Process-wide signing secret. Required.
        jwt_algorithm: HMAC algorithm used to sign tokens.
        token_ttl_seconds: Lifetime of issued tokens (default 7 days).
        audit_enabled: Whether to emit audit events for auth decisions.
    """

    jwt_secret: str
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    audit_enabled: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.jwt_secret:
            msg = "JWT_SECRET must be set to a non-empty value"
            raise ConfigurationError(msg)

        if len(self.jwt_secret) < MIN_SECRET_LENGTH:
            logger.warning(
                "JWT secret is shorter than %d characters. Use a long random value.",
                MIN_SECRET_LENGTH,
            )

        if self.jwt_algorithm not in SUPPORTED_JWT_ALGORITHMS:
            msg = f"jwt_algorithm must be one of: {SUPPORTED_JWT_ALGORITHMS}"
            raise ConfigurationError(msg)

        if self.token_ttl_seconds <= 0:
            msg = "token_ttl_seconds must be positive"
            raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Per-client request rate limiting configuration.

    Attributes:
        enabled: Whether the rate limiting middleware is installed.
        limit: Limit string understood by ``limits.parse``.
        sweep_interval_seconds: How often drained client windows are purged.
        excluded_paths: Path prefixes that bypass the limiter.
    """

    enabled: bool = True
    limit: str = DEFAULT_RATE_LIMIT
    sweep_interval_seconds: float = 60.0
    excluded_paths: tuple[str, ...] = DEFAULT_RATE_LIMIT_EXCLUDED_PATHS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        _parse_limit(self.limit)
        if self.sweep_interval_seconds <= 0:
            msg = "sweep_interval_seconds must be positive"
            raise ConfigurationError(msg)

    @property
    def max_requests(self) -> int:
        """Requests admitted per window."""
        return _parse_limit(self.limit).amount

    @property
    def window_seconds(self) -> float:
        """Window length in seconds."""
        return float(_parse_limit(self.limit).get_expiry())


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Request timing and resource sampling configuration.

    Attributes:
        slow_request_threshold_ms: Whole-request duration above which a warning is logged.
        slow_operation_threshold_ms: Default threshold for other timed operations.
        sampling_enabled: Whether periodic resource sampling runs.
        sample_interval_ms: Interval between resource samples.
        event_loop_lag_threshold_ms: Event loop lag above which a warning is logged.
        heap_warning_ratio: heap_used / heap_total above which a warning is logged.
    """

    slow_request_threshold_ms: float = 1000.0
    slow_operation_threshold_ms: float = 100.0
    sampling_enabled: bool = True
    sample_interval_ms: int = 1000
    event_loop_lag_threshold_ms: float = 100.0
    heap_warning_ratio: float = 0.8

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.slow_request_threshold_ms <= 0 or self.slow_operation_threshold_ms <= 0:
            msg = "Slow thresholds must be positive"
            raise ConfigurationError(msg)

        if self.sample_interval_ms <= 0:
            msg = "sample_interval_ms must be positive"
            raise ConfigurationError(msg)

        if not 0.0 < self.heap_warning_ratio <= 1.0:
            msg = "heap_warning_ratio must be in (0, 1]"
            raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Immutable application configuration.

    Attributes:
        auth: Bearer credential settings.
        rate_limit: Rate limiting settings.
        monitoring: Timing and sampling settings.
        environment: Deployment environment (development, test, production).
            Defaults to production; 500 responses carry exception detail only
            in development.
        log_level: Logging level.
        cors_origins: Origins allowed by the CORS middleware.
        host: Bind host for the development server.
        port: Bind port for the development server.
    """

    auth: AuthConfig
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    environment: str = "production"
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("http://localhost:3000",)
    host: str = "127.0.0.1"
    port: int = 5000

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.environment not in VALID_ENVIRONMENTS:
            msg = f"environment must be one of: {VALID_ENVIRONMENTS}"
            raise ConfigurationError(msg)

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            msg = f"log_level must be one of: {VALID_LOG_LEVELS}"
            raise ConfigurationError(msg)

    @property
    def is_development(self) -> bool:
        """Whether error responses may include debugging detail."""
        return self.environment == "development"


def get_auth_config() -> AuthConfig:
    """Load bearer credential configuration from environment variables.

    Environment variables:
    - JWT_SECRET: Signing secret (required)
    - JWT_ALGORITHM: HS256, HS384 or HS512 (default: HS256)
    - JWT_EXPIRES_IN_SECONDS: Token lifetime (default: 604800, 7 days)
    - AUTH_AUDIT_ENABLED: Whether to enable audit logging (default: true)

    Returns:
        AuthConfig instance with values from environment.

    Raises:
        ConfigurationError: If JWT_SECRET is missing or values are invalid.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        msg = "Missing required environment variable: JWT_SECRET"
        raise ConfigurationError(msg)

    try:
        ttl = int(os.getenv("JWT_EXPIRES_IN_SECONDS", str(DEFAULT_TOKEN_TTL_SECONDS)))
    except ValueError as e:
        msg = "JWT_EXPIRES_IN_SECONDS must be an integer"
        raise ConfigurationError(msg) from e

    return AuthConfig(
        jwt_secret=secret,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        token_ttl_seconds=ttl,
        audit_enabled=_str_to_bool(os.getenv("AUTH_AUDIT_ENABLED"), True),
    )


def get_rate_limit_config() -> RateLimitConfig:
    """Load rate limiting configuration from environment variables.

    Environment variables:
    - RATE_LIMIT_ENABLED: Whether to enable rate limiting (default: true)
    - RATE_LIMIT: Limit string (default: "100/15 minutes")
    - RATE_LIMIT_SWEEP_INTERVAL: Seconds between window purges (default: 60)

    Returns:
        RateLimitConfig instance with values from environment.
    """
    return RateLimitConfig(
        enabled=_str_to_bool(os.getenv("RATE_LIMIT_ENABLED"), True),
        limit=os.getenv("RATE_LIMIT", DEFAULT_RATE_LIMIT),
        sweep_interval_seconds=float(os.getenv("RATE_LIMIT_SWEEP_INTERVAL", "60")),
    )


def get_monitoring_config() -> MonitoringConfig:
    """Load monitoring configuration from environment variables.

    Environment variables:
    - MONITOR_SLOW_REQUEST_MS: Slow request threshold (default: 1000)
    - MONITOR_SLOW_OPERATION_MS: Slow operation threshold (default: 100)
    - MONITOR_SAMPLING_ENABLED: Whether periodic sampling runs (default: true)
    - MONITOR_SAMPLE_INTERVAL_MS: Sampling interval (default: 1000)
    - MONITOR_EVENT_LOOP_LAG_MS: Event loop lag warning threshold (default: 100)
    - MONITOR_HEAP_WARNING_RATIO: Heap usage warning ratio (default: 0.8)

    Returns:
        MonitoringConfig instance with values from environment.
    """
    return MonitoringConfig(
        slow_request_threshold_ms=float(os.getenv("MONITOR_SLOW_REQUEST_MS", "1000")),
        slow_operation_threshold_ms=float(os.getenv("MONITOR_SLOW_OPERATION_MS", "100")),
        sampling_enabled=_str_to_bool(os.getenv("MONITOR_SAMPLING_ENABLED"), True),
        sample_interval_ms=int(os.getenv("MONITOR_SAMPLE_INTERVAL_MS", "1000")),
        event_loop_lag_threshold_ms=float(os.getenv("MONITOR_EVENT_LOOP_LAG_MS", "100")),
        heap_warning_ratio=float(os.getenv("MONITOR_HEAP_WARNING_RATIO", "0.8")),
    )


def get_config() -> AppConfig:
    """Load configuration from environment variables.

    Returns:
        AppConfig instance with values from environment.

    Raises:
        ConfigurationError: If required environment variables are missing.
    """
    cors_env = os.getenv("CORS_ORIGINS", "")
    cors_origins = (
        tuple(origin.strip() for origin in cors_env.split(",") if origin.strip())
        if cors_env
        else ("http://localhost:3000",)
    )

    return AppConfig(
        auth=get_auth_config(),
        rate_limit=get_rate_limit_config(),
        monitoring=get_monitoring_config(),
        environment=os.getenv("APP_ENV", "production"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_origins=cors_origins,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
    )
