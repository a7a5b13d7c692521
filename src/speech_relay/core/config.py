"""
Configuration Management for speech-relay.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects, one per section
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (ELEVENLABS_API_KEY, SPEECH_RELAY_*, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    synthesis:
      default_voice_id: JBFqnCBsd6RMkjVDRZzb
      model_id: eleven_multilingual_v2

    storage:
      backend: s3
      bucket: audio

    cache:
      signed_url_ttl_seconds: 60
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is outside acceptable bounds or of the wrong type."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Every value here can be overridden from settings.yaml; the ones that
    carry credentials or deployment endpoints can also come from the
    environment.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis service (ElevenLabs streaming text-to-speech)
    # ─────────────────────────────────────────────────────────────────────────
    SYNTHESIS_BASE_URL = "https://api.elevenlabs.io"
    SYNTHESIS_DEFAULT_VOICE_ID = "JBFqnCBsd6RMkjVDRZzb"
    SYNTHESIS_MODEL_ID = "eleven_multilingual_v2"
    SYNTHESIS_OUTPUT_FORMAT = "mp3_44100_128"
    SYNTHESIS_TIMEOUT_S = 30.0
    SYNTHESIS_CONNECT_TIMEOUT_S = 10.0
    SYNTHESIS_MAX_TEXT_CHARS = 5000          # Longer text is rejected with 400

    # ─────────────────────────────────────────────────────────────────────────
    # Object store
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_BACKEND = "local"               # "local" or "s3"
    STORAGE_BASE_DIR = "./storage"          # Root for the local bucket
    STORAGE_BUCKET = "audio"
    STORAGE_PUBLIC_BASE_URL = "http://127.0.0.1:8000"   # Unset: follows SPEECH_RELAY_HOST/PORT
    STORAGE_TTL_SECONDS = 0                 # Local bucket only, 0 = keep forever
    STORAGE_CLEANUP_INTERVAL_S = 3600

    # ─────────────────────────────────────────────────────────────────────────
    # Cache lookup
    # ─────────────────────────────────────────────────────────────────────────
    CACHE_SIGNED_URL_TTL_SECONDS = 60
    CACHE_LOOKUP_TIMEOUT_S = 5.0

    # ─────────────────────────────────────────────────────────────────────────
    # Background uploads
    # ─────────────────────────────────────────────────────────────────────────
    BACKGROUND_DRAIN_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                       # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


STORAGE_BACKENDS = ("local", "s3")


@dataclass
class SynthesisConfig:
    """Connection and request parameters for the speech-synthesis API."""
    base_url: str = Defaults.SYNTHESIS_BASE_URL
    api_key: str = ""
    default_voice_id: str = Defaults.SYNTHESIS_DEFAULT_VOICE_ID
    model_id: str = Defaults.SYNTHESIS_MODEL_ID
    output_format: str = Defaults.SYNTHESIS_OUTPUT_FORMAT
    timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S
    connect_timeout_s: float = Defaults.SYNTHESIS_CONNECT_TIMEOUT_S
    max_text_chars: int = Defaults.SYNTHESIS_MAX_TEXT_CHARS


@dataclass
class StorageConfig:
    """
    Object store configuration.

    The "local" backend keeps artifacts under base_dir/bucket and signs
    retrieval URLs itself; "s3" talks to any S3-compatible bucket.
    """
    backend: str = Defaults.STORAGE_BACKEND
    base_dir: str = Defaults.STORAGE_BASE_DIR
    bucket: str = Defaults.STORAGE_BUCKET
    endpoint_url: Optional[str] = None
    region: Optional[str] = None
    public_base_url: str = Defaults.STORAGE_PUBLIC_BASE_URL
    signing_secret: str = ""
    ttl_seconds: int = Defaults.STORAGE_TTL_SECONDS
    cleanup_interval_s: int = Defaults.STORAGE_CLEANUP_INTERVAL_S


@dataclass
class CacheConfig:
    """Cache lookup behaviour (signed URL validity and fetch timeout)."""
    signed_url_ttl_seconds: int = Defaults.CACHE_SIGNED_URL_TTL_SECONDS
    lookup_timeout_s: float = Defaults.CACHE_LOOKUP_TIMEOUT_S


@dataclass
class BackgroundConfig:
    """How long shutdown waits for in-flight uploads."""
    drain_timeout_s: float = Defaults.BACKGROUND_DRAIN_TIMEOUT_S


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, cache status (default)
        3 = VERBOSE: Per-stage timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value if value else None


def _default_public_base_url() -> str:
    """
    Base URL of this server as seen from itself.

    The console script exports SPEECH_RELAY_HOST and SPEECH_RELAY_PORT
    from --host/--port, so the local backend signs URLs that point at the
    address actually bound. Wildcard binds are reached through loopback.
    """
    host = _env("SPEECH_RELAY_HOST") or "127.0.0.1"
    if host in ("0.0.0.0", "::"):
        host = "127.0.0.1"
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    port = _env("SPEECH_RELAY_PORT") or "8000"
    return f"http://{host}:{port}"


@dataclass
class ServiceConfig:
    """
    Validated configuration for the speech relay.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.cache.signed_url_ttl_seconds)
    """
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    background: BackgroundConfig = field(default_factory=BackgroundConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Reads the raw configuration dictionary, applies environment
        overrides and defaults, validates constraints, and returns typed
        configuration.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis
        # ─────────────────────────────────────────────────────────────────────
        synth_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            base_url=str(_env("ELEVENLABS_BASE_URL") or synth_raw.get("base_url", Defaults.SYNTHESIS_BASE_URL)),
            api_key=str(_env("ELEVENLABS_API_KEY") or synth_raw.get("api_key", "") or ""),
            default_voice_id=str(synth_raw.get("default_voice_id", Defaults.SYNTHESIS_DEFAULT_VOICE_ID)),
            model_id=str(synth_raw.get("model_id", Defaults.SYNTHESIS_MODEL_ID)),
            output_format=str(synth_raw.get("output_format", Defaults.SYNTHESIS_OUTPUT_FORMAT)),
            timeout_s=float(synth_raw.get("timeout_s", Defaults.SYNTHESIS_TIMEOUT_S)),
            connect_timeout_s=float(synth_raw.get("connect_timeout_s", Defaults.SYNTHESIS_CONNECT_TIMEOUT_S)),
            max_text_chars=int(synth_raw.get("max_text_chars", Defaults.SYNTHESIS_MAX_TEXT_CHARS)),
        )
        cls._validate_not_empty("synthesis.base_url", synthesis.base_url)
        cls._validate_not_empty("synthesis.default_voice_id", synthesis.default_voice_id)
        cls._validate_not_empty("synthesis.model_id", synthesis.model_id)
        cls._validate_not_empty("synthesis.output_format", synthesis.output_format)
        cls._validate_positive("synthesis.timeout_s", synthesis.timeout_s)
        cls._validate_positive("synthesis.connect_timeout_s", synthesis.connect_timeout_s)
        cls._validate_positive("synthesis.max_text_chars", synthesis.max_text_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Storage (environment wins for deployment-specific values)
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            backend=str(_env("SPEECH_RELAY_STORAGE_BACKEND") or storage_raw.get("backend", Defaults.STORAGE_BACKEND)).lower(),
            base_dir=str(storage_raw.get("base_dir", Defaults.STORAGE_BASE_DIR)),
            bucket=str(_env("SPEECH_RELAY_S3_BUCKET") or storage_raw.get("bucket", Defaults.STORAGE_BUCKET)),
            endpoint_url=_env("SPEECH_RELAY_S3_ENDPOINT_URL") or storage_raw.get("endpoint_url"),
            region=_env("AWS_REGION") or storage_raw.get("region"),
            public_base_url=str(
                _env("SPEECH_RELAY_PUBLIC_BASE_URL")
                or storage_raw.get("public_base_url")
                or _default_public_base_url()
            ),
            signing_secret=str(_env("SPEECH_RELAY_SIGNING_SECRET") or storage_raw.get("signing_secret", "") or ""),
            ttl_seconds=int(storage_raw.get("ttl_seconds", Defaults.STORAGE_TTL_SECONDS)),
            cleanup_interval_s=int(storage_raw.get("cleanup_interval_s", Defaults.STORAGE_CLEANUP_INTERVAL_S)),
        )
        if storage.backend not in STORAGE_BACKENDS:
            raise ConfigValidationError(
                f"storage.backend must be one of {', '.join(STORAGE_BACKENDS)}, got {storage.backend!r}"
            )
        cls._validate_not_empty("storage.bucket", storage.bucket)
        cls._validate_non_negative("storage.ttl_seconds", storage.ttl_seconds)
        cls._validate_positive("storage.cleanup_interval_s", storage.cleanup_interval_s)

        # ─────────────────────────────────────────────────────────────────────
        # Cache lookup
        # ─────────────────────────────────────────────────────────────────────
        cache_raw = raw.get("cache", {}) or {}
        cache = CacheConfig(
            signed_url_ttl_seconds=int(cache_raw.get("signed_url_ttl_seconds", Defaults.CACHE_SIGNED_URL_TTL_SECONDS)),
            lookup_timeout_s=float(cache_raw.get("lookup_timeout_s", Defaults.CACHE_LOOKUP_TIMEOUT_S)),
        )
        cls._validate_positive("cache.signed_url_ttl_seconds", cache.signed_url_ttl_seconds)
        cls._validate_positive("cache.lookup_timeout_s", cache.lookup_timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Background uploads
        # ─────────────────────────────────────────────────────────────────────
        background_raw = raw.get("background", {}) or {}
        background = BackgroundConfig(
            drain_timeout_s=float(background_raw.get("drain_timeout_s", Defaults.BACKGROUND_DRAIN_TIMEOUT_S)),
        )
        cls._validate_non_negative("background.drain_timeout_s", background.drain_timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            synthesis=synthesis,
            storage=storage,
            cache=cache,
            background=background,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_not_empty(name: str, value: str) -> None:
        if not value or not value.strip():
            raise ConfigValidationError(f"{name} must not be empty")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get a validated ServiceConfig.
    """
    raw: Dict[str, Any]

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml", missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.
        missing_ok: Return empty settings (all defaults) instead of
            raising when the file does not exist.

    Raises:
        FileNotFoundError: If the settings file doesn't exist and
            missing_ok is False.
    """
    p = Path(path)
    if not p.exists():
        if missing_ok:
            return Settings(raw={})
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)
