"""
Request context and logging state.

The request id lives in a ContextVar so it follows a request through
awaits and into tasks spawned from it (asyncio copies the context when a
task is created). Background uploads therefore log with the id of the
request that started them.

Environment Variables:
    - SPEECH_RELAY_SETTINGS: Settings file to read the logging section from
    - SPEECH_RELAY_LOG_LEVEL: Log level (1-4 or name)
    - SPEECH_RELAY_LOG_DIR: Directory for the JSONL log file
    - SPEECH_RELAY_JSONL_FILE: JSONL filename
    - SPEECH_RELAY_LOG_ROTATE_BYTES: Max file size before rotation
    - SPEECH_RELAY_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set the request id for log correlation in the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(cfg: Dict[str, Any], key: str, env_name: str) -> None:
    value = os.getenv(env_name)
    if not value:
        return
    try:
        cfg[key] = int(value)
    except ValueError:
        pass  # keep the file/default value


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration.

    Priority (highest first): environment variables, the settings file's
    logging section, defaults applied by configure_logging().
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SPEECH_RELAY_SETTINGS", "config/settings.yaml")
    try:
        from speech_relay.core.config import load_settings
        settings = load_settings(settings_path, missing_ok=True)
        cfg.update(settings.raw.get("logging", {}) or {})
    except Exception:
        # An unreadable settings file must not prevent logging from starting
        pass

    if os.getenv("SPEECH_RELAY_LOG_LEVEL"):
        cfg["level"] = os.environ["SPEECH_RELAY_LOG_LEVEL"]
    if os.getenv("SPEECH_RELAY_LOG_DIR"):
        cfg["log_dir"] = os.environ["SPEECH_RELAY_LOG_DIR"]
    if os.getenv("SPEECH_RELAY_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SPEECH_RELAY_JSONL_FILE"]
    _env_int(cfg, "rotate_max_bytes", "SPEECH_RELAY_LOG_ROTATE_BYTES")
    _env_int(cfg, "rotate_backup_count", "SPEECH_RELAY_LOG_ROTATE_BACKUP")

    return cfg
