"""
Tests for configuration validation and defaults.

Tests cover:
- Defaults class values
- ServiceConfig.from_settings() - all sections
- Environment variable overrides
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Missing sections use defaults
- load_settings() file handling
"""

import pytest

from speech_relay.core.config import (
    BackgroundConfig,
    CacheConfig,
    ConfigValidationError,
    Defaults,
    LoggingConfig,
    ServiceConfig,
    Settings,
    StorageConfig,
    SynthesisConfig,
    load_settings,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_synthesis_defaults(self):
        """Fixed output format and model used for every synthesis call."""
        assert Defaults.SYNTHESIS_OUTPUT_FORMAT == "mp3_44100_128"
        assert Defaults.SYNTHESIS_MODEL_ID == "eleven_multilingual_v2"
        assert Defaults.SYNTHESIS_DEFAULT_VOICE_ID == "JBFqnCBsd6RMkjVDRZzb"
        assert Defaults.SYNTHESIS_MAX_TEXT_CHARS == 5000

    def test_cache_defaults(self):
        """Signed URLs live for 60 seconds."""
        assert Defaults.CACHE_SIGNED_URL_TTL_SECONDS == 60

    def test_storage_defaults(self):
        assert Defaults.STORAGE_BACKEND == "local"
        assert Defaults.STORAGE_BUCKET == "audio"
        assert Defaults.STORAGE_TTL_SECONDS == 0

    def test_logging_defaults(self):
        assert Defaults.LOGGING_TEXT_PREVIEW_CHARS == 80
        assert Defaults.LOGGING_LEVEL == 2


class TestFromSettings:
    """Tests for ServiceConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        """All sections missing -> all defaults."""
        config = ServiceConfig.from_settings(Settings(raw={}))

        assert config.synthesis == SynthesisConfig()
        assert config.storage == StorageConfig()
        assert config.cache == CacheConfig()
        assert config.background == BackgroundConfig()
        assert config.logging == LoggingConfig()

    def test_sections_are_read(self):
        raw = {
            "synthesis": {"default_voice_id": "voiceA", "timeout_s": 12, "max_text_chars": 200},
            "storage": {"backend": "S3", "bucket": "speech"},
            "cache": {"signed_url_ttl_seconds": 120, "lookup_timeout_s": 2.5},
            "background": {"drain_timeout_s": 0},
            "logging": {"level": 3, "text_preview_chars": 20},
        }
        config = Settings(raw=raw).get_service_config()

        assert config.synthesis.default_voice_id == "voiceA"
        assert config.synthesis.timeout_s == 12.0
        assert config.synthesis.max_text_chars == 200
        assert config.storage.backend == "s3"
        assert config.storage.bucket == "speech"
        assert config.cache.signed_url_ttl_seconds == 120
        assert config.cache.lookup_timeout_s == 2.5
        assert config.background.drain_timeout_s == 0.0
        assert config.logging.level == 3
        assert config.logging.text_preview_chars == 20

    def test_string_log_level(self):
        """Log level names are converted to numbers."""
        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4

        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "info"}}))
        assert config.logging.level == 2

    def test_null_section_uses_defaults(self):
        """A YAML section left empty parses as None."""
        config = ServiceConfig.from_settings(Settings(raw={"cache": None}))
        assert config.cache == CacheConfig()


class TestEnvironmentOverrides:
    """Environment variables win over the YAML file."""

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("ELEVENLABS_API_KEY", "env-key")
        config = ServiceConfig.from_settings(Settings(raw={"synthesis": {"api_key": "file-key"}}))
        assert config.synthesis.api_key == "env-key"

    def test_api_key_from_file(self):
        config = ServiceConfig.from_settings(Settings(raw={"synthesis": {"api_key": "file-key"}}))
        assert config.synthesis.api_key == "file-key"

    def test_storage_env(self, monkeypatch):
        monkeypatch.setenv("SPEECH_RELAY_STORAGE_BACKEND", "s3")
        monkeypatch.setenv("SPEECH_RELAY_S3_BUCKET", "env-bucket")
        monkeypatch.setenv("SPEECH_RELAY_S3_ENDPOINT_URL", "https://s3.example.test")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("SPEECH_RELAY_SIGNING_SECRET", "env-secret")

        config = ServiceConfig.from_settings(Settings(raw={"storage": {"bucket": "file-bucket"}}))

        assert config.storage.backend == "s3"
        assert config.storage.bucket == "env-bucket"
        assert config.storage.endpoint_url == "https://s3.example.test"
        assert config.storage.region == "eu-west-1"
        assert config.storage.signing_secret == "env-secret"

    def test_empty_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("SPEECH_RELAY_S3_BUCKET", "")
        config = ServiceConfig.from_settings(Settings(raw={"storage": {"bucket": "file-bucket"}}))
        assert config.storage.bucket == "file-bucket"

    def test_public_base_url_follows_bind_port(self, monkeypatch):
        """Without an explicit URL the local lookup targets the bound port."""
        monkeypatch.setenv("SPEECH_RELAY_PORT", "9000")
        config = ServiceConfig.from_settings(Settings(raw={}))
        assert config.storage.public_base_url == "http://127.0.0.1:9000"

    @pytest.mark.parametrize(
        "host, expected",
        [
            ("0.0.0.0", "http://127.0.0.1:8000"),
            ("::", "http://127.0.0.1:8000"),
            ("10.1.2.3", "http://10.1.2.3:8000"),
            ("::1", "http://[::1]:8000"),
        ],
    )
    def test_public_base_url_follows_bind_host(self, monkeypatch, host, expected):
        monkeypatch.setenv("SPEECH_RELAY_HOST", host)
        config = ServiceConfig.from_settings(Settings(raw={}))
        assert config.storage.public_base_url == expected

    def test_explicit_public_base_url_wins(self, monkeypatch):
        monkeypatch.setenv("SPEECH_RELAY_PORT", "9000")
        config = ServiceConfig.from_settings(
            Settings(raw={"storage": {"public_base_url": "https://relay.example.test"}})
        )
        assert config.storage.public_base_url == "https://relay.example.test"


class TestValidation:
    """Invalid values raise ConfigValidationError naming the field."""

    @pytest.mark.parametrize(
        "raw, field",
        [
            ({"storage": {"backend": "gcs"}}, "storage.backend"),
            ({"storage": {"bucket": " "}}, "storage.bucket"),
            ({"storage": {"ttl_seconds": -1}}, "storage.ttl_seconds"),
            ({"cache": {"signed_url_ttl_seconds": 0}}, "cache.signed_url_ttl_seconds"),
            ({"cache": {"lookup_timeout_s": -1}}, "cache.lookup_timeout_s"),
            ({"synthesis": {"timeout_s": 0}}, "synthesis.timeout_s"),
            ({"synthesis": {"model_id": ""}}, "synthesis.model_id"),
            ({"synthesis": {"max_text_chars": 0}}, "synthesis.max_text_chars"),
            ({"background": {"drain_timeout_s": -5}}, "background.drain_timeout_s"),
            ({"logging": {"level": 7}}, "logging.level"),
        ],
    )
    def test_invalid_values(self, raw, field):
        with pytest.raises(ConfigValidationError, match=field):
            ServiceConfig.from_settings(Settings(raw=raw))


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_missing_file_ok(self, tmp_path):
        settings = load_settings(str(tmp_path / "nope.yaml"), missing_ok=True)
        assert settings.raw == {}

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("cache:\n  signed_url_ttl_seconds: 30\n", encoding="utf-8")

        settings = load_settings(str(path))

        assert settings.raw == {"cache": {"signed_url_ttl_seconds": 30}}
        assert settings.get_service_config().cache.signed_url_ttl_seconds == 30

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(str(path)).raw == {}

    def test_settings_frozen(self):
        settings = Settings(raw={})
        with pytest.raises(Exception):
            settings.raw = {"x": 1}
