"""Tests for pyproject.toml, package imports and the console entry point."""
from __future__ import annotations

from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent


class TestPackageInstallation:
    """The package and its modules import cleanly."""

    def test_version_defined(self):
        import speech_relay

        assert isinstance(speech_relay.__version__, str)
        assert len(speech_relay.__version__) > 0

    def test_core_modules_importable(self):
        from speech_relay.api import routes, schemas
        from speech_relay.core import config, container, errors, logging, metrics
        from speech_relay.services import speech_service
        from speech_relay.storage import local, s3
        from speech_relay.streaming import background, tee
        from speech_relay.synthesis import elevenlabs

        for module in (routes, schemas, config, container, errors, logging, metrics,
                       speech_service, local, s3, background, tee, elevenlabs):
            assert module is not None

    def test_app_importable(self):
        from speech_relay.main import app, create_app

        assert app.title == "speech-relay"
        assert callable(create_app)

    def test_routes_registered(self):
        from speech_relay.main import app

        # Mounted routers on newer FastAPI carry no `path` of their own.
        paths = {getattr(route, "path", None) for route in app.routes}
        assert {"/v1/speech", "/v1/artifacts/{name}", "/health", "/metrics"} <= paths


class TestPyproject:
    """pyproject.toml declares what the code imports."""

    @pytest.fixture
    def pyproject(self):
        tomllib = pytest.importorskip("tomllib")
        with open(ROOT / "pyproject.toml", "rb") as f:
            return tomllib.load(f)

    def test_metadata(self, pyproject):
        import speech_relay

        assert pyproject["project"]["name"] == "speech-relay"
        assert pyproject["project"]["version"] == speech_relay.__version__

    def test_dependencies(self, pyproject):
        deps = " ".join(pyproject["project"]["dependencies"]).lower()
        for name in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "boto3", "prometheus-client"):
            assert name in deps

    def test_console_script(self, pyproject):
        assert pyproject["project"]["scripts"]["speech-relay"] == "speech_relay.main:run"


class TestCli:
    """Argument parsing for the console script."""

    def test_defaults(self):
        from speech_relay.main import _parse_args

        args = _parse_args([])
        assert args.host == "127.0.0.1"
        assert args.port == 8000
        assert args.reload is False

    def test_overrides(self):
        from speech_relay.main import _parse_args

        args = _parse_args(["--host", "0.0.0.0", "--port", "9000", "--reload"])
        assert (args.host, args.port, args.reload) == ("0.0.0.0", 9000, True)

    def test_run_invokes_uvicorn(self, monkeypatch):
        from unittest.mock import patch

        from speech_relay.main import run

        # run() writes os.environ directly; register the keys so they are restored.
        monkeypatch.setenv("SPEECH_RELAY_HOST", "")
        monkeypatch.setenv("SPEECH_RELAY_PORT", "")
        with patch("uvicorn.run") as uvicorn_run:
            run(["--port", "8123"])

        uvicorn_run.assert_called_once()
        assert uvicorn_run.call_args.args[0] == "speech_relay.main:app"
        assert uvicorn_run.call_args.kwargs["port"] == 8123

    def test_run_exports_bind_address_for_settings(self, monkeypatch):
        """A server on --port 9000 looks its artifacts up on port 9000."""
        from unittest.mock import patch

        from speech_relay.core.config import ServiceConfig, Settings
        from speech_relay.main import run

        monkeypatch.setenv("SPEECH_RELAY_HOST", "")
        monkeypatch.setenv("SPEECH_RELAY_PORT", "")
        with patch("uvicorn.run"):
            run(["--host", "0.0.0.0", "--port", "9000"])

        config = ServiceConfig.from_settings(Settings(raw={}))
        assert config.storage.public_base_url == "http://127.0.0.1:9000"
