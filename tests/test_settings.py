"""Tests for environment-driven settings."""

from pathlib import Path

from canvasflow.server import settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            settings.LOGS_DIR_ENV_VAR,
            settings.DEFAULT_PIPELINE_NAME_ENV_VAR,
            settings.EVENT_QUEUE_SIZE_ENV_VAR,
            settings.HOST_ENV_VAR,
            settings.PORT_ENV_VAR,
        ):
            monkeypatch.delenv(name, raising=False)

        assert settings.get_logs_dir() == Path("~/.canvasflow/logs").expanduser().resolve()
        assert settings.get_default_pipeline_name() == "Canvas Connections"
        assert settings.get_event_queue_size() == 100
        assert settings.get_host() == "127.0.0.1"
        assert settings.get_port() == 8000

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv(settings.LOGS_DIR_ENV_VAR, str(tmp_path))
        monkeypatch.setenv(settings.DEFAULT_PIPELINE_NAME_ENV_VAR, "Wires")
        monkeypatch.setenv(settings.EVENT_QUEUE_SIZE_ENV_VAR, "5")
        monkeypatch.setenv(settings.PORT_ENV_VAR, "9001")

        assert settings.get_logs_dir() == tmp_path.resolve()
        assert settings.get_default_pipeline_name() == "Wires"
        assert settings.get_event_queue_size() == 5
        assert settings.get_port() == 9001

    def test_invalid_integer_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv(settings.PORT_ENV_VAR, "not-a-port")

        assert settings.get_port() == 8000
        assert "Ignoring invalid integer" in caplog.text
