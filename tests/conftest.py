"""Shared pytest fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from canvasflow.server.pipeline_store import InMemoryPipelineGateway
from canvasflow.server.settings import LOGS_DIR_ENV_VAR


@pytest.fixture
def temp_logs_dir(tmp_path, monkeypatch):
    """Create a temporary logs directory and point CANVASFLOW_LOGS_DIR at it."""
    logs_dir = tmp_path / "logs"
    logs_dir.mkdir()
    monkeypatch.setenv(LOGS_DIR_ENV_VAR, str(logs_dir))
    yield logs_dir


@pytest.fixture
def gateway():
    return InMemoryPipelineGateway()


@pytest.fixture
def mock_event_bus():
    """Event bus stand-in that records emitted events."""
    bus = MagicMock()
    bus.emit_async = AsyncMock()
    return bus
