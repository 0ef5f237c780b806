"""
Configuration module for canvasflow.

All settings come from environment variables with a default for each:
- CANVASFLOW_LOGS_DIR: logs directory (default: ~/.canvasflow/logs)
- CANVASFLOW_DEFAULT_PIPELINE_NAME: name of pipelines created on demand by
  interactive wiring (default: "Canvas Connections")
- CANVASFLOW_EVENT_QUEUE_SIZE: per-subscriber event bus queue size (default: 100)
- CANVASFLOW_HOST / CANVASFLOW_PORT: API server bind address
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOGS_DIR = "~/.canvasflow/logs"
LOGS_DIR_ENV_VAR = "CANVASFLOW_LOGS_DIR"

DEFAULT_PIPELINE_NAME = "Canvas Connections"
DEFAULT_PIPELINE_NAME_ENV_VAR = "CANVASFLOW_DEFAULT_PIPELINE_NAME"

DEFAULT_EVENT_QUEUE_SIZE = 100
EVENT_QUEUE_SIZE_ENV_VAR = "CANVASFLOW_EVENT_QUEUE_SIZE"

DEFAULT_HOST = "127.0.0.1"
HOST_ENV_VAR = "CANVASFLOW_HOST"

DEFAULT_PORT = 8000
PORT_ENV_VAR = "CANVASFLOW_PORT"


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid integer for {name}: {raw!r}")
        return default


def get_logs_dir() -> Path:
    """
    Get the logs directory path.

    Priority order:
    1. CANVASFLOW_LOGS_DIR environment variable
    2. Default: ~/.canvasflow/logs

    Returns:
        Path: Absolute path to the logs directory
    """
    env_dir = os.environ.get(LOGS_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    return Path(DEFAULT_LOGS_DIR).expanduser().resolve()


def get_default_pipeline_name() -> str:
    return os.environ.get(DEFAULT_PIPELINE_NAME_ENV_VAR) or DEFAULT_PIPELINE_NAME


def get_event_queue_size() -> int:
    return _int_from_env(EVENT_QUEUE_SIZE_ENV_VAR, DEFAULT_EVENT_QUEUE_SIZE)


def get_host() -> str:
    return os.environ.get(HOST_ENV_VAR) or DEFAULT_HOST


def get_port() -> int:
    return _int_from_env(PORT_ENV_VAR, DEFAULT_PORT)
