"""Unique id source for pipelines, nodes and connections."""

from __future__ import annotations

import uuid
from collections.abc import Callable

IdFactory = Callable[[], str]


def new_id() -> str:
    """Return a collision-resistant unique id."""
    return str(uuid.uuid4())
