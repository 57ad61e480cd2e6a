"""Session state shared by the controller and its observers."""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """Query session states."""

    IDLE = "idle"
    RUNNING = "running"
