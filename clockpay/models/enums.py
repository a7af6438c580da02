from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    OWNER = "OWNER"
    WORKER = "WORKER"


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    DONE = "DONE"


class PolicySource(str, Enum):
    GLOBAL = "GLOBAL"
    OVERRIDE = "OVERRIDE"
