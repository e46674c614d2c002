"""
Readiness states of a messaging session.
"""

from enum import Enum


class ReadyState(str, Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_LOGIN = "awaiting_login"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    FAILED = "failed"
    RESTARTING = "restarting"
