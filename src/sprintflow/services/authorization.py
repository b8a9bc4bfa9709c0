"""
Authorization port.

The lifecycle engine trusts its callers; the HTTP layer asks a
CapabilityChecker before invoking any mutating operation.
"""
from typing import Protocol
from uuid import UUID

from sprintflow.config import settings
from .exceptions import CapabilityDenied

MANAGE_SPRINTS = "sprints:manage"


class CapabilityChecker(Protocol):
    def has_capability(self, user_id: UUID, project_id: UUID, capability: str) -> bool: ...


class LocalModeChecker:
    """
    LOCAL mode: single user, every capability granted.
    SAAS mode: denies until a real role-backed checker is injected.
    """

    def __init__(self, mode: str = None):
        self.mode = mode or settings.sprintflow_mode

    def has_capability(self, user_id: UUID, project_id: UUID, capability: str) -> bool:
        return self.mode == "local"


def require_capability(checker: CapabilityChecker, user_id: UUID, project_id: UUID, capability: str = MANAGE_SPRINTS):
    if not checker.has_capability(user_id, project_id, capability):
        raise CapabilityDenied(user_id, project_id, capability)
