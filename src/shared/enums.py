"""
Shared enumerations for the Agency Ops application.

Note: action/trigger catalogs and AgencyStatus live in src/domain/enums.py
as they are domain concepts.
"""

from enum import Enum


class WorkflowRunStatus(str, Enum):
    """Workflow run status enumeration"""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]

    @classmethod
    def terminal(cls) -> list["WorkflowRunStatus"]:
        """Statuses a run can never leave"""
        return [cls.COMPLETED, cls.FAILED]


class UserRole(str, Enum):
    """Agency member roles carried in the access token"""

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [role.value for role in cls]


class DelayMode(str, Enum):
    """How the run engine honours an action's delay_minutes"""

    SLEEP = "sleep"
    SKIP = "skip"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [mode.value for mode in cls]
