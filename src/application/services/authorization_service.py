from src.domain.exceptions import AuthorizationException
from src.shared.enums import UserRole

_WORKFLOW_ALL = frozenset(
    {"workflow:create", "workflow:read", "workflow:update", "workflow:delete", "workflow:execute"}
)

ROLE_PERMISSIONS: dict[UserRole, frozenset[str]] = {
    UserRole.OWNER: frozenset({"*:*"}),
    UserRole.ADMIN: _WORKFLOW_ALL,
    UserRole.MANAGER: frozenset(
        {"workflow:create", "workflow:read", "workflow:update", "workflow:execute"}
    ),
    UserRole.MEMBER: frozenset({"workflow:read", "workflow:execute"}),
    UserRole.VIEWER: frozenset({"workflow:read"}),
}


class AuthorizationService:
    """
    Permission checks for agency members.
    Follow principle: "Check permissions, not roles"

    Roles map to a fixed permission set; the role itself comes from the
    access token, so no lookup is needed per request.
    """

    def __init__(self, role_permissions: dict[UserRole, frozenset[str]] | None = None):
        self.role_permissions = role_permissions or ROLE_PERMISSIONS

    def get_role_permissions(self, role: UserRole | str) -> frozenset[str]:
        """
        Permission codes granted to a role.
        Returns: Set of permission codes like {'workflow:create', 'workflow:read'}
        """
        try:
            parsed = UserRole(role)
        except ValueError:
            return frozenset()
        return self.role_permissions.get(parsed, frozenset())

    def check_permission(self, role: UserRole | str, resource: str, action: str) -> bool:
        """
        Check if a role has a specific permission.

        Examples:
            - check_permission("manager", "workflow", "update")
            - check_permission("viewer", "workflow", "delete")
        """
        permissions = self.get_role_permissions(role)

        if f"{resource}:{action}" in permissions:
            return True

        # "workflow:*" grants all workflow actions, "*:*" grants everything
        return f"{resource}:*" in permissions or "*:*" in permissions

    def require_permission(self, role: UserRole | str, resource: str, action: str) -> None:
        """Raise exception if the role lacks permission"""
        if not self.check_permission(role, resource, action):
            raise AuthorizationException(resource, action)
