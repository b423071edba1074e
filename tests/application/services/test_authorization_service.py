import pytest

from src.application.services.authorization_service import AuthorizationService
from src.domain.exceptions import AuthorizationException


@pytest.fixture
def authz() -> AuthorizationService:
    return AuthorizationService()


@pytest.mark.parametrize(
    "role, action, allowed",
    [
        ("owner", "delete", True),
        ("admin", "delete", True),
        ("manager", "update", True),
        ("manager", "delete", False),
        ("member", "execute", True),
        ("member", "create", False),
        ("viewer", "read", True),
        ("viewer", "execute", False),
        ("intruder", "read", False),
    ],
)
def test_role_matrix(authz, role, action, allowed):
    """Each role is granted exactly its fixed workflow permissions."""
    assert authz.check_permission(role, "workflow", action) is allowed


def test_owner_wildcard_covers_other_resources(authz):
    assert authz.check_permission("owner", "billing", "read")
    assert not authz.check_permission("admin", "billing", "read")


def test_require_permission_raises(authz):
    with pytest.raises(AuthorizationException):
        authz.require_permission("viewer", "workflow", "delete")
