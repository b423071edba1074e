from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.interfaces import IActionEffects
from src.application.services.authorization_service import AuthorizationService
from src.application.use_cases.workflows.workflow_engine import WorkflowEngine
from src.application.use_cases.workflows.workflow_operations import WorkflowService
from src.infrastructure.config.settings import Settings, get_settings
from src.infrastructure.external.actions.effects import build_action_effects
from src.infrastructure.persistence.database import (AsyncSessionLocal, get_db,
                                                     get_db_transactional)
from src.infrastructure.persistence.models.agency import Agency
from src.infrastructure.persistence.repositories import (
    AgencyRepository,
    WorkflowRepository,
    WorkflowRunRepository,
)
from src.infrastructure.scheduling.run_dispatcher import RunDispatcher
from src.infrastructure.security.jwt import verify_token
from src.presentation.api.v1.schemas.token import TokenPayload

# Missing credentials are a 401, not HTTPBearer's default 403
security = HTTPBearer(auto_error=False)

# Global service instances (singletons)
_action_effects: IActionEffects | None = None
_run_dispatcher: RunDispatcher | None = None
_authz_service = AuthorizationService()


def get_action_effects() -> IActionEffects:
    """
    Action effects dependency (singleton)

    Dry-run logging effects unless ACTION_EFFECTS_URL is configured.
    """
    global _action_effects
    if _action_effects is None:
        _action_effects = build_action_effects(get_settings())
    return _action_effects


def set_action_effects(effects: IActionEffects | None) -> None:
    """Replace the global effects collaborator (called on app startup/shutdown)"""
    global _action_effects
    _action_effects = effects


def get_run_dispatcher() -> RunDispatcher:
    """
    Run dispatcher dependency (singleton)

    Owns the background tasks of runs that wait out action delays.
    """
    global _run_dispatcher
    if _run_dispatcher is None:
        _run_dispatcher = RunDispatcher(
            AsyncSessionLocal,
            lambda session: build_workflow_engine(session, get_action_effects()),
        )
    return _run_dispatcher


def set_run_dispatcher(dispatcher: RunDispatcher | None) -> None:
    global _run_dispatcher
    _run_dispatcher = dispatcher


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenPayload:
    """
    Validate JWT token and return authenticated user payload.
    Token must contain 'sub' (user_id) and 'agency_id' claims.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = verify_token(credentials.credentials)
        return TokenPayload(**payload)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_agency(
    user: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Agency:
    """
    Get current agency from authenticated user's token claims.
    Agency ID is derived from JWT token, preventing header spoofing attacks.
    """
    agency = await AgencyRepository(db).get_active(user.agency_id)
    if not agency:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agency not found or access denied",
        )
    return agency


def require_permission(resource: str, action: str):
    """
    Dependency factory for route-level permission checking.

    Usage:
        @router.post("/", dependencies=[Depends(require_permission("workflow", "create"))])
        async def create_workflow(...):
            ...
    """

    async def permission_checker(
        user: TokenPayload = Depends(get_current_user),
    ) -> TokenPayload:
        if not _authz_service.check_permission(user.role, resource, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {resource}:{action} required",
            )
        return user

    return permission_checker


def build_workflow_engine(
    db: AsyncSession, effects: IActionEffects, settings: Settings | None = None
) -> WorkflowEngine:
    """Internal helper to construct WorkflowEngine with all dependencies"""
    settings = settings or get_settings()
    return WorkflowEngine(
        workflow_repo=WorkflowRepository(db),
        run_repo=WorkflowRunRepository(db),
        effects=effects,
        action_timeout_seconds=settings.workflow_action_timeout_seconds,
        delay_mode=settings.workflow_delay_mode,
    )


def _build_workflow_service(db: AsyncSession) -> WorkflowService:
    return WorkflowService(
        workflow_repo=WorkflowRepository(db),
        run_repo=WorkflowRunRepository(db),
        max_triggers=get_settings().workflow_max_triggers,
    )


async def get_workflow_service(db: AsyncSession = Depends(get_db)) -> WorkflowService:
    """Workflow service dependency for read operations"""
    return _build_workflow_service(db)


async def get_workflow_service_transactional(
    db: AsyncSession = Depends(get_db_transactional),
) -> WorkflowService:
    """Workflow service dependency with transaction management"""
    return _build_workflow_service(db)


async def get_workflow_engine(
    db: AsyncSession = Depends(get_db_transactional),
    effects: IActionEffects = Depends(get_action_effects),
) -> WorkflowEngine:
    """Run engine dependency; runs and counters commit with the request"""
    return build_workflow_engine(db, effects)
