"""
FastAPI dependencies: shared state from ``app.state`` and bearer authentication.
"""
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy import Engine

from .config import settings
from .errors import ApiError
from .models import UserRole
from .repository import ApplicationRepository, GrievanceRepository, SchemeRepository, UserRepository
from .schemas import UserRead
from .services import EmailService, TransitionService
from .workflow import WorkflowRegistry


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_registry(request: Request) -> WorkflowRegistry:
    return request.app.state.registry


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def get_transition_service(request: Request) -> TransitionService:
    return request.app.state.transition_service


def get_user_repo(engine: Engine = Depends(get_engine), registry: WorkflowRegistry = Depends(get_registry)):
    return UserRepository(engine, registry)


def get_scheme_repo(engine: Engine = Depends(get_engine), registry: WorkflowRegistry = Depends(get_registry)):
    return SchemeRepository(engine, registry)


def get_application_repo(engine: Engine = Depends(get_engine), registry: WorkflowRegistry = Depends(get_registry)):
    return ApplicationRepository(engine, registry)


def get_grievance_repo(engine: Engine = Depends(get_engine), registry: WorkflowRegistry = Depends(get_registry)):
    return GrievanceRepository(engine, registry)


def bearer_subject(authorization: Optional[str]) -> str:
    """Firebase uid carried by an ``Authorization: Bearer <prefix><uid>`` header."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise ApiError.unauthorized("Missing Bearer token")
    token = authorization[len("bearer "):].strip()
    prefix = settings.auth_token_prefix
    if not token.startswith(prefix) or len(token) == len(prefix):
        raise ApiError.unauthorized("Invalid token")
    return token[len(prefix):]


def auth_bearer(
    authorization: Optional[str] = Header(default=None),
    users: UserRepository = Depends(get_user_repo),
) -> UserRead:
    user = users.get_by_firebase_uid(bearer_subject(authorization))
    if user is None:
        raise ApiError.unauthorized("User not found")
    if not user.is_active:
        raise ApiError.forbidden("Account is deactivated")
    return user


def require_admin(user: UserRead = Depends(auth_bearer)) -> UserRead:
    if user.role != UserRole.admin:
        raise ApiError.forbidden("Admin access required")
    return user
