from typing import List, Optional

from fastapi import APIRouter, Depends

from ..deps import auth_bearer, get_application_repo, get_transition_service, require_admin
from ..errors import ApiError
from ..models import Application, UserRole
from ..repository import ApplicationRepository
from ..schemas import (
    ApplicationRead,
    HistoryEntry,
    Page,
    StageStatistics,
    TransitionRequest,
    TransitionResult,
    UserRead,
)
from ..services import TransitionService, ensure_access

router = APIRouter()


def _load(applications: ApplicationRepository, application_id: str, user: UserRead) -> ApplicationRead:
    application = applications.get(application_id)
    if application is None:
        raise ApiError.not_found("Application", application_id)
    ensure_access(application.applicant_id, user)
    return application


@router.get("/welfare/applications", response_model=Page[ApplicationRead])
def list_applications(
    stage: Optional[str] = None,
    scheme_id: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: UserRead = Depends(auth_bearer),
    applications: ApplicationRepository = Depends(get_application_repo),
):
    """Admins see every application, everyone else only their own."""
    return applications.list(
        applicant_id=None if user.role == UserRole.admin else user.id,
        scheme_id=scheme_id,
        stage=stage,
        limit=limit,
        offset=offset,
    )


@router.get("/welfare/applications/statistics", response_model=StageStatistics)
def application_statistics(
    _: UserRead = Depends(require_admin),
    applications: ApplicationRepository = Depends(get_application_repo),
):
    return applications.count_by_stage()


@router.get("/welfare/applications/{application_id}", response_model=ApplicationRead)
def get_application(
    application_id: str,
    user: UserRead = Depends(auth_bearer),
    applications: ApplicationRepository = Depends(get_application_repo),
):
    return _load(applications, application_id, user)


@router.post("/welfare/applications/{application_id}/transitions/{transition}", response_model=TransitionResult)
def transition_application(
    application_id: str,
    transition: str,
    body: Optional[TransitionRequest] = None,
    user: UserRead = Depends(auth_bearer),
    transitions: TransitionService = Depends(get_transition_service),
):
    return transitions.execute(Application, application_id, transition, user, body.comment if body else None)


@router.get("/welfare/applications/{application_id}/history", response_model=List[HistoryEntry])
def application_history(
    application_id: str,
    user: UserRead = Depends(auth_bearer),
    applications: ApplicationRepository = Depends(get_application_repo),
):
    _load(applications, application_id, user)
    return applications.history(application_id)
