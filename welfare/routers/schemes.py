from typing import Optional

from fastapi import APIRouter, Depends, status

from ..deps import (
    auth_bearer,
    get_application_repo,
    get_scheme_repo,
    get_transition_service,
    require_admin,
)
from ..errors import ApiError
from ..models import Application, SchemeCategory, UserRole
from ..repository import ApplicationRepository, SchemeRepository
from ..schemas import ApplicationRead, ApplyRequest, Page, SchemeCreate, SchemeRead, SchemeUpdate, UserRead
from ..services import TransitionService

router = APIRouter()


@router.get("/welfare/schemes", response_model=Page[SchemeRead])
def list_schemes(
    category: Optional[SchemeCategory] = None,
    include_inactive: bool = False,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: UserRead = Depends(auth_bearer),
    schemes: SchemeRepository = Depends(get_scheme_repo),
):
    # inactive schemes are only listed for admins
    active_only = not (include_inactive and user.role == UserRole.admin)
    return schemes.list(
        active_only=active_only,
        category=category.value if category else None,
        limit=limit,
        offset=offset,
    )


@router.post("/welfare/schemes", status_code=status.HTTP_201_CREATED, response_model=SchemeRead)
def create_scheme(
    body: SchemeCreate,
    _: UserRead = Depends(require_admin),
    schemes: SchemeRepository = Depends(get_scheme_repo),
):
    return schemes.create(body)


@router.get("/welfare/schemes/{scheme_id}", response_model=SchemeRead)
def get_scheme(
    scheme_id: str,
    _: UserRead = Depends(auth_bearer),
    schemes: SchemeRepository = Depends(get_scheme_repo),
):
    scheme = schemes.get(scheme_id)
    if scheme is None:
        raise ApiError.not_found("Welfare scheme", scheme_id)
    return scheme


@router.put("/welfare/schemes/{scheme_id}", response_model=SchemeRead)
def update_scheme(
    scheme_id: str,
    body: SchemeUpdate,
    _: UserRead = Depends(require_admin),
    schemes: SchemeRepository = Depends(get_scheme_repo),
):
    return schemes.update(scheme_id, body)


@router.delete("/welfare/schemes/{scheme_id}", response_model=SchemeRead)
def deactivate_scheme(
    scheme_id: str,
    _: UserRead = Depends(require_admin),
    schemes: SchemeRepository = Depends(get_scheme_repo),
):
    """Soft delete: the scheme stops taking applications but its records stay."""
    return schemes.deactivate(scheme_id)


@router.post("/welfare/schemes/{scheme_id}/apply", status_code=status.HTTP_201_CREATED, response_model=ApplicationRead)
def apply(
    scheme_id: str,
    body: ApplyRequest,
    user: UserRead = Depends(auth_bearer),
    applications: ApplicationRepository = Depends(get_application_repo),
    transitions: TransitionService = Depends(get_transition_service),
):
    """Create a draft application; ``submit: true`` also submits it."""
    created = applications.create(scheme_id, user, body)
    if body.submit:
        transitions.execute(Application, created.id, "submit", user)
        created = applications.get(created.id)
    return created
