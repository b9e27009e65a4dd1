import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status

from ..deps import (
    auth_bearer,
    get_email_service,
    get_grievance_repo,
    get_transition_service,
    get_user_repo,
    require_admin,
)
from ..errors import ApiError
from ..models import Grievance, GrievanceCategory, GrievancePriority, UserRole
from ..repository import GrievanceRepository, UserRepository
from ..schemas import (
    AssignRequest,
    CommunicationCreate,
    CommunicationRead,
    GrievanceCreate,
    GrievanceRead,
    HistoryEntry,
    Page,
    StageStatistics,
    TransitionRequest,
    TransitionResult,
    UserRead,
)
from ..services import EmailService, TransitionService, ensure_access

logger = logging.getLogger(__name__)

router = APIRouter()


def _load(grievances: GrievanceRepository, grievance_id: str, user: UserRead) -> GrievanceRead:
    grievance = grievances.get(grievance_id)
    if grievance is None:
        raise ApiError.not_found("Grievance", grievance_id)
    ensure_access(grievance.submitted_by, user)
    return grievance


def _notify_admins(users: UserRepository, email: EmailService, grievance: GrievanceRead) -> None:
    for admin in users.list_admins():
        result = email.send_notification_email(
            admin,
            "New Grievance Submitted",
            f"A new {grievance.priority.value} priority grievance ({grievance.grievance_id}) "
            f"has been filed: {grievance.title}",
            link=f"/grievances/{grievance.id}",
        )
        if not result.success:
            logger.warning("Grievance notice to %s not sent: %s", admin.email, result.error)


@router.post("/grievances", status_code=status.HTTP_201_CREATED, response_model=GrievanceRead)
def create_grievance(
    body: GrievanceCreate,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
    users: UserRepository = Depends(get_user_repo),
    email: EmailService = Depends(get_email_service),
    transitions: TransitionService = Depends(get_transition_service),
):
    """File a grievance as a draft; ``submit: true`` also submits it and alerts the admins."""
    grievance = grievances.create(user, body)
    if body.submit:
        transitions.execute(Grievance, grievance.id, "submit", user)
        grievance = grievances.get(grievance.id)
        _notify_admins(users, email, grievance)
    return grievance


@router.get("/grievances", response_model=Page[GrievanceRead])
def list_grievances(
    stage: Optional[str] = None,
    category: Optional[GrievanceCategory] = None,
    priority: Optional[GrievancePriority] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
):
    return grievances.list(
        submitted_by=None if user.role == UserRole.admin else user.id,
        stage=stage,
        category=category.value if category else None,
        priority=priority.value if priority else None,
        limit=limit,
        offset=offset,
    )


@router.get("/grievances/categories", response_model=List[str])
def grievance_categories(_: UserRead = Depends(auth_bearer)):
    return [c.value for c in GrievanceCategory]


@router.get("/grievances/statistics", response_model=StageStatistics)
def grievance_statistics(
    _: UserRead = Depends(require_admin),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
):
    return grievances.count_by_stage()


@router.get("/grievances/{grievance_id}", response_model=GrievanceRead)
def get_grievance(
    grievance_id: str,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
):
    return _load(grievances, grievance_id, user)


@router.post("/grievances/{grievance_id}/transitions/{transition}", response_model=TransitionResult)
def transition_grievance(
    grievance_id: str,
    transition: str,
    body: Optional[TransitionRequest] = None,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
    users: UserRepository = Depends(get_user_repo),
    email: EmailService = Depends(get_email_service),
    transitions: TransitionService = Depends(get_transition_service),
):
    result = transitions.execute(Grievance, grievance_id, transition, user, body.comment if body else None)
    if transition == "submit":
        _notify_admins(users, email, grievances.get(grievance_id))
    return result


@router.get("/grievances/{grievance_id}/history", response_model=List[HistoryEntry])
def grievance_history(
    grievance_id: str,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
):
    _load(grievances, grievance_id, user)
    return grievances.history(grievance_id)


@router.put("/grievances/{grievance_id}/assign", response_model=GrievanceRead)
def assign_grievance(
    grievance_id: str,
    body: AssignRequest,
    _: UserRead = Depends(require_admin),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
    users: UserRepository = Depends(get_user_repo),
    email: EmailService = Depends(get_email_service),
):
    grievance = grievances.assign(grievance_id, body.assignee_id)
    assignee = users.get(body.assignee_id)
    result = email.send_notification_email(
        assignee,
        "Grievance Assigned",
        f"Grievance {grievance.grievance_id} has been assigned to you: {grievance.title}",
        link=f"/grievances/{grievance.id}",
    )
    if not result.success:
        logger.warning("Assignment notice to %s not sent: %s", assignee.email, result.error)
    return grievance


def _notify_thread(
    users: UserRepository,
    email: EmailService,
    grievance: GrievanceRead,
    author: UserRead,
    message: CommunicationRead,
) -> None:
    """The submitter hears about replies; the assignee (or every admin) hears about the submitter."""
    if message.is_internal:
        return
    if author.id == grievance.submitted_by:
        assignee = users.get(grievance.assigned_to) if grievance.assigned_to else None
        recipients = [assignee] if assignee and assignee.is_active else users.list_admins()
        text = f"{author.first_name} {author.last_name} responded to grievance: {grievance.title}"
    else:
        recipients = [users.get(grievance.submitted_by)]
        text = f"New response received for your grievance: {grievance.title}"

    for recipient in recipients:
        result = email.send_notification_email(recipient, "Grievance Update", text, link=f"/grievances/{grievance.id}")
        if not result.success:
            logger.warning("Grievance reply notice to %s not sent: %s", recipient.email, result.error)


@router.post(
    "/grievances/{grievance_id}/communications",
    status_code=status.HTTP_201_CREATED,
    response_model=CommunicationRead,
)
def add_communication(
    grievance_id: str,
    body: CommunicationCreate,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
    users: UserRepository = Depends(get_user_repo),
    email: EmailService = Depends(get_email_service),
):
    grievance = _load(grievances, grievance_id, user)
    if body.is_internal and user.role != UserRole.admin:
        raise ApiError.forbidden("Only admins can add internal notes")
    message = grievances.add_communication(grievance_id, user.id, body)
    _notify_thread(users, email, grievance, user, message)
    return message


@router.get("/grievances/{grievance_id}/communications", response_model=List[CommunicationRead])
def list_communications(
    grievance_id: str,
    user: UserRead = Depends(auth_bearer),
    grievances: GrievanceRepository = Depends(get_grievance_repo),
):
    _load(grievances, grievance_id, user)
    return grievances.communications(grievance_id, include_internal=user.role == UserRole.admin)
