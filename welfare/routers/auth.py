import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, status

from ..deps import auth_bearer, bearer_subject, get_email_service, get_user_repo
from ..errors import ApiError
from ..models import UserRole
from ..repository import UserRepository
from ..schemas import RegisterRequest, UserRead
from ..services import EmailService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/register", status_code=status.HTTP_201_CREATED, response_model=UserRead)
def register(
    body: RegisterRequest,
    authorization: Optional[str] = Header(default=None),
    users: UserRepository = Depends(get_user_repo),
    email: EmailService = Depends(get_email_service),
):
    """Create the local profile for an identity-provider account."""
    firebase_uid = bearer_subject(authorization)
    if body.role == UserRole.admin:
        raise ApiError.forbidden("Admin accounts cannot be self-registered")

    user = users.create(firebase_uid, body)
    result = email.send_welcome_email(user)
    if not result.success:
        logger.warning("Welcome email to %s not sent: %s", user.email, result.error)
    return user


@router.get("/auth/profile", response_model=UserRead)
def profile(user: UserRead = Depends(auth_bearer)):
    return user
