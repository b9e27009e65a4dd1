from typing import Optional

from fastapi import APIRouter, Depends

from ..deps import get_user_repo, require_admin
from ..errors import ApiError
from ..models import UserRole
from ..repository import UserRepository
from ..schemas import Page, UserRead, UserStatusUpdate

router = APIRouter()


@router.get("/users", response_model=Page[UserRead])
def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    _: UserRead = Depends(require_admin),
    users: UserRepository = Depends(get_user_repo),
):
    return users.list(role=role.value if role else None, is_active=is_active, limit=limit, offset=offset)


@router.put("/users/{user_id}/status", response_model=UserRead)
def update_user_status(
    user_id: str,
    body: UserStatusUpdate,
    admin: UserRead = Depends(require_admin),
    users: UserRepository = Depends(get_user_repo),
):
    """Activate or deactivate an account; admins cannot lock themselves out."""
    if user_id == admin.id and not body.is_active:
        raise ApiError.bad_request("You cannot deactivate your own account")
    return users.set_active(user_id, body.is_active)
