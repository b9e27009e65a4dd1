from typing import Optional
from enum import Enum

from sqlmodel import Field

from .base import Timestamped


class UserRole(str, Enum):
    officer = "officer"
    family_member = "family_member"
    admin = "admin"


class User(Timestamped, table=True):
    id: str = Field(primary_key=True, index=True)
    firebase_uid: str = Field(unique=True, index=True)
    email: str = Field(unique=True, index=True)
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: UserRole = Field(index=True)

    # officer-only
    service_number: Optional[str] = Field(default=None, index=True)
    rank: Optional[str] = None
    unit: Optional[str] = None

    is_active: bool = Field(default=True, index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin
