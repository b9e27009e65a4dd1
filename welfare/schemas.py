"""
API data transfer objects.
Table models live in ``welfare.models``; these are what the routes accept and return.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from .models import (
    EligibilityType,
    GrievanceCategory,
    GrievancePriority,
    SchemeCategory,
    UserRole,
)

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T]
    limit: int
    offset: int
    total: int


# ============================================================================
# Users
# ============================================================================

class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    firebase_uid: str
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: UserRole
    service_number: Optional[str] = None
    rank: Optional[str] = None
    unit: Optional[str] = None
    is_active: bool
    created_at: datetime


class RegisterRequest(BaseModel):
    """Profile submitted after the client has signed in with the identity provider"""
    email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone_number: Optional[str] = Field(default=None, pattern=r"^[0-9]{10}$")
    role: UserRole = UserRole.officer
    service_number: Optional[str] = None
    rank: Optional[str] = None
    unit: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: StrictBool


# ============================================================================
# Welfare schemes
# ============================================================================

class SchemeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    category: SchemeCategory
    eligibility_type: EligibilityType = EligibilityType.both
    benefit_amount: Optional[float] = Field(default=None, ge=0)
    application_deadline: Optional[datetime] = None
    is_active: bool = True


class SchemeUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    category: Optional[SchemeCategory] = None
    eligibility_type: Optional[EligibilityType] = None
    benefit_amount: Optional[float] = Field(default=None, ge=0)
    application_deadline: Optional[datetime] = None
    is_active: Optional[bool] = None


class SchemeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    category: SchemeCategory
    eligibility_type: EligibilityType
    benefit_amount: Optional[float] = None
    application_deadline: Optional[datetime] = None
    is_active: bool
    created_at: datetime


# ============================================================================
# Applications
# ============================================================================

class ApplyRequest(BaseModel):
    requested_amount: Optional[float] = Field(default=None, ge=0)
    personal_details: Dict[str, Any] = Field(default_factory=dict)
    applicant_comments: Optional[str] = Field(default=None, max_length=1000)
    submit: bool = False  # fire "submit" right after creating the draft


class ApplicationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    application_id: str
    scheme_id: str
    applicant_id: str
    stage: str
    requested_amount: Optional[float] = None
    approved_amount: Optional[float] = None
    personal_details: Dict[str, Any] = Field(default_factory=dict)
    applicant_comments: Optional[str] = None
    admin_comments: Optional[str] = None
    submitted_at: Optional[datetime] = None
    processing_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    available_transitions: List[str] = Field(default_factory=list)


# ============================================================================
# Grievances
# ============================================================================

class GrievanceCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    category: GrievanceCategory
    priority: GrievancePriority = GrievancePriority.medium
    is_anonymous: bool = False
    incident_location: Optional[str] = Field(default=None, max_length=200)
    submit: bool = False


class GrievanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    grievance_id: str
    title: str
    description: str
    category: GrievanceCategory
    priority: GrievancePriority
    submitted_by: str
    assigned_to: Optional[str] = None
    is_anonymous: bool
    incident_location: Optional[str] = None
    stage: str
    target_resolution_date: Optional[datetime] = None
    resolution_details: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    is_overdue: bool = False
    available_transitions: List[str] = Field(default_factory=list)


class AssignRequest(BaseModel):
    assignee_id: str = Field(min_length=1)


class CommunicationCreate(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    is_internal: bool = False  # admin-only note, hidden from the submitter


class CommunicationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    grievance_id: str
    author_id: str
    message: str
    is_internal: bool
    created_at: datetime


# ============================================================================
# Transitions & history
# ============================================================================

class TransitionRequest(BaseModel):
    comment: Optional[str] = Field(default=None, max_length=1000)


class TransitionResult(BaseModel):
    workflow: str
    record_id: str
    reference: str
    transition: str
    from_stage: str
    to_stage: str
    at: datetime


class HistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow: str
    record_id: str
    transition: str
    from_stage: str
    to_stage: str
    actor_id: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime


class StageStatistics(BaseModel):
    workflow: str
    total: int
    by_stage: Dict[str, int]


# ============================================================================
# Workflow registry
# ============================================================================

class TransitionRead(BaseModel):
    name: str
    from_stage: str
    to_stage: str
    roles: List[str] = Field(default_factory=list)


class WorkflowRead(BaseModel):
    name: str
    stages: List[str]
    initial_stage: str
    terminal_stages: List[str]
    transitions: List[TransitionRead]


class TransitionCheckRequest(BaseModel):
    current_stage: str
    transition: str


class TransitionCheckResponse(BaseModel):
    workflow: str
    transition: str
    allowed: bool
    from_stage: str
    to_stage: str
