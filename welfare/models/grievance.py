from typing import Optional, Dict, ClassVar
from datetime import datetime, timedelta
from enum import Enum

from sqlmodel import Field

from .base import Timestamped, as_utc, utcnow


class GrievanceCategory(str, Enum):
    administrative = "administrative"
    welfare_scheme = "welfare_scheme"
    harassment = "harassment"
    discrimination = "discrimination"
    facility_related = "facility_related"
    financial = "financial"
    medical = "medical"
    accommodation = "accommodation"
    promotion = "promotion"
    transfer = "transfer"
    other = "other"


class GrievancePriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# days allowed to resolve a grievance, by priority
RESOLUTION_DAYS: Dict[GrievancePriority, int] = {
    GrievancePriority.urgent: 1,
    GrievancePriority.high: 7,
    GrievancePriority.medium: 15,
    GrievancePriority.low: 30,
}


def target_resolution_date(priority: GrievancePriority, start: Optional[datetime] = None) -> datetime:
    start = start or utcnow()
    return start + timedelta(days=RESOLUTION_DAYS[GrievancePriority(priority)])


class Grievance(Timestamped, table=True):
    workflow_name: ClassVar[str] = "grievance"
    stage_timestamps: ClassVar[Dict[str, str]] = {
        "Submitted": "submitted_at",
        "UnderReview": "reviewed_at",
        "Resolved": "resolved_at",
    }
    comment_columns: ClassVar[Dict[str, str]] = {"Resolved": "resolution_details"}

    id: str = Field(primary_key=True, index=True)
    grievance_id: str = Field(unique=True, index=True)  # GRV<yyyymm><nnnn>
    title: str = Field(max_length=200)
    description: str = Field(max_length=2000)
    category: GrievanceCategory = Field(index=True)
    priority: GrievancePriority = Field(default=GrievancePriority.medium, index=True)

    submitted_by: str = Field(foreign_key="user.id", index=True)
    assigned_to: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    is_anonymous: bool = False
    incident_location: Optional[str] = None

    stage: str = Field(default="Draft", index=True)
    target_resolution_date: Optional[datetime] = None
    resolution_details: Optional[str] = None

    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def owner_id(self) -> str:
        return self.submitted_by

    @property
    def reference(self) -> str:
        return self.grievance_id

    def overdue(self, terminal: bool, now: Optional[datetime] = None) -> bool:
        """Past the target date and not yet in a terminal stage."""
        target = as_utc(self.target_resolution_date)
        if terminal or target is None:
            return False
        return (now or utcnow()) > target
