from typing import Optional, Dict, Any, ClassVar
from datetime import datetime

from sqlmodel import Field, Column, JSON

from .base import Timestamped


class Application(Timestamped, table=True):
    workflow_name: ClassVar[str] = "application"
    # stage -> timestamp column stamped the first time the record enters it
    stage_timestamps: ClassVar[Dict[str, str]] = {
        "Submitted": "submitted_at",
        "Processing": "processing_at",
        "Approved": "approved_at",
    }
    # stage -> column that receives the transition comment
    comment_columns: ClassVar[Dict[str, str]] = {"Processing": "admin_comments", "Approved": "admin_comments"}

    id: str = Field(primary_key=True, index=True)
    application_id: str = Field(unique=True, index=True)  # APP<yyyymm><nnnn>
    scheme_id: str = Field(foreign_key="welfarescheme.id", index=True)
    applicant_id: str = Field(foreign_key="user.id", index=True)

    stage: str = Field(default="Draft", index=True)

    requested_amount: Optional[float] = None
    approved_amount: Optional[float] = None
    # name, date of birth, address, bank details ... as submitted by the applicant
    personal_details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    applicant_comments: Optional[str] = None
    admin_comments: Optional[str] = None

    submitted_at: Optional[datetime] = None
    processing_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    @property
    def owner_id(self) -> str:
        return self.applicant_id

    @property
    def reference(self) -> str:
        return self.application_id
