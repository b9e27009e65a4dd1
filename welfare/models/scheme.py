from typing import Optional
from datetime import datetime
from enum import Enum

from sqlmodel import Field

from .base import Timestamped


class SchemeCategory(str, Enum):
    housing = "housing"
    education = "education"
    healthcare = "healthcare"
    financial_assistance = "financial_assistance"
    pension = "pension"
    insurance = "insurance"
    recreation = "recreation"
    other = "other"


class EligibilityType(str, Enum):
    officer = "officer"
    family_member = "family_member"
    both = "both"


class WelfareScheme(Timestamped, table=True):
    id: str = Field(primary_key=True, index=True)
    name: str = Field(index=True)
    description: str
    category: SchemeCategory = Field(index=True)
    eligibility_type: EligibilityType = Field(default=EligibilityType.both)

    benefit_amount: Optional[float] = None
    application_deadline: Optional[datetime] = None
    is_active: bool = Field(default=True, index=True)

    def accepts(self, role: str) -> bool:
        """Whether a user with ``role`` may apply."""
        if role == "admin" or self.eligibility_type == EligibilityType.both:
            return True
        return self.eligibility_type.value == role
