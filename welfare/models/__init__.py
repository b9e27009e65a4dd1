from .base import Timestamped, utcnow, as_utc
from .user import User, UserRole
from .scheme import WelfareScheme, SchemeCategory, EligibilityType
from .application import Application
from .grievance import Grievance, GrievanceCategory, GrievancePriority, target_resolution_date
from .history import StageHistory
from .communication import GrievanceCommunication

__all__ = [
    "Timestamped", "utcnow", "as_utc",
    "User", "UserRole",
    "WelfareScheme", "SchemeCategory", "EligibilityType",
    "Application",
    "Grievance", "GrievanceCategory", "GrievancePriority", "target_resolution_date",
    "StageHistory",
    "GrievanceCommunication",
]
