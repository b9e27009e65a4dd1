from .email import EmailResult, EmailService, EmergencyAlertNotice, MemoryTransport, build_transport
from .transitions import (
    EmailNotificationObserver,
    LogObserver,
    StageChangeEvent,
    TransitionObserver,
    TransitionService,
    TransitionSubject,
    build_subject,
    ensure_access,
)

__all__ = [
    "EmailResult",
    "EmailService",
    "EmergencyAlertNotice",
    "MemoryTransport",
    "build_transport",
    "EmailNotificationObserver",
    "LogObserver",
    "StageChangeEvent",
    "TransitionObserver",
    "TransitionService",
    "TransitionSubject",
    "build_subject",
    "ensure_access",
]
