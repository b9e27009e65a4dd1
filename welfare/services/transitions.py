"""
Transition Engine: executes registered workflow transitions against stored records.

Observer Pattern: once a stage change is committed, every attached observer
is notified with a ``StageChangeEvent``. Observers run after the commit, so
a failing observer is logged and the stage change stands.
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Type

from sqlalchemy import Engine, update
from sqlmodel import Session, SQLModel, select

from ..errors import ApiError
from ..models import Application, StageHistory, User, UserRole, WelfareScheme, utcnow
from ..schemas import TransitionResult, UserRead
from ..util.ids import new_id
from ..workflow import InvalidTransition, WorkflowRegistry, get_registry
from .email import EmailService

logger = logging.getLogger(__name__)

RECORD_LABELS = {
    "application": "Application",
    "grievance": "Grievance",
}


@dataclass
class StageChangeEvent:
    """A committed stage change."""

    workflow: str
    transition: str
    from_stage: str
    to_stage: str
    record: Any
    actor: UserRead
    owner: Optional[User] = None
    scheme: Optional[WelfareScheme] = None
    comment: Optional[str] = None
    at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow,
            "transition": self.transition,
            "from_stage": self.from_stage,
            "to_stage": self.to_stage,
            "record_id": self.record.id,
            "reference": self.record.reference,
            "actor_id": self.actor.id,
            "at": self.at.isoformat() if self.at else None,
        }


class TransitionObserver(ABC):
    """Base observer for stage changes."""

    @abstractmethod
    def update(self, event: StageChangeEvent) -> None:
        pass


class LogObserver(TransitionObserver):
    """Writes every stage change to the log and keeps the most recent entries."""

    def __init__(self, max_entries: int = 200):
        self._logs: Deque[Dict[str, Any]] = deque(maxlen=max_entries)

    def update(self, event: StageChangeEvent) -> None:
        entry = event.to_dict()
        self._logs.append(entry)
        logger.info(
            "%s %s: %s -> %s via '%s' by %s",
            event.workflow,
            entry["reference"],
            event.from_stage,
            event.to_stage,
            event.transition,
            event.actor.id,
        )

    def get_logs(self) -> List[Dict[str, Any]]:
        return list(self._logs)

    def clear_logs(self) -> None:
        self._logs.clear()


class EmailNotificationObserver(TransitionObserver):
    """Mails the record's owner about its new stage."""

    def __init__(self, email_service: EmailService):
        self.email_service = email_service

    def update(self, event: StageChangeEvent) -> None:
        if event.owner is None:
            return

        if event.workflow == "grievance":
            result = self.email_service.send_grievance_status_email(event.owner, event.record)
        elif event.workflow == "application" and event.scheme is not None:
            result = self.email_service.send_application_update_email(event.owner, event.record, event.scheme)
        else:
            return

        if not result.success:
            logger.warning("Stage change mail for %s not sent: %s", event.record.reference, result.error)


class TransitionSubject:
    """Keeps the observers and fans events out to them."""

    def __init__(self):
        self._observers: List[TransitionObserver] = []

    def attach(self, observer: TransitionObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def detach(self, observer: TransitionObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observers(self) -> List[TransitionObserver]:
        return list(self._observers)

    def notify(self, event: StageChangeEvent) -> None:
        for observer in self._observers:
            try:
                observer.update(event)
            except Exception:
                logger.exception("Observer %s failed on %s", type(observer).__name__, event.to_dict())


def ensure_access(owner_id: str, user: UserRead) -> None:
    """Owners and admins may act on a record; everyone else gets 403."""
    if user.role != UserRole.admin and owner_id != user.id:
        raise ApiError.forbidden("You do not have access to this record")


class TransitionService:
    def __init__(
        self,
        engine: Engine,
        registry: Optional[WorkflowRegistry] = None,
        subject: Optional[TransitionSubject] = None,
    ):
        self.engine = engine
        self.registry = registry or get_registry()
        self.subject = subject or TransitionSubject()

    def execute(
        self,
        model_cls: Type[SQLModel],
        record_id: str,
        transition: str,
        actor: UserRead,
        comment: Optional[str] = None,
    ) -> TransitionResult:
        """
        Fire ``transition`` on a stored record.

        Raises:
            ApiError: 404 when the record is missing, 403 when the actor may not fire it
            UnknownTransition: the workflow has no such transition
            InvalidTransition: the record is not in the transition's source stage,
                or a concurrent transition moved it after it was read
        """
        workflow = model_cls.workflow_name

        with Session(self.engine) as session:
            row = session.get(model_cls, record_id)
            if row is None:
                raise ApiError.not_found(RECORD_LABELS.get(workflow, "Record"), record_id)

            ensure_access(row.owner_id, actor)

            definition = self.registry.get_transition(workflow, transition)
            if definition.roles and actor.role.value not in definition.roles:
                raise ApiError.forbidden(f"Only {', '.join(definition.roles)} may {transition} a {workflow}")

            from_stage = row.stage
            to_stage = self.registry.apply_transition(workflow, from_stage, transition)
            now = utcnow()

            values: Dict[str, Any] = {"stage": to_stage}
            column = model_cls.stage_timestamps.get(to_stage)
            if column and getattr(row, column) is None:
                values[column] = now
            comment_column = model_cls.comment_columns.get(to_stage)
            if comment and comment_column:
                values[comment_column] = comment

            # compare-and-set on the stage read above; a concurrent transition wins
            moved = session.connection().execute(
                update(model_cls)
                .where(model_cls.id == record_id, model_cls.stage == from_stage)
                .values(**values)
            )
            if moved.rowcount != 1:
                session.rollback()
                current = session.exec(select(model_cls.stage).where(model_cls.id == record_id)).one_or_none()
                logger.warning(
                    "%s %s moved to %s while '%s' was being applied",
                    workflow, record_id, current, transition,
                )
                raise InvalidTransition(workflow, transition, current or from_stage, from_stage)

            session.add(
                StageHistory(
                    id=new_id("hst_"),
                    workflow=workflow,
                    record_id=row.id,
                    transition=transition,
                    from_stage=from_stage,
                    to_stage=to_stage,
                    actor_id=actor.id,
                    comment=comment,
                )
            )
            session.commit()
            session.refresh(row)

            owner = session.get(User, row.owner_id)
            scheme = session.get(WelfareScheme, row.scheme_id) if isinstance(row, Application) else None
            event = StageChangeEvent(
                workflow=workflow,
                transition=transition,
                from_stage=from_stage,
                to_stage=to_stage,
                record=row,
                actor=actor,
                owner=owner,
                scheme=scheme,
                comment=comment,
                at=now,
            )
            self.subject.notify(event)

        return TransitionResult(
            workflow=workflow,
            record_id=record_id,
            reference=event.record.reference,
            transition=transition,
            from_stage=from_stage,
            to_stage=to_stage,
            at=now,
        )


def build_subject(email_service: Optional[EmailService] = None) -> TransitionSubject:
    """Subject with the standard observers attached."""
    subject = TransitionSubject()
    subject.attach(LogObserver())
    if email_service is not None:
        subject.attach(EmailNotificationObserver(email_service))
    return subject
