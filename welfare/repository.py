"""
Repository Layer
Handles all database operations for users, schemes, applications and grievances.
"""

import logging
from datetime import datetime, UTC
from typing import List, Optional, Type

from sqlalchemy import Engine, func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from .errors import ApiError
from .models import (
    Application,
    Grievance,
    GrievanceCommunication,
    StageHistory,
    User,
    UserRole,
    WelfareScheme,
    as_utc,
    target_resolution_date,
)
from .schemas import (
    ApplicationRead,
    ApplyRequest,
    CommunicationCreate,
    CommunicationRead,
    GrievanceCreate,
    GrievanceRead,
    HistoryEntry,
    Page,
    RegisterRequest,
    SchemeCreate,
    SchemeRead,
    SchemeUpdate,
    StageStatistics,
    UserRead,
)
from .util.ids import new_id, public_reference
from .util.pagination import clamp_limit, clamp_offset
from .workflow import WorkflowRegistry, get_registry

logger = logging.getLogger(__name__)

# attempts at drawing a free GRV/APP reference before giving up
MAX_REFERENCE_ATTEMPTS = 20


def unique_reference(session: Session, model: Type[SQLModel], column, kind: str) -> str:
    for _ in range(MAX_REFERENCE_ATTEMPTS):
        candidate = public_reference(kind)
        if session.exec(select(model).where(column == candidate)).first() is None:
            return candidate
    raise ApiError.internal(f"Could not allocate a unique {kind} reference")


class BaseRepository:
    def __init__(self, engine: Engine, registry: Optional[WorkflowRegistry] = None):
        self.engine = engine
        self.registry = registry or get_registry()


# ============================================================================
# Users
# ============================================================================

class UserRepository(BaseRepository):
    """User profiles keyed by identity-provider uid"""

    def create(self, firebase_uid: str, data: RegisterRequest, role: Optional[UserRole] = None) -> UserRead:
        with Session(self.engine) as session:
            clash = session.exec(
                select(User).where(or_(User.firebase_uid == firebase_uid, User.email == data.email.lower()))
            ).first()
            if clash:
                raise ApiError.conflict("A user with this account or email already exists")

            user = User(
                id=new_id("usr_"),
                firebase_uid=firebase_uid,
                email=data.email.lower(),
                first_name=data.first_name,
                last_name=data.last_name,
                phone_number=data.phone_number,
                role=role or data.role,
                service_number=data.service_number,
                rank=data.rank,
                unit=data.unit,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            logger.info("Registered user %s (%s)", user.id, user.role.value)
            return UserRead.model_validate(user)

    def get(self, user_id: str) -> Optional[UserRead]:
        with Session(self.engine) as session:
            user = session.get(User, user_id)
            return UserRead.model_validate(user) if user else None

    def get_by_firebase_uid(self, firebase_uid: str) -> Optional[UserRead]:
        with Session(self.engine) as session:
            user = session.exec(select(User).where(User.firebase_uid == firebase_uid)).first()
            return UserRead.model_validate(user) if user else None

    def list_admins(self) -> List[UserRead]:
        with Session(self.engine) as session:
            admins = session.exec(
                select(User).where(User.role == UserRole.admin, User.is_active == True)  # noqa: E712
            ).all()
            return [UserRead.model_validate(a) for a in admins]

    def list(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[UserRead]:
        limit, offset = clamp_limit(limit), clamp_offset(offset)
        with Session(self.engine) as session:
            query = select(User)
            if role:
                query = query.where(User.role == role)
            if is_active is not None:
                query = query.where(User.is_active == is_active)

            total = session.exec(select(func.count()).select_from(query.subquery())).one()
            rows = session.exec(query.order_by(User.created_at.desc()).offset(offset).limit(limit)).all()
            return Page[UserRead](
                items=[UserRead.model_validate(r) for r in rows],
                limit=limit,
                offset=offset,
                total=total,
            )

    def set_active(self, user_id: str, is_active: bool) -> UserRead:
        """
        Activate or deactivate an account. Deactivated users keep their records
        but every authenticated request from them is refused.

        Raises:
            ApiError: 404 if the user does not exist
        """
        with Session(self.engine) as session:
            user = session.get(User, user_id)
            if user is None:
                raise ApiError.not_found("User", user_id)
            user.is_active = is_active
            session.add(user)
            session.commit()
            session.refresh(user)
            logger.info("User %s %s", user.id, "activated" if is_active else "deactivated")
            return UserRead.model_validate(user)


# ============================================================================
# Welfare schemes
# ============================================================================

class SchemeRepository(BaseRepository):
    def create(self, data: SchemeCreate) -> SchemeRead:
        with Session(self.engine) as session:
            scheme = WelfareScheme(id=new_id("sch_"), **data.model_dump())
            session.add(scheme)
            session.commit()
            session.refresh(scheme)
            return SchemeRead.model_validate(scheme)

    def get(self, scheme_id: str) -> Optional[SchemeRead]:
        with Session(self.engine) as session:
            scheme = session.get(WelfareScheme, scheme_id)
            return SchemeRead.model_validate(scheme) if scheme else None

    def update(self, scheme_id: str, data: SchemeUpdate) -> SchemeRead:
        changes = data.model_dump(exclude_unset=True)
        # only these columns may be cleared with an explicit null
        changes = {k: v for k, v in changes.items() if v is not None or k in ("benefit_amount", "application_deadline")}
        with Session(self.engine) as session:
            scheme = session.get(WelfareScheme, scheme_id)
            if scheme is None:
                raise ApiError.not_found("Welfare scheme", scheme_id)
            for key, value in changes.items():
                setattr(scheme, key, value)
            session.add(scheme)
            session.commit()
            session.refresh(scheme)
            logger.info("Updated scheme %s: %s", scheme.id, sorted(changes))
            return SchemeRead.model_validate(scheme)

    def deactivate(self, scheme_id: str) -> SchemeRead:
        """Close a scheme to new applications; existing applications keep moving."""
        return self.update(scheme_id, SchemeUpdate(is_active=False))

    def list(
        self,
        active_only: bool = True,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[SchemeRead]:
        limit, offset = clamp_limit(limit), clamp_offset(offset)
        with Session(self.engine) as session:
            query = select(WelfareScheme)
            if active_only:
                query = query.where(WelfareScheme.is_active == True)  # noqa: E712
            if category:
                query = query.where(WelfareScheme.category == category)

            total = session.exec(select(func.count()).select_from(query.subquery())).one()
            rows = session.exec(
                query.order_by(WelfareScheme.created_at.desc()).offset(offset).limit(limit)
            ).all()
            return Page[SchemeRead](
                items=[SchemeRead.model_validate(r) for r in rows],
                limit=limit,
                offset=offset,
                total=total,
            )


# ============================================================================
# Workflow-driven records
# ============================================================================

class RecordRepository(BaseRepository):
    """Shared queries for tables that carry a workflow ``stage``"""

    model: Type[SQLModel]

    @property
    def workflow(self) -> str:
        return self.model.workflow_name

    def _available(self, stage: str) -> List[str]:
        return [t.name for t in self.registry.available_transitions(self.workflow, stage)]

    def count_by_stage(self) -> StageStatistics:
        with Session(self.engine) as session:
            rows = session.exec(
                select(self.model.stage, func.count()).group_by(self.model.stage)
            ).all()
        by_stage = {stage: 0 for stage in self.registry.get_stages(self.workflow)}
        for stage, count in rows:
            by_stage[stage] = count
        return StageStatistics(workflow=self.workflow, total=sum(by_stage.values()), by_stage=by_stage)

    def history(self, record_id: str) -> List[HistoryEntry]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(StageHistory)
                .where(StageHistory.workflow == self.workflow, StageHistory.record_id == record_id)
                .order_by(StageHistory.created_at, StageHistory.id)
            ).all()
            return [HistoryEntry.model_validate(r) for r in rows]

    def _insert(self, session: Session, row: SQLModel, column: str, kind: str) -> None:
        """Commit a new record, drawing a fresh reference when a concurrent insert took its one."""
        for _ in range(MAX_REFERENCE_ATTEMPTS):
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.warning("%s reference %s already taken, drawing another", kind, getattr(row, column))
                setattr(row, column, unique_reference(session, self.model, getattr(self.model, column), kind))
                continue
            session.refresh(row)
            return
        raise ApiError.internal(f"Could not allocate a unique {kind} reference")

    def _page(self, session: Session, query, limit, offset, convert, page_cls=Page) -> Page:
        limit, offset = clamp_limit(limit), clamp_offset(offset)
        total = session.exec(select(func.count()).select_from(query.subquery())).one()
        rows = session.exec(query.order_by(self.model.created_at.desc()).offset(offset).limit(limit)).all()
        return page_cls(items=[convert(r) for r in rows], limit=limit, offset=offset, total=total)


class ApplicationRepository(RecordRepository):
    model = Application

    def to_read(self, row: Application) -> ApplicationRead:
        dto = ApplicationRead.model_validate(row)
        dto.available_transitions = self._available(row.stage)
        return dto

    def create(self, scheme_id: str, applicant: UserRead, data: ApplyRequest) -> ApplicationRead:
        """
        Create a draft application for a scheme.
        The scheme must be active, open, and accept the applicant's role;
        one application per applicant and scheme.
        """
        with Session(self.engine) as session:
            scheme = session.get(WelfareScheme, scheme_id)
            if not scheme:
                raise ApiError.not_found("Welfare scheme", scheme_id)

            deadline = as_utc(scheme.application_deadline)
            if not scheme.is_active or (deadline and deadline < datetime.now(UTC)):
                raise ApiError.bad_request("Scheme is not available for applications")

            if not scheme.accepts(applicant.role.value):
                raise ApiError.forbidden("You are not eligible for this scheme")

            existing = session.exec(
                select(Application).where(
                    Application.scheme_id == scheme_id,
                    Application.applicant_id == applicant.id,
                )
            ).first()
            if existing:
                raise ApiError.conflict(
                    "You have already applied for this scheme",
                    [{"application_id": existing.application_id}],
                )

            application = Application(
                id=new_id("app_"),
                application_id=unique_reference(session, Application, Application.application_id, "APP"),
                scheme_id=scheme_id,
                applicant_id=applicant.id,
                stage=self.registry.initial_stage(self.workflow),
                requested_amount=data.requested_amount,
                personal_details=data.personal_details,
                applicant_comments=data.applicant_comments,
            )
            self._insert(session, application, "application_id", "APP")
            logger.info("Created application %s for scheme %s", application.application_id, scheme_id)
            return self.to_read(application)

    def get(self, record_id: str) -> Optional[ApplicationRead]:
        with Session(self.engine) as session:
            row = session.get(Application, record_id)
            return self.to_read(row) if row else None

    def list(
        self,
        applicant_id: Optional[str] = None,
        scheme_id: Optional[str] = None,
        stage: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[ApplicationRead]:
        with Session(self.engine) as session:
            query = select(Application)
            if applicant_id:
                query = query.where(Application.applicant_id == applicant_id)
            if scheme_id:
                query = query.where(Application.scheme_id == scheme_id)
            if stage:
                query = query.where(Application.stage == stage)
            return self._page(session, query, limit, offset, self.to_read, Page[ApplicationRead])


class GrievanceRepository(RecordRepository):
    model = Grievance

    def to_read(self, row: Grievance) -> GrievanceRead:
        dto = GrievanceRead.model_validate(row)
        dto.available_transitions = self._available(row.stage)
        dto.is_overdue = row.overdue(self.registry.is_terminal(self.workflow, row.stage))
        return dto

    def create(self, submitter: UserRead, data: GrievanceCreate) -> GrievanceRead:
        with Session(self.engine) as session:
            grievance = Grievance(
                id=new_id("grv_"),
                grievance_id=unique_reference(session, Grievance, Grievance.grievance_id, "GRV"),
                submitted_by=submitter.id,
                stage=self.registry.initial_stage(self.workflow),
                target_resolution_date=target_resolution_date(data.priority),
                **data.model_dump(exclude={"submit"}),
            )
            self._insert(session, grievance, "grievance_id", "GRV")
            logger.info("Created grievance %s (%s)", grievance.grievance_id, grievance.priority.value)
            return self.to_read(grievance)

    def get(self, record_id: str) -> Optional[GrievanceRead]:
        with Session(self.engine) as session:
            row = session.get(Grievance, record_id)
            return self.to_read(row) if row else None

    def list(
        self,
        submitted_by: Optional[str] = None,
        stage: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[GrievanceRead]:
        with Session(self.engine) as session:
            query = select(Grievance)
            if submitted_by:
                query = query.where(Grievance.submitted_by == submitted_by)
            if stage:
                query = query.where(Grievance.stage == stage)
            if category:
                query = query.where(Grievance.category == category)
            if priority:
                query = query.where(Grievance.priority == priority)
            return self._page(session, query, limit, offset, self.to_read, Page[GrievanceRead])

    def assign(self, grievance_id: str, assignee_id: str) -> GrievanceRead:
        """
        Hand a grievance to an admin.

        Raises:
            ApiError: 404 for an unknown grievance, 400 when the assignee is not an active admin
        """
        with Session(self.engine) as session:
            row = session.get(Grievance, grievance_id)
            if row is None:
                raise ApiError.not_found("Grievance", grievance_id)
            assignee = session.get(User, assignee_id)
            if assignee is None or assignee.role != UserRole.admin or not assignee.is_active:
                raise ApiError.bad_request("Grievances can only be assigned to an active admin")
            row.assigned_to = assignee.id
            session.add(row)
            session.commit()
            session.refresh(row)
            logger.info("Assigned grievance %s to %s", row.grievance_id, assignee.id)
            return self.to_read(row)

    def add_communication(self, grievance_id: str, author_id: str, data: CommunicationCreate) -> CommunicationRead:
        with Session(self.engine) as session:
            if session.get(Grievance, grievance_id) is None:
                raise ApiError.not_found("Grievance", grievance_id)
            message = GrievanceCommunication(
                id=new_id("msg_"),
                grievance_id=grievance_id,
                author_id=author_id,
                message=data.message,
                is_internal=data.is_internal,
            )
            session.add(message)
            session.commit()
            session.refresh(message)
            return CommunicationRead.model_validate(message)

    def communications(self, grievance_id: str, include_internal: bool = False) -> List[CommunicationRead]:
        with Session(self.engine) as session:
            query = select(GrievanceCommunication).where(GrievanceCommunication.grievance_id == grievance_id)
            if not include_internal:
                query = query.where(GrievanceCommunication.is_internal == False)  # noqa: E712
            rows = session.exec(
                query.order_by(GrievanceCommunication.created_at, GrievanceCommunication.id)
            ).all()
            return [CommunicationRead.model_validate(r) for r in rows]
