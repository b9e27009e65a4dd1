# tests/test_repository.py
"""
Repository tests on in-memory SQLite. No .db files are created.
"""
import re
from unittest.mock import patch
from datetime import datetime, timedelta, UTC

import pytest

from welfare.errors import ApiError
from welfare.models import Grievance, GrievancePriority, target_resolution_date
from welfare.repository import ApplicationRepository, GrievanceRepository, SchemeRepository, UserRepository
from welfare.schemas import ApplyRequest, GrievanceCreate, RegisterRequest, SchemeCreate

REF_RE = r"^{kind}\d{{6}}\d{{4}}$"


@pytest.fixture()
def applications(engine, registry):
    return ApplicationRepository(engine, registry)


@pytest.fixture()
def grievances(engine, registry):
    return GrievanceRepository(engine, registry)


def test_user_ids_are_prefixed_ulids(officer):
    assert officer.id.startswith("usr_")
    assert len(officer.id) == len("usr_") + 26


def test_duplicate_user_email_conflicts(engine, registry, officer):
    data = RegisterRequest(email=officer.email.upper(), first_name="A", last_name="B")
    with pytest.raises(ApiError) as exc:
        UserRepository(engine, registry).create("another-uid", data)
    assert exc.value.status_code == 409


def test_list_admins(engine, registry, admin, officer):
    admins = UserRepository(engine, registry).list_admins()
    assert [a.id for a in admins] == [admin.id]


def test_scheme_list_hides_inactive(engine, registry, scheme):
    repo = SchemeRepository(engine, registry)
    repo.create(SchemeCreate(name="Old", description="Closed scheme", category="pension", is_active=False))

    assert [s.id for s in repo.list().items] == [scheme.id]
    assert repo.list(active_only=False).total == 2
    assert repo.list(category="education").total == 0


def test_application_starts_in_initial_stage(applications, officer, scheme):
    app = applications.create(scheme.id, officer, ApplyRequest(requested_amount=1000))
    assert app.stage == "Draft"
    assert re.match(REF_RE.format(kind="APP"), app.application_id)
    assert app.available_transitions == ["submit"]


def test_application_missing_scheme(applications, officer):
    with pytest.raises(ApiError) as exc:
        applications.create("sch_missing", officer, ApplyRequest())
    assert exc.value.status_code == 404


def test_application_duplicate_conflicts(applications, officer, scheme):
    first = applications.create(scheme.id, officer, ApplyRequest())
    with pytest.raises(ApiError) as exc:
        applications.create(scheme.id, officer, ApplyRequest())
    assert exc.value.status_code == 409
    assert exc.value.details == [{"application_id": first.application_id}]


def test_application_ineligible_role(applications, officer, family_scheme):
    with pytest.raises(ApiError) as exc:
        applications.create(family_scheme.id, officer, ApplyRequest())
    assert exc.value.status_code == 403


def test_application_past_deadline(engine, registry, applications, officer):
    closed = SchemeRepository(engine, registry).create(
        SchemeCreate(
            name="Expired",
            description="Deadline passed",
            category="housing",
            application_deadline=datetime.now(UTC) - timedelta(days=1),
        )
    )
    with pytest.raises(ApiError) as exc:
        applications.create(closed.id, officer, ApplyRequest())
    assert exc.value.status_code == 400


def test_grievance_target_date_follows_priority(grievances, officer):
    g = grievances.create(
        officer,
        GrievanceCreate(title="Pay delayed", description="Salary not credited", category="financial", priority="urgent"),
    )
    assert re.match(REF_RE.format(kind="GRV"), g.grievance_id)
    assert g.stage == "Draft"
    delta = g.target_resolution_date - g.created_at
    assert timedelta(hours=23) < delta < timedelta(days=1, hours=1)


def test_target_resolution_date():
    start = datetime(2026, 1, 1, tzinfo=UTC)
    assert target_resolution_date(GrievancePriority.high, start) == datetime(2026, 1, 8, tzinfo=UTC)
    assert target_resolution_date("low", start) == datetime(2026, 1, 31, tzinfo=UTC)


def test_grievance_overdue_only_when_not_terminal():
    g = Grievance(target_resolution_date=datetime(2026, 1, 1, tzinfo=UTC))
    later = datetime(2026, 2, 1, tzinfo=UTC)
    assert g.overdue(terminal=False, now=later)
    assert not g.overdue(terminal=True, now=later)
    assert not g.overdue(terminal=False, now=datetime(2025, 12, 1, tzinfo=UTC))


def test_grievance_list_filters_and_paginates(grievances, officer, family):
    for i in range(3):
        grievances.create(officer, GrievanceCreate(title=f"G{i}", description="d", category="medical"))
    grievances.create(family, GrievanceCreate(title="F", description="d", category="other", priority="high"))

    page = grievances.list(submitted_by=officer.id, limit=2)
    assert page.total == 3
    assert len(page.items) == 2
    assert grievances.list(priority="high").total == 1
    assert grievances.list(category="medical", offset=2).items[0].category.value == "medical"


def test_count_by_stage_lists_every_stage(grievances, officer):
    grievances.create(officer, GrievanceCreate(title="G", description="d", category="other"))
    stats = grievances.count_by_stage()
    assert stats.total == 1
    assert stats.by_stage == {"Draft": 1, "Submitted": 0, "UnderReview": 0, "Resolved": 0}


def test_grievance_reference_taken_concurrently_is_redrawn(grievances, officer):
    first = grievances.create(officer, GrievanceCreate(title="A", description="d", category="other"))

    # the pre-check passes, then another writer commits the same reference
    with patch("welfare.repository.unique_reference", side_effect=[first.grievance_id, "GRV2026109999"]) as draw:
        second = grievances.create(officer, GrievanceCreate(title="B", description="d", category="other"))

    assert draw.call_count == 2
    assert second.grievance_id == "GRV2026109999"
    assert grievances.list().total == 2


def test_application_reference_taken_concurrently_is_redrawn(applications, officer, family, scheme):
    first = applications.create(scheme.id, officer, ApplyRequest())

    with patch("welfare.repository.unique_reference", side_effect=[first.application_id, "APP2026109999"]):
        second = applications.create(scheme.id, family, ApplyRequest())

    assert second.application_id == "APP2026109999"
    assert second.applicant_id == family.id
