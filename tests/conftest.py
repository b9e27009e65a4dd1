# tests/conftest.py
import pytest
from fastapi.testclient import TestClient
from sqlmodel import create_engine
from sqlalchemy.pool import StaticPool

from welfare.db import create_schema
from welfare.main import create_app
from welfare.models import UserRole
from welfare.repository import SchemeRepository, UserRepository
from welfare.schemas import RegisterRequest, SchemeCreate
from welfare.services import EmailService, MemoryTransport
from welfare.workflow import WorkflowRegistry


@pytest.fixture()
def engine():
    # in-memory DB shared across threads:
    # - "sqlite://" with StaticPool keeps ONE live connection
    # - check_same_thread=False lets the TestClient threads use it
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    create_schema(eng)
    return eng


@pytest.fixture()
def registry():
    return WorkflowRegistry()


@pytest.fixture()
def mail():
    return MemoryTransport()


@pytest.fixture()
def email_service(mail):
    return EmailService(transport=mail)


@pytest.fixture()
def app(engine, email_service, registry):
    return create_app(engine=engine, email_service=email_service, registry=registry)


@pytest.fixture()
def client(app):
    return TestClient(app)


def _register(engine, registry, uid, email, role, first_name="Test", **extra):
    data = RegisterRequest(
        email=email,
        first_name=first_name,
        last_name="User",
        phone_number="9876543210",
        role=role,
        **extra,
    )
    return UserRepository(engine, registry).create(uid, data, role=role)


@pytest.fixture()
def admin(engine, registry):
    return _register(engine, registry, "test-admin-001", "admin@armedforces.gov.in", UserRole.admin, "System")


@pytest.fixture()
def officer(engine, registry):
    return _register(
        engine, registry, "test-officer-001", "colonel.sharma@army.gov.in", UserRole.officer, "Rajesh",
        service_number="IC-45678", rank="Colonel", unit="2 MLI",
    )


@pytest.fixture()
def family(engine, registry):
    return _register(engine, registry, "test-family-001", "sunita.sharma@gmail.com", UserRole.family_member, "Sunita")


def headers_for(user):
    return {"Authorization": f"Bearer mock-{user.firebase_uid}"}


@pytest.fixture()
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture()
def officer_headers(officer):
    return headers_for(officer)


@pytest.fixture()
def family_headers(family):
    return headers_for(family)


@pytest.fixture()
def scheme(engine, registry):
    return SchemeRepository(engine, registry).create(
        SchemeCreate(
            name="Armed Forces Medical Assistance Scheme",
            description="Medical assistance for serving and retired personnel.",
            category="healthcare",
            eligibility_type="both",
            benefit_amount=50000,
        )
    )


@pytest.fixture()
def family_scheme(engine, registry):
    return SchemeRepository(engine, registry).create(
        SchemeCreate(
            name="Education Scholarship for Children",
            description="Educational assistance for children of personnel.",
            category="education",
            eligibility_type="family_member",
        )
    )
