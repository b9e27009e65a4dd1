"""
Seed the database with an administrator, sample users and welfare schemes.

Running it twice is harmless: existing users (by uid) and schemes (by name)
are left alone.
"""
import argparse
import logging
from typing import Dict

from dotenv import load_dotenv
from sqlalchemy import Engine
from sqlmodel import Session, select

from ..db import create_schema, drop_schema, make_engine
from ..logging_config import setup_logging
from ..models import EligibilityType, SchemeCategory, UserRole, WelfareScheme
from ..repository import SchemeRepository, UserRepository
from ..schemas import RegisterRequest, SchemeCreate

logger = logging.getLogger(__name__)


def seed_users(admin_uid: str, admin_email: str):
    return [
        (admin_uid, UserRole.admin, RegisterRequest(
            email=admin_email,
            first_name="System",
            last_name="Administrator",
            phone_number="9876543210",
            role=UserRole.admin,
        )),
        ("test-officer-001", UserRole.officer, RegisterRequest(
            email="colonel.sharma@army.gov.in",
            first_name="Rajesh",
            last_name="Sharma",
            phone_number="9876543211",
            role=UserRole.officer,
            service_number="IC-45678",
            rank="Colonel",
            unit="2nd Battalion, Maratha Light Infantry",
        )),
        ("test-family-001", UserRole.family_member, RegisterRequest(
            email="sunita.sharma@gmail.com",
            first_name="Sunita",
            last_name="Sharma",
            phone_number="9876543212",
            role=UserRole.family_member,
        )),
    ]


SEED_SCHEMES = [
    SchemeCreate(
        name="Armed Forces Medical Assistance Scheme",
        description="Comprehensive medical assistance for serving and retired personnel including their families.",
        category=SchemeCategory.healthcare,
        eligibility_type=EligibilityType.both,
        benefit_amount=50000,
    ),
    SchemeCreate(
        name="Education Scholarship for Children",
        description="Educational financial assistance for children of armed forces personnel.",
        category=SchemeCategory.education,
        eligibility_type=EligibilityType.family_member,
        benefit_amount=100000,
    ),
    SchemeCreate(
        name="Emergency Financial Assistance",
        description="Immediate financial support for armed forces families in distress.",
        category=SchemeCategory.financial_assistance,
        eligibility_type=EligibilityType.both,
        benefit_amount=200000,
    ),
]


def seed(engine: Engine, admin_uid: str, admin_email: str) -> Dict[str, int]:
    """Insert whatever seed rows are missing; returns how many were created."""
    create_schema(engine)
    users = UserRepository(engine)
    schemes = SchemeRepository(engine)
    created = {"users": 0, "schemes": 0}

    for uid, role, data in seed_users(admin_uid, admin_email):
        if users.get_by_firebase_uid(uid) is None:
            users.create(uid, data, role=role)
            created["users"] += 1

    with Session(engine) as session:
        existing = set(session.exec(select(WelfareScheme.name)).all())
    for scheme in SEED_SCHEMES:
        if scheme.name not in existing:
            schemes.create(scheme)
            created["schemes"] += 1

    logger.info("Seeded %d users and %d schemes", created["users"], created["schemes"])
    return created


def main(argv=None) -> int:
    load_dotenv()
    from ..config import Settings

    settings = Settings()
    parser = argparse.ArgumentParser(description="Seed the welfare database")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--clear", action="store_true", help="drop all tables first")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    engine = make_engine(args.database_url)
    if args.clear:
        drop_schema(engine)
    seed(engine, settings.seed_admin_uid, settings.seed_admin_email)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
