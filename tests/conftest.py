import sys
from collections.abc import Callable, Generator, Iterable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mutualaid.config import Base  # noqa: E402
import mutualaid.config as app_config  # noqa: E402
import mutualaid.main as app_main  # noqa: E402
from mutualaid.auth.jwt import get_password_hash  # noqa: E402
from mutualaid.constants import ANNUAL_FEE, MemberStatus, Role  # noqa: E402
from mutualaid.core.rate_limit import login_limiter  # noqa: E402
# Import the full models module so every table registers with Base metadata.
from mutualaid.models import models as _all_models  # noqa: E402,F401
from mutualaid.models.models import Member, MemberPayment, User  # noqa: E402
from mutualaid.services.members import refresh_delinquency  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _configure_global_test_db(tmp_path_factory):
    """Configure the app-wide SessionLocal/engine so TestClient uses a DB with all tables."""
    db_dir = tmp_path_factory.mktemp("globaldb")
    db_path = db_dir / "app.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    app_config.SessionLocal = SessionLocal
    app_config.engine = engine
    app_main.engine = engine
    yield
    engine.dispose()


@pytest.fixture(autouse=True)
def _reset_login_limiter():
    login_limiter.reset()
    yield
    login_limiter.reset()


@pytest.fixture
def db_session(tmp_path) -> Generator[Session, None, None]:
    """Provide a fresh SQLite database for each test."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def create_user(db_session: Session) -> Callable[..., User]:
    def _create(
        email: str = "user@example.com",
        role: Role = Role.ADMIN,
        is_active: bool = True,
        member_number: Optional[str] = None,
    ) -> User:
        user = User(
            email=email,
            full_name=email.split("@")[0].title(),
            hashed_password=get_password_hash("changeme"),
            role=Role(role).value,
            is_active=is_active,
            member_number=member_number,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def create_member(db_session: Session) -> Callable[..., Member]:
    counter = {"value": 0}

    def _create(
        name: str = "Member",
        registration_year: Optional[int] = None,
        paid_years: Iterable[int] = (),
        status: MemberStatus = MemberStatus.ACTIVE,
        date_of_birth: Optional[date] = None,
    ) -> Member:
        counter["value"] += 1
        current_year = date.today().year
        registration_year = registration_year or current_year
        member = Member(
            member_number=f"GM{registration_year}{counter['value']:04d}",
            name=f"{name} {counter['value']}",
            status=MemberStatus(status).value,
            registration_year=registration_year,
            date_of_birth=date_of_birth,
            delinquent_years=0,
            total_delinquent_amount=Decimal("0"),
        )
        for year in paid_years:
            member.payments.append(MemberPayment(year=year, amount=ANNUAL_FEE, date=date(year, 1, 15), is_paid=True))
        refresh_delinquency(member, current_year)
        db_session.add(member)
        db_session.commit()
        return member

    return _create
