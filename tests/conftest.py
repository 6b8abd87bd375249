"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import jwt
import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from matchmaking_gateway.api.main import create_app
from matchmaking_gateway.config import settings
from matchmaking_gateway.infrastructure.database.models import (
    Base,
    User,
    UserProfile,
    UserLocation,
    UserMatch,
    UserCallCredit,
    CallSessionRecord,
)
from matchmaking_gateway.infrastructure.database.session import get_db
from matchmaking_gateway.domain.models import CandidateProfile


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[[int], Dict[str, str]]:
    """Bearer header for a user id, signed like the login service does"""

    def _headers(user_id: int) -> Dict[str, str]:
        token = jwt.encode({"userId": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """Insert a user with a profile (and optionally a location)"""
    counter = {"n": 0}

    def _make_user(
        name: str = "User",
        gender: str = "male",
        phone: str | None = "+919800000000",
        status: str = "active",
        profile_status: str = "approved",
        location: tuple[float, float] | None = None,
        **profile_fields,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name,
            email=f"user{counter['n']}@example.com",
            phone=phone,
            status=status,
        )
        db.add(user)
        db.flush()

        defaults = {
            "age": 30,
            "religion": "Hindu",
            "caste": "Brahmin",
            "education": "Master's",
            "mother_tongue": "Kannada",
            "state": "Karnataka",
            "city": "Bangalore",
        }
        defaults.update(profile_fields)
        db.add(UserProfile(user_id=user.id, gender=gender, status=profile_status, **defaults))

        if location is not None:
            db.add(UserLocation(user_id=user.id, latitude=location[0], longitude=location[1]))

        db.commit()
        return user

    return _make_user


@pytest.fixture
def match_users(db: Session) -> Callable[[int, int], None]:
    """Create a match in both directions, as the admin screen does"""

    def _match(user_a: int, user_b: int) -> None:
        db.add(UserMatch(user_id=user_a, matched_user_id=user_b))
        db.add(UserMatch(user_id=user_b, matched_user_id=user_a))
        db.commit()

    return _match


@pytest.fixture
def give_credits(db: Session) -> Callable[..., UserCallCredit]:
    """Grant a call-credit balance"""

    def _give(user_id: int, credits: int, expires_in_days: int = 30, plan_name: str = "Call Plan") -> UserCallCredit:
        balance = UserCallCredit(
            user_id=user_id,
            plan_name=plan_name,
            credits_remaining=credits,
            expires_at=datetime.now(timezone.utc) + timedelta(days=expires_in_days),
        )
        db.add(balance)
        db.commit()
        return balance

    return _give


@pytest.fixture
def make_call_session(db: Session) -> Callable[..., CallSessionRecord]:
    """Insert a call session as if initiation had succeeded"""

    def _make(caller_id: int, receiver_id: int, provider_call_id: str = "X", **fields) -> CallSessionRecord:
        values = {
            "status": "initiated",
            "caller_virtual_number": "+91-1111-111111",
            "receiver_virtual_number": "+91-2222-222222",
            "caller_real_number": "+919811111111",
            "receiver_real_number": "+919822222222",
            "cost_per_minute": 1,
        }
        values.update(fields)
        record = CallSessionRecord(
            caller_id=caller_id, receiver_id=receiver_id, provider_call_id=provider_call_id, **values
        )
        db.add(record)
        db.commit()
        return record

    return _make


@pytest.fixture
def requester() -> CandidateProfile:
    """Scenario requester: 30, Hindu Brahmin, Master's, Bangalore"""
    return CandidateProfile(
        user_id=1,
        gender="male",
        age=30,
        religion="Hindu",
        caste="Brahmin",
        education="Master's",
        mother_tongue="Kannada",
        state="Karnataka",
        city="Bangalore",
    )
