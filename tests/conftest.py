from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from floortrack.database import Base, get_db
from floortrack.models import LeaveRecord, TimeEntry, User
from floortrack.utils.locks import UserLockRegistry

# Wednesday
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=pytz.UTC)


def utc(year, month, day, hour=0, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=pytz.UTC)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def locks():
    return UserLockRegistry()


@pytest.fixture
def clock():
    return FixedClock(NOW)


def _make_user(db, username, full_name, timezone_offset=None):
    user = User(username=username, full_name=full_name, is_active=True, timezone_offset=timezone_offset)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return _make_user(db, "asha", "Asha Rao")


@pytest.fixture
def other_user(db):
    return _make_user(db, "mateo", "Mateo Diaz")


@pytest.fixture
def make_user(db):
    def factory(username, timezone_offset=None):
        return _make_user(db, username, username.title(), timezone_offset)
    return factory


@pytest.fixture
def add_entries(db):
    """Insert raw events without transition checks: add_entries(user, [(type, ts), ...])."""
    def add(user, events, work_mode="office"):
        created = []
        for entry_type, ts in events:
            entry = TimeEntry(
                user_id=user.id,
                entry_type=entry_type,
                timestamp=ts,
                work_mode=work_mode if entry_type == "clock_in" else None,
                is_auto=False,
            )
            db.add(entry)
            created.append(entry)
        db.commit()
        return created
    return add


@pytest.fixture
def add_leave(db):
    def add(user, day, leave_type="planned"):
        leave = LeaveRecord(user_id=user.id, date=day, leave_type=leave_type)
        db.add(leave)
        db.commit()
        return leave
    return add


@pytest.fixture
def client(db, user, clock):
    from floortrack.api.tracker import get_now
    from floortrack.main import app
    from floortrack.utils.auth import get_current_active_user

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_active_user] = lambda: user
    app.dependency_overrides[get_now] = clock

    # Not used as a context manager, so startup (and the scheduler) never runs
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
