from __future__ import annotations

import os

# Must be set before core.config is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from core.db import get_db
from core.security import create_access_token
from main import create_app
from models.base import Base
from models.classroom import Classroom
from models.school_settings import SETTINGS_ROW_ID, SchoolSettings
from models.subject import Subject
from models.teacher import Teacher
from services.repository import TimetableRepository


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def repository(db_session):
    return TimetableRepository(db_session)


@pytest.fixture()
def client(session_factory):
    app = create_app(create_tables=False)

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    return TestClient(app)


@pytest.fixture()
def admin_headers():
    token = create_access_token(user_id="00000000-0000-0000-0000-000000000001", username="admin", role="ADMIN")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def school(db_session):
    """Grade 1 with 4 classes, 6 daily periods, 4 Saturday periods; one math teacher and room."""

    db_session.add(
        SchoolSettings(
            id=SETTINGS_ROW_ID,
            grade1_classes=4,
            grade2_classes=4,
            grade3_classes=3,
            grade4_classes=3,
            grade5_classes=3,
            grade6_classes=3,
            daily_periods=6,
            saturday_periods=4,
        )
    )
    math = Subject(name="math", grades=[1], weekly_hours={"1": 4}, display_order=1)
    db_session.add(math)
    db_session.flush()

    teacher = Teacher(name="Alice", grades=[1], subject_ids=[str(math.id)], max_weekly_hours=25)
    room = Classroom(name="Room 101", classroom_type="general")
    db_session.add_all([teacher, room])
    db_session.commit()
    return {"math": math, "teacher": teacher, "room": room}
