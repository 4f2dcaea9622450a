import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from collabforms.main import app
from collabforms.database import Base, get_db
from collabforms import models, notify, pubsub
from collabforms.auth import create_access_token, get_pin_hash
from collabforms.services.directory import color_for
from collabforms.store import RecordStore

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    notify.EMAIL_OUTBOX.clear()
    pubsub._redis = None
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return RecordStore(db)


def make_user(db, name="Alice Smith", role=models.ROLE_USER, email=None, pin=None):
    """
    purpose: insert a user row directly, bypassing the admin-only directory API
    outputs: committed models.User
    """

    user_id = uuid.uuid4()
    user = models.User(
        id=user_id,
        name=name,
        email=email or f"{name.split()[0].lower()}-{user_id.hex[:6]}@example.com",
        role=role,
        color=color_for(user_id),
        pin_hash=get_pin_hash(pin) if pin else None,
    )
    db.add(user)
    db.commit()
    return user


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def form_payload(title, assignees, questions=None, due_date=None, status="draft"):
    """Editor JSON with one section per assignee, titled "Step 1", "Step 2", ..."""

    return {
        "title": title,
        "status": status,
        "due_date": due_date,
        "sections": [
            {
                "title": f"Step {index}",
                "assigned_to": str(user.id),
                "questions": questions
                if questions is not None
                else [{"id": f"q{index}", "text": f"Answer {index}", "type": "short-answer", "required": True}],
            }
            for index, user in enumerate(assignees, start=1)
        ],
    }
