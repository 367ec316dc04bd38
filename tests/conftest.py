"""Pytest configuration."""
import os, sys
from pathlib import Path
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "backend"))

# Must be set before the backend modules read their configuration
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from completion import CompletionMarker
from database import Base, build_engine, get_db
from gateway import DataGateway
from models import schema


@pytest.fixture
def engine():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.completion_marker = CompletionMarker()
    yield TestClient(app)
    app.dependency_overrides.clear()


def promote_to_admin(session_factory, user_id):
    session = session_factory()
    try:
        session.get(schema.Profile, user_id).role = "admin"
        session.commit()
    finally:
        session.close()


def make_user(db, email, grade="Grade 11", role="student", full_name="Test User"):
    """Signed-in gateway for a new user with a profile"""
    gateway = DataGateway(db)
    identity = gateway.sign_up(email, "s3cret-pass")
    gateway.insert_profile(identity.id, full_name, grade)
    if role != "student":
        db.get(schema.Profile, identity.id).role = role
        db.commit()
    return gateway, identity


@pytest.fixture
def register(client):
    def _register(email, grade="Grade 11", full_name="Test Student"):
        resp = client.post("/api/auth/register", json={
            "email": email,
            "password": "s3cret-pass",
            "full_name": full_name,
            "grade": grade,
        })
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return data["user_id"], {"Authorization": f"Bearer {data['access_token']}"}
    return _register


@pytest.fixture
def admin(register, session_factory):
    user_id, headers = register("admin@school.edu", grade="Staff", full_name="Ada Admin")
    promote_to_admin(session_factory, user_id)
    return user_id, headers
