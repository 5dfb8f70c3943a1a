import os
import uuid

# Configure the app for tests before anything imports settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REALTIME_BACKEND"] = "memory"
os.environ["AUTH_DISABLED"] = "false"
os.environ["ENVIRONMENT"] = "local"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_dummy"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db, get_session_factory
from app.db.base import Base
from app.main import app
from app.models import AuthorProfile
from app.services import manuscripts
from tests.helpers import headers_for

# In-memory SQLite shared across threads (TestClient runs sync endpoints in a pool)
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session):
    """Create a test client with the test database."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _profile(db: Session, email: str, **kwargs) -> AuthorProfile:
    profile = AuthorProfile(auth_user_id=uuid.uuid4(), email=email, **kwargs)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture(scope="function")
def author(db: Session):
    """Beta tester: every phase unlocked."""
    return _profile(db, "author@example.com", first_name="Ada", last_name="Author", is_beta_tester=True)


@pytest.fixture(scope="function")
def unpaid_author(db: Session):
    """Author without purchases or special role."""
    return _profile(db, "unpaid@example.com", first_name="Una", last_name="Paid")


@pytest.fixture(scope="function")
def admin(db: Session):
    return _profile(db, "admin@example.com", first_name="Ann", last_name="Admin", role="admin")


@pytest.fixture(scope="function")
def auth_headers(author: AuthorProfile):
    return headers_for(author)


@pytest.fixture(scope="function")
def admin_headers(admin: AuthorProfile):
    return headers_for(admin)


@pytest.fixture(scope="function")
def manuscript(db: Session, author: AuthorProfile):
    """Manuscript with three chapters, phase 1 active."""
    manuscript = manuscripts.create_manuscript(db, author.id, title="The Long Draft", genre="fiction")
    for number, text in enumerate(
        ["It was a dark night.", "The storm broke at dawn.", "Everyone went home."], start=1
    ):
        manuscripts.create_chapter(db, manuscript, number, title=f"Part {number}", content=text)
    db.refresh(manuscript)
    return manuscript
