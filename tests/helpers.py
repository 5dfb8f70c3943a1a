"""Shared test helpers."""
from datetime import datetime, timedelta, timezone

from jose import jwt

from app.models import AuthorProfile
from app.services import manuscripts, phases

TEST_JWT_SECRET = "test-jwt-secret"


def make_token(auth_user_id, email="author@example.com", audience="authenticated", expires_in=3600):
    """Sign a token the way the identity provider does."""
    payload = {
        "sub": str(auth_user_id),
        "email": email,
        "role": "authenticated",
        "aud": audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def headers_for(profile: AuthorProfile) -> dict:
    return {"Authorization": f"Bearer {make_token(profile.auth_user_id, profile.email)}"}


def approve_all(db, manuscript_id, phase_number):
    for chapter in manuscripts.list_chapters(db, manuscript_id):
        assert phases.approve_chapter(db, chapter.id, phase_number)
