"""Profiles, beta feedback and the admin dashboard."""
import uuid

import pytest

from app.api.deps import DEV_AUTH_USER_ID
from app.api.v1.endpoints.admin import get_identity_provider
from app.core.config import settings
from app.main import app
from app.models import AuthorProfile, BetaFeedback
from app.services.auth import IdentityProviderError
from tests.helpers import make_token


class FakeIdentityProvider:
    """Records create_user calls; fails when given an error."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.user_id = str(uuid.uuid4())

    def create_user(self, email, password, first_name, last_name):
        self.calls.append(email)
        if self.error:
            raise self.error
        return {"id": self.user_id, "email": email}


@pytest.fixture
def identity_provider(client):
    provider = FakeIdentityProvider()
    app.dependency_overrides[get_identity_provider] = lambda: provider
    yield provider
    app.dependency_overrides.pop(get_identity_provider, None)


NEW_USER = {
    "email": "beta@example.com",
    "password": "secret123",
    "first_name": "Bea",
    "last_name": "Tester",
}


# ──────── Profiles ────────


def test_first_request_creates_profile(client, db):
    auth_user_id = uuid.uuid4()
    headers = {"Authorization": f"Bearer {make_token(auth_user_id, 'new@example.com')}"}

    response = client.get("/api/v1/profiles/me", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["auth_user_id"] == str(auth_user_id)
    assert body["email"] == "new@example.com"
    assert body["role"] == "author"
    assert body["is_admin"] is False
    assert db.query(AuthorProfile).filter(AuthorProfile.auth_user_id == auth_user_id).count() == 1


def test_invalid_token_rejected(client):
    response = client.get("/api/v1/profiles/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"


def test_update_profile_ignores_role(client, author, auth_headers):
    response = client.patch(
        "/api/v1/profiles/me",
        json={"genre": "mystery", "onboarding_complete": True, "role": "admin"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["genre"] == "mystery"
    assert body["onboarding_complete"] is True
    assert body["role"] == "author"


def test_track_login(client, db, author, auth_headers):
    response = client.post("/api/v1/profiles/me/login", headers=auth_headers)
    assert response.status_code == 204
    db.refresh(author)
    assert author.last_login_at is not None


def test_access_for_beta_tester(client, auth_headers):
    body = client.get("/api/v1/profiles/me/access", headers=auth_headers).json()
    assert body["is_beta_tester"] is True
    assert body["has_full_access"] is True
    assert body["available_phases"] == [1, 2, 3, 4, 5]
    assert body["package_display_name"] == "No Package"


def test_dev_profile_when_auth_disabled(client, db, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_DISABLED", True)
    response = client.get("/api/v1/profiles/me")
    assert response.status_code == 200
    assert response.json()["auth_user_id"] == str(DEV_AUTH_USER_ID)
    assert response.json()["is_admin"] is True


# ──────── Feedback ────────


def test_submit_feedback(client, db, manuscript, auth_headers):
    response = client.post(
        "/api/v1/feedback/",
        json={
            "feedback_text": "The line edits were great",
            "rating": 5,
            "page_url": "/manuscripts/1",
            "manuscript_id": str(manuscript.id),
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["rating"] == 5
    assert db.query(BetaFeedback).count() == 1


@pytest.mark.parametrize("rating", [0, 6])
def test_feedback_rating_range(client, auth_headers, rating):
    response = client.post(
        "/api/v1/feedback/", json={"feedback_text": "hmm", "rating": rating}, headers=auth_headers
    )
    assert response.status_code == 422


def test_feedback_on_foreign_manuscript(client, manuscript, admin_headers):
    response = client.post(
        "/api/v1/feedback/",
        json={"feedback_text": "not mine", "manuscript_id": str(manuscript.id)},
        headers=admin_headers,
    )
    assert response.status_code == 404


# ──────── Admin ────────


def test_admin_creates_beta_tester(client, db, admin, admin_headers, identity_provider):
    response = client.post("/api/v1/admin/users", json=NEW_USER, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "user_id": identity_provider.user_id,
        "email": "beta@example.com",
    }

    profile = (
        db.query(AuthorProfile)
        .filter(AuthorProfile.auth_user_id == uuid.UUID(identity_provider.user_id))
        .one()
    )
    assert profile.is_beta_tester is True
    assert profile.first_name == "Bea"
    assert profile.created_by_admin_id == admin.auth_user_id


def test_non_admin_cannot_create_users(client, auth_headers, identity_provider):
    response = client.post("/api/v1/admin/users", json=NEW_USER, headers=auth_headers)
    assert response.status_code == 403
    assert identity_provider.calls == []


def test_provider_rejection_is_bad_request(client, admin_headers, identity_provider):
    identity_provider.error = IdentityProviderError("User already registered", 422)
    response = client.post("/api/v1/admin/users", json=NEW_USER, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "User already registered"


def test_provider_outage_is_bad_gateway(client, admin_headers, identity_provider):
    identity_provider.error = IdentityProviderError("Identity provider unreachable")
    response = client.post("/api/v1/admin/users", json=NEW_USER, headers=admin_headers)
    assert response.status_code == 502


def test_short_password_rejected(client, admin_headers, identity_provider):
    response = client.post(
        "/api/v1/admin/users", json={**NEW_USER, "password": "123"}, headers=admin_headers
    )
    assert response.status_code == 422
    assert identity_provider.calls == []


def test_admin_stats(client, db, author, admin, admin_headers):
    client.post("/api/v1/profiles/me/login", headers=admin_headers)
    for rating in (4, 5):
        db.add(BetaFeedback(author_id=author.id, feedback_text="ok", rating=rating))
    db.add(BetaFeedback(author_id=author.id, feedback_text="no rating"))
    db.commit()

    response = client.get("/api/v1/admin/stats", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {
        "total_beta_testers": 1,
        "active_this_week": 0,
        "phase_completions": 0,
        "average_rating": 4.5,
    }


def test_stats_require_admin(client, auth_headers):
    assert client.get("/api/v1/admin/stats", headers=auth_headers).status_code == 403
