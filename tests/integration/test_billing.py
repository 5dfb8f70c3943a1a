"""Checkout sessions and the completed-checkout webhook."""
import json
import uuid
from types import SimpleNamespace

import pytest
import stripe

from app.models import EditingPhase, UserPurchase
from app.services import billing, manuscripts, phases
from tests.helpers import approve_all, headers_for

WEBHOOK_URL = "/api/v1/webhooks/stripe"
SIGNATURE = {"Stripe-Signature": "t=1700000000,v1=deadbeef"}


@pytest.fixture
def checkout_calls(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_123", url="https://checkout.stripe.test/c/cs_test_123")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


@pytest.fixture
def verified_signature(monkeypatch):
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: None)


def completed_event(author_id, package, manuscript_id=None, session_id="cs_test_1", amount=29900):
    metadata = {"author_id": str(author_id), "package": package}
    if manuscript_id is not None:
        metadata["manuscript_id"] = str(manuscript_id)
    return {
        "id": f"evt_{session_id}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "client_reference_id": str(manuscript_id or author_id),
                "amount_total": amount,
                "currency": "usd",
                "payment_intent": "pi_test_1",
                "customer": "cus_test_1",
                "metadata": metadata,
            }
        },
    }


def post_event(client, event):
    return client.post(WEBHOOK_URL, content=json.dumps(event).encode(), headers=SIGNATURE)


def _set_statuses(db, manuscript_id, statuses):
    for phase in db.query(EditingPhase).filter(EditingPhase.manuscript_id == manuscript_id):
        phase.phase_status = "pending"
    db.flush()
    for phase in db.query(EditingPhase).filter(EditingPhase.manuscript_id == manuscript_id):
        phase.phase_status = statuses[phase.phase_number]
    db.commit()


# ──────── Checkout ────────


def test_checkout_returns_redirect_url(client, author, manuscript, auth_headers, checkout_calls):
    response = client.post(
        "/api/v1/billing/checkout",
        json={"author_id": str(author.id), "manuscript_id": str(manuscript.id), "package": "publishing"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/c/cs_test_123"}

    (call,) = checkout_calls
    assert call["mode"] == "payment"
    assert call["client_reference_id"] == str(manuscript.id)
    assert call["metadata"] == {
        "author_id": str(author.id),
        "package": "publishing",
        "manuscript_id": str(manuscript.id),
    }
    assert call["line_items"][0]["price_data"]["unit_amount"] == 19900


def test_editing_checkout_without_manuscript(client, author, auth_headers, checkout_calls):
    response = client.post("/api/v1/billing/checkout", json={"author_id": str(author.id)}, headers=auth_headers)
    assert response.status_code == 200
    assert checkout_calls[0]["client_reference_id"] == str(author.id)
    assert checkout_calls[0]["line_items"][0]["price_data"]["unit_amount"] == 29900


def test_checkout_for_someone_else_forbidden(client, unpaid_author, auth_headers, checkout_calls):
    response = client.post(
        "/api/v1/billing/checkout", json={"author_id": str(unpaid_author.id)}, headers=auth_headers
    )
    assert response.status_code == 403
    assert checkout_calls == []


def test_manuscript_packages_need_a_manuscript(client, author, auth_headers, checkout_calls):
    response = client.post(
        "/api/v1/billing/checkout",
        json={"author_id": str(author.id), "package": "marketing"},
        headers=auth_headers,
    )
    assert response.status_code == 400


def test_checkout_rejects_foreign_manuscript(client, db, unpaid_author, manuscript, checkout_calls):
    response = client.post(
        "/api/v1/billing/checkout",
        json={"author_id": str(unpaid_author.id), "manuscript_id": str(manuscript.id), "package": "publishing"},
        headers=headers_for(unpaid_author),
    )
    assert response.status_code == 404


def test_processor_failure_is_bad_gateway(client, author, auth_headers, monkeypatch):
    def failing_create(**kwargs):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)
    response = client.post("/api/v1/billing/checkout", json={"author_id": str(author.id)}, headers=auth_headers)
    assert response.status_code == 502


# ──────── Webhook ────────


def test_missing_signature_rejected(client, author):
    response = client.post(WEBHOOK_URL, content=json.dumps(completed_event(author.id, "three-phase")).encode())
    assert response.status_code == 400


def test_bad_signature_rejected(client, db, author, monkeypatch):
    def reject(payload, sig, secret):
        raise stripe.SignatureVerificationError("No signatures found", sig)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)
    response = post_event(client, completed_event(author.id, "three-phase"))
    assert response.status_code == 400
    assert db.query(UserPurchase).count() == 0


def test_purchase_recorded_once(client, db, unpaid_author, verified_signature):
    event = completed_event(unpaid_author.id, "three-phase")

    assert post_event(client, event).json() == {"received": True}
    assert post_event(client, event).status_code == 200

    purchases = db.query(UserPurchase).all()
    assert len(purchases) == 1
    purchase = purchases[0]
    assert purchase.author_id == unpaid_author.id
    assert purchase.package == "three-phase"
    assert purchase.amount_cents == 29900
    assert purchase.stripe_session_id == "cs_test_1"
    assert purchase.stripe_payment_intent_id == "pi_test_1"

    access = client.get("/api/v1/profiles/me/access", headers=headers_for(unpaid_author)).json()
    assert access["available_phases"] == [1, 2, 3]


def test_other_event_types_ignored(client, db, author, verified_signature):
    event = completed_event(author.id, "three-phase")
    event["type"] = "payment_intent.succeeded"
    assert post_event(client, event).status_code == 200
    assert db.query(UserPurchase).count() == 0


def test_unknown_author_not_recorded(db):
    assert billing.handle_stripe_event(db, completed_event(uuid.uuid4(), "three-phase")) is False
    assert db.query(UserPurchase).count() == 0


def test_foreign_manuscript_dropped_from_purchase(db, unpaid_author, manuscript):
    event = completed_event(unpaid_author.id, "publishing", manuscript_id=manuscript.id)
    assert billing.handle_stripe_event(db, event) is True
    assert db.query(UserPurchase).one().manuscript_id is None


def test_manuscript_falls_back_to_client_reference(db, author, manuscript):
    event = completed_event(author.id, "publishing", manuscript_id=manuscript.id)
    del event["data"]["object"]["metadata"]["manuscript_id"]
    assert billing.handle_stripe_event(db, event) is True
    assert db.query(UserPurchase).one().manuscript_id == manuscript.id


def test_purchase_activates_next_phase_when_ready(client, db, author, manuscript, verified_signature):
    _set_statuses(db, manuscript.id, {1: "complete", 2: "complete", 3: "complete", 4: "pending", 5: "pending"})

    post_event(client, completed_event(author.id, "complete", manuscript_id=manuscript.id, amount=39900))

    db.expire_all()
    statuses = {
        p.phase_number: p.phase_status
        for p in db.query(EditingPhase).filter(EditingPhase.manuscript_id == manuscript.id)
    }
    assert statuses == {1: "complete", 2: "complete", 3: "complete", 4: "active", 5: "pending"}
    db.refresh(manuscript)
    assert manuscript.current_phase_number == 4


def test_purchase_never_skips_ahead(db, author, manuscript):
    event = completed_event(author.id, "publishing", manuscript_id=manuscript.id)
    assert billing.handle_stripe_event(db, event) is True

    db.expire_all()
    active = db.query(EditingPhase).filter(
        EditingPhase.manuscript_id == manuscript.id, EditingPhase.phase_status == "active"
    ).all()
    assert [p.phase_number for p in active] == [1]


def test_manuscript_only_session_billed_to_owner(db, author, manuscript):
    event = completed_event(author.id, "publishing", manuscript_id=manuscript.id)
    event["data"]["object"]["metadata"] = {"package": "publishing"}

    assert billing.handle_stripe_event(db, event) is True
    purchase = db.query(UserPurchase).one()
    assert purchase.author_id == author.id
    assert purchase.manuscript_id == manuscript.id


def _phase_statuses(db, manuscript_id):
    db.expire_all()
    return {p.phase_number: p.phase_status for p in phases.get_all_phases(db, manuscript_id)}


def test_publishing_purchase_unlocks_phase_four(client, db, unpaid_author, verified_signature):
    post_event(client, completed_event(unpaid_author.id, "three-phase"))
    own = manuscripts.create_manuscript(db, unpaid_author.id, title="Paid Draft")
    manuscripts.create_chapter(db, own, 1, title="Only", content="A single chapter.")

    for number in (1, 2):
        approve_all(db, own.id, number)
        assert phases.complete_phase(db, own.id, number) is True

    approve_all(db, own.id, 3)
    response = client.post(
        f"/api/v1/manuscripts/{own.id}/phases/3/complete",
        json={"editor_name": "Jordan"},
        headers=headers_for(unpaid_author),
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "completed_phase": 3, "active_phase": None}

    assert _phase_statuses(db, own.id) == {1: "complete", 2: "complete", 3: "complete", 4: "pending", 5: "pending"}
    db.refresh(own)
    assert own.current_phase_number == 4

    post_event(
        client,
        completed_event(unpaid_author.id, "publishing", manuscript_id=own.id, session_id="cs_test_2", amount=19900),
    )

    assert _phase_statuses(db, own.id) == {1: "complete", 2: "complete", 3: "complete", 4: "active", 5: "pending"}
    assert phases.get_active_phase(db, own.id).started_at is not None
