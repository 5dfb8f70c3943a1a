"""
Checkout / webhook bridge to Stripe.

Checkout sessions carry the author, manuscript and package in their
metadata; the completed-session webhook records the purchase and activates
the phases it pays for in the same transaction.
"""

import json
import logging
from typing import Any, Optional
from uuid import UUID

import stripe
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.author_profile import AuthorProfile
from app.models.manuscript import Manuscript
from app.models.user_purchase import PackageType, UserPurchase
from app.services import realtime
from app.services.phases import stage_purchased_phases

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"

PACKAGE_PRODUCTS = {
    PackageType.THREE_PHASE.value: (
        "3-Phase Editing Package",
        "Professional AI editing with Alex, Sam, and Jordan",
    ),
    PackageType.PUBLISHING.value: (
        "Publishing Package",
        "Formatting, metadata and platform setup for launch",
    ),
    PackageType.MARKETING.value: (
        "Marketing Package",
        "Launch and marketing strategy for your book",
    ),
    PackageType.COMPLETE.value: (
        "Complete Package",
        "Editing, publishing and marketing for one manuscript",
    ),
}


class BillingError(Exception):
    """The payment processor rejected or failed a request."""


class WebhookVerificationError(Exception):
    """The webhook payload or its signature could not be verified."""


def create_checkout_session(
    author_id: UUID, package: str, manuscript_id: Optional[UUID] = None
) -> str:
    """Create a one-time payment session and return its redirect URL."""
    name, description = PACKAGE_PRODUCTS[package]
    metadata = {"author_id": str(author_id), "package": package}
    if manuscript_id is not None:
        metadata["manuscript_id"] = str(manuscript_id)

    try:
        session = stripe.checkout.Session.create(
            api_key=settings.STRIPE_SECRET_KEY,
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": settings.CHECKOUT_CURRENCY,
                        "product_data": {"name": name, "description": description},
                        "unit_amount": settings.PACKAGE_PRICES[package],
                    },
                    "quantity": 1,
                }
            ],
            mode="payment",
            success_url=f"{settings.PUBLIC_BASE_URL}/onboarding?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.PUBLIC_BASE_URL}/pricing",
            client_reference_id=str(manuscript_id or author_id),
            metadata=metadata,
        )
    except stripe.StripeError as exc:
        logger.error("Checkout session creation failed: %s", exc)
        raise BillingError("Failed to create checkout session") from exc

    logger.info("Created %s checkout session %s for author %s", package, session.id, author_id)
    return session.url


def construct_event(payload: bytes, signature: Optional[str]) -> dict[str, Any]:
    """Verify the Stripe-Signature header and return the event as a dict."""
    if not signature:
        raise WebhookVerificationError("Missing signature")
    try:
        stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as exc:
        raise WebhookVerificationError("Invalid payload") from exc
    except stripe.SignatureVerificationError as exc:
        raise WebhookVerificationError("Invalid signature") from exc
    # Plain JSON rather than StripeObject so handlers see ordinary dicts
    return json.loads(payload)


def _parse_uuid(value: Any) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _session_targets(session: dict[str, Any]) -> tuple[Optional[UUID], Optional[UUID]]:
    """(author_id, manuscript_id) referenced by a completed session."""
    metadata = session.get("metadata") or {}
    reference = session.get("client_reference_id")
    manuscript_id = _parse_uuid(metadata.get("manuscript_id"))
    author_id = _parse_uuid(metadata.get("author_id"))

    if manuscript_id is None and metadata.get("package") in ("publishing", "marketing", "complete"):
        manuscript_id = _parse_uuid(reference)
    elif author_id is None and manuscript_id is None:
        author_id = _parse_uuid(reference)
    return author_id, manuscript_id


def handle_stripe_event(db: Session, event: dict[str, Any]) -> bool:
    """Apply a verified event. Returns True when a new purchase was recorded."""
    if event.get("type") != CHECKOUT_COMPLETED:
        logger.debug("Ignoring Stripe event %s", event.get("type"))
        return False

    session = event["data"]["object"]
    session_id = session.get("id")
    metadata = session.get("metadata") or {}
    package = metadata.get("package") or metadata.get("package_type")
    author_id, manuscript_id = _session_targets(session)

    if not session_id or package not in PACKAGE_PRODUCTS:
        logger.warning("Completed session %s has no usable package (%r)", session_id, package)
        return False

    if db.query(UserPurchase).filter(UserPurchase.stripe_session_id == session_id).first():
        logger.info("Session %s already recorded", session_id)
        return False

    manuscript = (
        db.query(Manuscript).filter(Manuscript.id == manuscript_id).first() if manuscript_id else None
    )
    if author_id is None and manuscript is not None:
        # Sessions keyed only by manuscript are paid for by its owner
        author_id = manuscript.author_id

    author = db.query(AuthorProfile).filter(AuthorProfile.id == author_id).first() if author_id else None
    if author is None:
        logger.warning("Completed session %s references unknown author %s", session_id, author_id)
        return False

    if manuscript_id is not None and (manuscript is None or manuscript.author_id != author.id):
        logger.warning(
            "Session %s references manuscript %s not owned by author %s",
            session_id,
            manuscript_id,
            author.id,
        )
        manuscript_id = None

    purchase = UserPurchase(
        author_id=author.id,
        manuscript_id=manuscript_id,
        package=package,
        amount_cents=session.get("amount_total") or settings.PACKAGE_PRICES[package],
        currency=session.get("currency") or settings.CHECKOUT_CURRENCY,
        status="completed",
        stripe_session_id=session_id,
        stripe_payment_intent_id=session.get("payment_intent"),
        stripe_customer_id=session.get("customer"),
    )

    try:
        db.add(purchase)
        changed = stage_purchased_phases(db, manuscript_id, package) if manuscript_id else []
        db.commit()
    except IntegrityError:
        # Concurrent redelivery of the same session
        db.rollback()
        logger.info("Session %s recorded concurrently", session_id)
        return False
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error recording purchase for session %s", session_id)
        raise

    for phase in changed:
        realtime.publish_row_change("editing_phases", phase)
    logger.info(
        "Recorded %s purchase for author %s (phases activated: %s)",
        package,
        author.id,
        [phase.phase_number for phase in changed],
    )
    return True
