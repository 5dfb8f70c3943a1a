"""Inbound webhooks from the payment processor."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api import deps
from app.services import billing

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(deps.get_db),
):
    """Verify the signature, then apply checkout.session.completed events."""
    payload = await request.body()
    try:
        event = billing.construct_event(payload, stripe_signature)
    except billing.WebhookVerificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await run_in_threadpool(billing.handle_stripe_event, db, event)
    return {"received": True}
