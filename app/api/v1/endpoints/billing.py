"""Checkout endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.models.author_profile import AuthorProfile
from app.schemas.billing import CheckoutRequest, CheckoutResponse
from app.services import billing, manuscripts

router = APIRouter()


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    checkout: CheckoutRequest,
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Create a payment session for a package and return its redirect URL."""
    if checkout.author_id != current_profile.id and not current_profile.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot start a checkout for another author",
        )

    if checkout.manuscript_id is not None:
        manuscript = manuscripts.get_manuscript(db, checkout.manuscript_id)
        if not manuscript or manuscript.author_id != checkout.author_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Manuscript not found"
            )
    elif checkout.package != "three-phase":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="manuscript_id is required for this package",
        )

    try:
        url = billing.create_checkout_session(
            checkout.author_id, checkout.package, manuscript_id=checkout.manuscript_id
        )
    except billing.BillingError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return CheckoutResponse(url=url)
