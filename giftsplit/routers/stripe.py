"""Stripe webhook endpoint."""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from giftsplit.db import get_db
from giftsplit.services.stripe_webhooks import handle_stripe_webhook

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    return await handle_stripe_webhook(request, db)
