# marketplace/stripe_webhook.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from . import ledger
from .deps import get_gateway, get_session
from .errors import NotFound
from .gateway import PaymentGateway

logger = logging.getLogger("uvicorn")

router = APIRouter(tags=["stripe"])


async def _claim_event(db: AsyncSession, event: Dict[str, Any]) -> bool:
    """Record the event id; False if an earlier delivery already did."""
    result = await db.execute(
        text("""
            insert into processed_events (event_id, event_type)
            values (:event_id, :event_type)
            on conflict (event_id) do nothing
            returning event_id
        """),
        {"event_id": event["id"], "event_type": event["type"]},
    )
    return result.first() is not None


async def handle_checkout_completed(db: AsyncSession, event: Dict[str, Any]) -> bool:
    """
    Credit the buyer for a paid checkout session. Returns True when credits moved.

    Malformed-but-signed sessions are logged and skipped rather than failed, so
    Stripe does not keep redelivering them.
    """
    session = event["data"]["object"]
    if session.get("payment_status") != "paid":
        logger.info(f"Checkout session {session.get('id')} completed unpaid ({session.get('payment_status')})")
        return False

    metadata = session.get("metadata") or {}
    user_id = metadata.get("userId")
    credits = metadata.get("credits")
    if not user_id or not credits:
        logger.error(f"Missing metadata in session: {session.get('id')}")
        return False
    try:
        amount = int(credits)
    except (TypeError, ValueError):
        logger.error(f"Non-numeric credits {credits!r} in session: {session.get('id')}")
        return False
    if amount <= 0:
        logger.error(f"Non-positive credits {amount} in session: {session.get('id')}")
        return False

    try:
        if not await _claim_event(db, event):
            await db.rollback()
            logger.info(f"Event {event['id']} already processed, skipping")
            return False
        await ledger.credit(db, user_id, amount)
        await db.commit()
    except NotFound:
        await db.rollback()
        logger.error(f"Error fetching user {user_id} for session {session.get('id')}")
        return False
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Successfully added {amount} credits to user {user_id}")
    return True


async def handle_event(db: AsyncSession, event: Dict[str, Any]) -> None:
    etype = event.get("type")
    logger.info(f"Stripe webhook received: {etype}")

    if etype == "checkout.session.completed":
        await handle_checkout_completed(db, event)
    elif etype == "payment_intent.payment_failed":
        intent = event["data"]["object"]
        logger.error(f"Payment failed: {intent.get('id')}")
    else:
        logger.info(f"Unhandled event type: {etype}")


# ---- Webhook (no auth, signature only) --------------------------------------
@router.post("/payment-webhook")
@router.post("/stripe/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_gateway),
):
    payload = await request.body()
    event = gateway.construct_event(payload, request.headers.get("stripe-signature"))

    try:
        await handle_event(db, event)
    except Exception as e:
        logger.exception(f"Error processing webhook {event.get('id')}: {e}")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    return {"received": True}
