# marketplace/payments.py
import logging

from fastapi import APIRouter, Depends

from .deps import get_gateway
from .errors import ValidationError
from .gateway import CREDIT_PACKAGES, PaymentGateway, get_package
from .models import CheckoutIn, CheckoutOut, PackagesOut, VerifyPaymentIn, VerifyPaymentOut

logger = logging.getLogger("uvicorn")

router = APIRouter(tags=["payments"])


@router.get("/packages", response_model=PackagesOut)
def list_packages(gateway: PaymentGateway = Depends(get_gateway)):
    return {
        "packages": [
            {
                "id": pkg.id,
                "name": pkg.name,
                "credits": pkg.credits,
                "price": pkg.price,
                "priceId": gateway.price_id(pkg),
                "popular": pkg.popular,
            }
            for pkg in CREDIT_PACKAGES
        ],
        "publishableKey": gateway.settings.stripe_publishable_key,
        "mockMode": gateway.mock_mode,
    }


# Blocking Stripe calls: plain `def` so they run in the threadpool.
@router.post("/checkout-session", response_model=CheckoutOut)
def create_checkout_session(body: CheckoutIn, gateway: PaymentGateway = Depends(get_gateway)):
    if not body.package_id or not body.user_id:
        raise ValidationError("Missing required parameters")
    pkg = get_package(body.package_id)
    return {"sessionId": gateway.create_checkout_session(pkg, body.user_id)}


@router.post("/verify-payment", response_model=VerifyPaymentOut, response_model_exclude_none=True)
def verify_payment(body: VerifyPaymentIn, gateway: PaymentGateway = Depends(get_gateway)):
    if not body.session_id:
        raise ValidationError("Missing session ID")
    session = gateway.retrieve_session(body.session_id)
    if session["payment_status"] == "paid":
        return {
            "verified": True,
            "amount": session["amount_total"],
            "currency": session["currency"],
            "metadata": session["metadata"],
        }
    logger.info(f"Checkout session {body.session_id} not paid yet: {session['payment_status']}")
    return {"verified": False, "status": session["payment_status"]}
