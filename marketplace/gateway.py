# marketplace/gateway.py
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import stripe

from .config import Settings
from .errors import InvalidSignature, NotFound, UpstreamFailure, ValidationError

logger = logging.getLogger("uvicorn")

MOCK_SESSION_PREFIX = "cs_test_mock_"


@dataclass(frozen=True)
class CreditPackage:
    id: str
    name: str
    credits: int
    price: float  # GBP
    popular: bool = False

    @property
    def unit_amount(self) -> int:
        return int(round(self.price * 100))  # pence


CREDIT_PACKAGES: List[CreditPackage] = [
    CreditPackage("credits_10", "10 Credits", 10, 5.00),
    CreditPackage("credits_25", "25 Credits", 25, 10.00, popular=True),
    CreditPackage("credits_50", "50 Credits", 50, 18.00),  # 10% discount
    CreditPackage("credits_100", "100 Credits", 100, 32.00),  # 20% discount
]


def get_package(package_id: str) -> CreditPackage:
    for pkg in CREDIT_PACKAGES:
        if pkg.id == package_id:
            return pkg
    raise ValidationError("Invalid package")


class PaymentGateway:
    """The one Stripe handle per process; main.py builds it at startup."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.api_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.currency = settings.stripe_currency
        self.client: Optional[stripe.StripeClient] = None
        if self.api_key:
            base_addresses = {"api": settings.stripe_api_base} if settings.stripe_api_base else {}
            self.client = stripe.StripeClient(self.api_key, base_addresses=base_addresses)

    @property
    def mock_mode(self) -> bool:
        return self.settings.mock_payments

    def price_id(self, pkg: CreditPackage) -> str:
        return self.settings.price_override(pkg.id) or f"price_mock_{pkg.id}"

    # ── checkout ─────────────────────────────────────────────────────────────
    def create_checkout_session(self, pkg: CreditPackage, user_id: str) -> str:
        if self.mock_mode:
            session_id = f"{MOCK_SESSION_PREFIX}{int(time.time() * 1000)}_{pkg.id}"
            logger.info(f"Mock checkout session {session_id} for user {user_id}")
            return session_id

        if self.client is None:
            raise UpstreamFailure("Stripe secret key missing")

        override = self.settings.price_override(pkg.id)
        if override:
            line_item: Dict[str, Any] = {"price": override, "quantity": 1}
        else:
            line_item = {
                "price_data": {
                    "currency": self.currency,
                    "product_data": {
                        "name": f"{pkg.name} - RecommendUs Marketplace",
                        "description": f"Purchase {pkg.credits} credits for posting jobs",
                    },
                    "unit_amount": pkg.unit_amount,
                },
                "quantity": 1,
            }

        site = self.settings.site_url.rstrip("/")
        try:
            session = self.client.v1.checkout.sessions.create(
                params={
                    "mode": "payment",
                    "payment_method_types": ["card"],
                    "line_items": [line_item],
                    "success_url": f"{site}/buy-credits/success?session_id={{CHECKOUT_SESSION_ID}}",
                    "cancel_url": f"{site}/buy-credits?cancelled=true",
                    "metadata": {
                        "userId": user_id,
                        "packageId": pkg.id,
                        "credits": str(pkg.credits),
                    },
                    "allow_promotion_codes": True,
                }
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe Checkout create failed: {e}")
            raise UpstreamFailure(f"Failed to create checkout session: {e}")

        logger.info(f"Created checkout session {session.id} for {pkg.id} by user {user_id}")
        return session.id

    # ── verification ─────────────────────────────────────────────────────────
    def _mock_session(self, session_id: str) -> Dict[str, Any]:
        parts = session_id.split("_", 4)  # cs, test, mock, <ms>, <package id>
        if len(parts) != 5:
            raise NotFound("Checkout session not found")
        pkg = get_package(parts[4])
        return {
            "payment_status": "paid",
            "amount_total": pkg.unit_amount,
            "currency": self.currency,
            "metadata": {"packageId": pkg.id, "credits": str(pkg.credits)},
        }

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        if self.mock_mode and session_id.startswith(MOCK_SESSION_PREFIX):
            return self._mock_session(session_id)
        if self.client is None:
            raise UpstreamFailure("Stripe secret key missing")
        try:
            session = self.client.v1.checkout.sessions.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe session retrieve failed for {session_id}: {e}")
            raise UpstreamFailure("Failed to verify payment")
        return {
            "payment_status": session.payment_status,
            "amount_total": session.amount_total,
            "currency": session.currency,
            "metadata": session.metadata.to_dict() if session.metadata else {},
        }

    # ── webhooks ─────────────────────────────────────────────────────────────
    def construct_event(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe signature and hand back the event as a plain dict."""
        if not sig_header:
            raise InvalidSignature("Missing Stripe signature")
        if not self.webhook_secret:
            logger.error("Stripe webhook secret missing (STRIPE_WEBHOOK_SECRET)")
            raise UpstreamFailure("Webhook secret not configured")
        try:
            stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            masked = self.webhook_secret[:6] + "..." + self.webhook_secret[-4:]
            logger.error(
                f"Stripe webhook verify FAILED: {e}; "
                f"sig_header_present={bool(sig_header)}; "
                f"secret={masked}"
            )
            raise InvalidSignature("Invalid signature")
        return json.loads(payload)
