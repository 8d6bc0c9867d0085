"""Pytest configuration and fixtures."""

import hashlib
import hmac
import json
import secrets
import time
import uuid

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from marketplace.config import Settings
from marketplace.main import create_app

# Unique per run so nothing minted here can be replayed elsewhere
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"
TEST_SUPABASE_URL = "https://test.supabase.co"
TEST_WEBHOOK_SECRET = "whsec_test_secret_0123456789"


def make_settings(db_path, **overrides) -> Settings:
    values = dict(
        _env_file=None,
        supabase_db_url=f"sqlite+aiosqlite:///{db_path}",
        auto_create_schema=True,
        supabase_url=TEST_SUPABASE_URL,
        supabase_service_role_key=None,
        supabase_jwt_secret=_TEST_JWT_SECRET,
        stripe_secret_key="sk_test_unit",
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        stripe_publishable_key="pk_test_unit",
        stripe_api_base=None,
        stripe_mock_mode=False,
        site_url="http://localhost:3000",
    )
    values.update(overrides)
    return Settings(**values)


def make_token(user_id: str) -> str:
    now = int(time.time())
    claims = {
        "sub": user_id,
        "iss": f"{TEST_SUPABASE_URL}/auth/v1",
        "aud": "authenticated",
        "role": "authenticated",
        "iat": now,
        "exp": now + 3600,
    }
    return jwt.encode(claims, _TEST_JWT_SECRET, algorithm="HS256")


def sign_payload(payload: str, secret: str = TEST_WEBHOOK_SECRET) -> str:
    """Build a stripe-signature header the way Stripe does."""
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(metadata, payment_status="paid", event_id=None) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_test_{uuid.uuid4().hex[:12]}",
                "object": "checkout.session",
                "payment_status": payment_status,
                "metadata": metadata,
            }
        },
    }


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path / "marketplace.db")


@pytest.fixture
def client(settings):
    """Create a test client with the lifespan (engine, schema, gateway) running."""
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def mock_client(tmp_path):
    """Client whose payments run in mock mode (no Stripe calls)."""
    settings = make_settings(tmp_path / "mock.db", stripe_secret_key="sk_test_mock")
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture
def signup(client, auth_headers):
    """Sign up a fresh profile; returns (user_id, headers)."""

    def _signup(role: str = "client", name: str = "Test User"):
        user_id = str(uuid.uuid4())
        headers = auth_headers(user_id)
        resp = client.post(
            "/users",
            json={"email": f"{user_id[:8]}@example.com", "name": name, "role": role},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        return user_id, headers

    return _signup


@pytest.fixture
def job_payload():
    return {
        "title": "Fix a leaking tap",
        "description": "Kitchen mixer tap drips constantly",
        "budget_min": 5000,
        "budget_max": 12000,
    }


@pytest.fixture
def post_webhook(client):
    def _post(event: dict, signature: str | None = None):
        payload = json.dumps(event)
        headers = {"content-type": "application/json"}
        headers["stripe-signature"] = signature if signature is not None else sign_payload(payload)
        return client.post("/payment-webhook", content=payload, headers=headers)

    return _post
