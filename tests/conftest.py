"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import hmac
import time
from collections.abc import Callable
from typing import Any

import httpx
import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from bandportal.billing.stripe_client import StripeClient
from bandportal.config.settings import get_settings
from bandportal.notifications.email import InviteMailer
from bandportal.storage.database import get_engine, init_db
from bandportal.web.app import create_app
from bandportal.web.dependencies import get_mailer, get_stripe_provider

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch):
    """Point settings at an in-memory database and test secrets."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("SITE_URL", "https://portal.test")
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture()
async def async_engine():
    """Fresh in-memory SQLite engine with all tables created."""
    engine = get_engine()
    await init_db(engine)
    yield engine
    await engine.dispose()


def make_token(
    sub: str,
    email: str | None = None,
    secret: str = JWT_SECRET,
    audience: str = "authenticated",
    expires_in: int = 3600,
) -> str:
    payload = {
        "sub": sub,
        "email": email or f"{sub}@example.com",
        "aud": audience,
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(sub: str, email: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, email)}"}


@pytest.fixture()
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture()
def auth() -> Callable[..., dict[str, str]]:
    """Build Authorization headers for a user id (email defaults to <sub>@example.com)."""
    return auth_headers


@pytest.fixture()
def sign_webhook() -> Callable[..., str]:
    """Build a Stripe-Signature header for a payload signed with the test secret."""

    def _sign(payload: bytes, timestamp: int | None = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        digest = hmac.new(
            WEBHOOK_SECRET.encode(), f"{ts}.".encode() + payload, hashlib.sha256
        ).hexdigest()
        return f"t={ts},v1={digest}"

    return _sign


class StripeRecorder:
    """httpx handler that records Stripe calls and returns canned responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.subscription: dict[str, Any] = {}
        self.fail_with: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(
                self.fail_with, json={"error": {"message": "Stripe is unhappy"}}
            )
        path = request.url.path
        if path.endswith("/checkout/sessions"):
            return httpx.Response(
                200, json={"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
            )
        if path.endswith("/billing_portal/sessions"):
            return httpx.Response(
                200, json={"id": "bps_1", "url": "https://billing.stripe.test/session/bps_1"}
            )
        if "/subscriptions/" in path:
            return httpx.Response(200, json=self.subscription)
        return httpx.Response(404, json={"error": {"message": f"No route {path}"}})


class MailRecorder:
    """httpx handler that records Resend calls."""

    def __init__(self, status_code: int = 200) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"id": "email_1"})


@pytest.fixture()
def stripe_recorder() -> StripeRecorder:
    return StripeRecorder()


@pytest.fixture()
def mail_recorder() -> MailRecorder:
    return MailRecorder()


@pytest.fixture()
def app(async_engine, stripe_recorder: StripeRecorder, mail_recorder: MailRecorder):
    """App wired to the in-memory database and mocked Stripe/Resend transports."""
    application = create_app()
    stripe_client = StripeClient(
        "sk_test_123",
        base_url="https://api.stripe.test/v1",
        transport=httpx.MockTransport(stripe_recorder),
    )
    mailer = InviteMailer(
        api_key="re_test_123",
        sender="Test <noreply@example.com>",
        transport=httpx.MockTransport(mail_recorder),
    )
    provider: Callable[[], StripeClient] = lambda: stripe_client  # noqa: E731
    application.dependency_overrides[get_stripe_provider] = lambda: provider
    application.dependency_overrides[get_mailer] = lambda: mailer
    return application


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
