import hashlib
import hmac
import json
import time

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from briefe_einfach import config
from briefe_einfach.deps import get_sessions, get_users
from briefe_einfach.main import app
from briefe_einfach.security import MemoryDenylist, TokenSessions
from briefe_einfach.store import InMemoryUserRepository

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Run every test against a known configuration, whatever the environment says."""
    monkeypatch.setattr(config, "JWT_SECRET", "test-secret")
    monkeypatch.setattr(config, "JWT_TTL_HOURS", 12)
    monkeypatch.setattr(config, "PASSWORD_MIN_LENGTH", 8)
    monkeypatch.setattr(config, "OPENAI_API_KEY", None)
    monkeypatch.setattr(config, "EXPLAIN_PROVIDER", "auto")
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", None)
    monkeypatch.setattr(config, "STRIPE_PRICE_ID", None)
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", None)
    monkeypatch.setattr(config, "APP_URL", "")
    monkeypatch.setattr(config, "DEV_ALLOW_ALL", False)
    monkeypatch.setattr(config, "TEST_EMAIL", "")


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def sessions():
    return TokenSessions(MemoryDenylist())


@pytest.fixture
def stripe_configured(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(config, "STRIPE_PRICE_ID", "price_123")
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(config, "APP_URL", "https://briefe.example.com")


@pytest_asyncio.fixture
async def client(users, sessions):
    """HTTP client against the app, backed by in-memory storage."""
    app.dependency_overrides[get_users] = lambda: users
    app.dependency_overrides[get_sessions] = lambda: sessions
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    """Register through the API and return the response body."""
    async def register(email="anna@example.com", password="geheim123"):
        res = await client.post("/auth/register", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        return res.json()
    return register


@pytest.fixture
def bearer():
    return lambda token: {"Authorization": f"Bearer {token}"}


@pytest.fixture
def signed():
    """Serialize an event and sign it the way Stripe does."""
    def sign(event: dict, secret: str = WEBHOOK_SECRET, timestamp: int = None):
        payload = json.dumps(event)
        timestamp = timestamp or int(time.time())
        signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
        return payload, {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}
    return sign
