import json
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from cashback_webhook.app import app
from cashback_webhook.core.config import Settings, get_settings
from cashback_webhook.db.base import Base
from cashback_webhook.db.session import get_db_session, init_db
from cashback_webhook.services.audit import webhook_audit
from cashback_webhook.services.signature import compute_signature

TEST_SECRET = "shpss_test_secret"
TEST_SHOP = "lsc-test.myshopify.com"
WEBHOOK_URL = "/api/v1/webhooks/shopify/orders-paid"


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed sqlite so concurrent sessions see the same database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'cashback_test.db'}",
        echo=False,
        future=True
    )
    await init_db(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create multiple sessions for concurrent tests."""
    return async_sessionmaker(
        bind=db_engine,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        SHOPIFY_WEBHOOK_SECRET=TEST_SECRET,
        ALLOWED_SHOPIFY_DOMAINS=TEST_SHOP,
        CASHBACK_PERCENT="5",
        CASHBACK_REPLAY_POLICY="ignore",
    )


@pytest.fixture
def use_settings(test_settings):
    """Swap the settings the app sees; returns a function taking overrides."""
    def _use(**overrides):
        app.dependency_overrides[get_settings] = lambda: test_settings.model_copy(update=overrides)
    _use()
    return _use


@pytest.fixture
def use_session_factory():
    def _use(session_factory):
        async def override_db_session():
            async with session_factory() as session:
                yield session
        app.dependency_overrides[get_db_session] = override_db_session
    return _use


@pytest.fixture
async def client(use_settings, use_session_factory, db_session_factory):
    use_session_factory(db_session_factory)
    webhook_audit.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def send_webhook(client):
    """POST a signed orders/paid webhook. body may be a dict or raw bytes."""
    async def _send(body, topic="orders/paid", shop=TEST_SHOP, secret=TEST_SECRET,
                    signature=None, method="POST"):
        raw = body if isinstance(body, bytes) else json.dumps(body).encode()
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Topic": topic,
            "X-Shopify-Shop-Domain": shop,
            "X-Shopify-Hmac-Sha256": signature if signature is not None else compute_signature(raw, secret),
        }
        return await client.request(method, WEBHOOK_URL, content=raw, headers=headers)
    return _send
