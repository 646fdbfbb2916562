import os

# Must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["OTLP_ENDPOINT"] = ""
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["BDCOURIER_API_KEY"] = ""

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from main import app
from shared.config.database import Base, get_db
from shared.security import limiter
from services.order_service.notifications import NotificationDispatcher, get_dispatcher
from services.risk_service.cache import InMemoryTTLCache
from services.risk_service.courier import CourierClient
from services.risk_service.service import RiskService, get_risk_service

from factories import OutboundRecorder


@pytest.fixture
async def engine(tmp_path):
    # File-backed so the request session and detached notification tasks
    # each get their own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def outbound():
    return OutboundRecorder()


@pytest.fixture
def dispatcher(session_factory, outbound):
    return NotificationDispatcher(
        session_factory=session_factory,
        transport=httpx.MockTransport(outbound.handle),
        timeout=2.0,
        max_attempts=1,
        sms_url="http://notify.test/send-sms",
        email_url="http://notify.test/send-order-email",
        conversions_base="http://graph.test/v18.0",
        retry_backoff=0,
    )


@pytest.fixture
def courier_client():
    # Not configured by default; tests that need the network build their own
    return CourierClient(api_key="")


@pytest.fixture
def risk_service(courier_client):
    return RiskService(InMemoryTTLCache(600), courier_client)


@pytest.fixture
async def client(session_factory, dispatcher, risk_service):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_risk_service] = lambda: risk_service
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    await dispatcher.drain()
    app.dependency_overrides.clear()
