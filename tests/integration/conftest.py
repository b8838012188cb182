import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from src.depends import get_billing_settings, get_payment_gateway, get_session
from src.api.routes.jobs import get_session_factory
from src.app.use_cases.billing.settings import BillingSettings
from src.domain.client import Client
from src.domain.project import PaymentMethodType, Project
from tests.fixtures.payment_gateway import USER_ID, FakePaymentGateway


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite database, fresh per test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}", echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
def gateway():
    return FakePaymentGateway()


@pytest_asyncio.fixture
def settings():
    return BillingSettings(
        environment="test",
        cron_secret="cron-secret",
        stripe_secret_key="sk_test_fake",
        stripe_webhook_secret="whsec_fake",
        sweep_due_days=7,
    )


@pytest_asyncio.fixture
async def seeded(db_session):
    """One client with one card project owned by USER_ID"""
    client = Client(name="Acme Corp", email="billing@acme.test", created_by=USER_ID)
    db_session.add(client)
    await db_session.flush()

    project = Project(
        name="Acme Site",
        client_id=client.id,
        payment_method_type=PaymentMethodType.CARD,
        auto_pay_enabled=True,
        base_retainer_cents=150000,
        billing_anchor_day=5,
        created_by=USER_ID,
    )
    db_session.add(project)
    await db_session.commit()
    return {"client": client, "project": project}


@pytest_asyncio.fixture
def app(db_session, session_factory, gateway, settings):
    """Application with database session, gateway and settings overrides"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    # Override the session dependency to use test session
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_billing_settings] = lambda: settings
    return app


@pytest_asyncio.fixture
async def client(app):
    """Create test client acting as USER_ID"""
    # Use ASGITransport for httpx AsyncClient
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-User-Id": USER_ID},
    ) as ac:
        yield ac
