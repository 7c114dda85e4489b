"""Shared pytest fixtures for unit, service and API tests.

Service and API tests run against a throwaway SQLite file per test. Every
transaction starts with BEGIN IMMEDIATE, so concurrent sessions serialize on
the database write lock the way row locks serialize them on PostgreSQL.
"""

import os
import uuid
from datetime import date, timedelta
from decimal import Decimal

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CURRENCY", "CLP")
os.environ.setdefault("CURRENCY_DECIMALS", "0")
os.environ.setdefault("DEFAULT_TAX_RATE", "19")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from settlement.api import deps
from settlement.config import settings
from settlement.core.events import event_bus
from settlement.core.security import create_access_token
from settlement.database import Base
from settlement.main import app
from settlement.models import Client, Crane, Operator, PaymentTerms
from settlement.models.enums import ActorRole, CommissionType, ServiceStatus
from settlement.schemas.billing import ClosureCreate, InvoiceCreate
from settlement.schemas.service import ServiceCreate
from settlement.services.closure_service import ClosureService
from settlement.services.invoice_service import InvoiceService
from settlement.services.service_workflow import ServiceWorkflow

PERIOD_START = date(2025, 3, 1)
PERIOD_END = date(2025, 3, 31)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clean_event_bus():
    event_bus.clear()
    yield
    event_bus.clear()


@pytest.fixture
def api_base() -> str:
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
async def async_client(session_factory):
    """HTTP client bound to the app, with the database dependencies pointed at the test engine."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", timeout=30.0) as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(role: ActorRole) -> dict:
    token = create_access_token({"sub": str(uuid.uuid4()), "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def finance_headers() -> dict:
    return auth_headers(ActorRole.FINANCE)


@pytest.fixture
def dispatcher_headers() -> dict:
    return auth_headers(ActorRole.DISPATCHER)


@pytest.fixture
def viewer_headers() -> dict:
    return auth_headers(ActorRole.VIEWER)


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers(ActorRole.ADMIN)


async def _persist(session_factory, record):
    async with session_factory() as session:
        session.add(record)
        await session.commit()
    return record


@pytest.fixture
async def client_record(session_factory) -> Client:
    suffix = uuid.uuid4().hex[:6]
    return await _persist(session_factory, Client(name="Constructora Andes", code=f"CA-{suffix}", tax_id="76.123.456-7"))


@pytest.fixture
async def other_client_record(session_factory) -> Client:
    suffix = uuid.uuid4().hex[:6]
    return await _persist(session_factory, Client(name="Minera Norte", code=f"MN-{suffix}"))


@pytest.fixture
async def operator_record(session_factory) -> Operator:
    """Operator earning 10% of the service total"""
    return await _persist(session_factory, Operator(
        full_name="Pedro Rojas",
        employee_number=f"OP-{uuid.uuid4().hex[:6]}",
        commission_type=CommissionType.PERCENTAGE,
        commission_percentage=Decimal("10"),
    ))


@pytest.fixture
async def assistant_record(session_factory) -> Operator:
    """Operator earning a fixed 5,000 per service"""
    return await _persist(session_factory, Operator(
        full_name="Luis Soto",
        employee_number=f"OP-{uuid.uuid4().hex[:6]}",
        commission_type=CommissionType.FIXED,
        commission_fixed_amount=Decimal("5000"),
    ))


@pytest.fixture
async def crane_record(session_factory) -> Crane:
    return await _persist(session_factory, Crane(unit_number=f"GR-{uuid.uuid4().hex[:6]}"))


@pytest.fixture
async def payment_terms_record(session_factory) -> PaymentTerms:
    return await _persist(session_factory, PaymentTerms(name="30 days", days=30))


@pytest.fixture
def make_service(client_record, operator_record):
    """Create a service for the default client and operator, optionally moved to ``status``."""

    async def _make(db, subtotal="150000", scheduled_date=date(2025, 3, 10), status=None, **overrides):
        data = {
            "client_id": client_record.id,
            "scheduled_date": scheduled_date,
            "subtotal": Decimal(subtotal),
            "operator_id": operator_record.id,
        }
        data.update(overrides)
        service = await ServiceWorkflow.create_service(db, ServiceCreate(**data))
        if status is not None:
            service = await ServiceWorkflow.transition(db, service.id, status)
        return service

    return _make


@pytest.fixture
def make_invoice(client_record, make_service):
    """Completed service -> approved closure -> draft invoice; returns (closure, invoice)."""

    async def _make(db, subtotal="150000", tax_rate=None, issue_date=None, due_date=None):
        issue_date = issue_date or date.today()
        due_date = due_date or issue_date + timedelta(days=30)
        await make_service(db, subtotal=subtotal, status=ServiceStatus.COMPLETED)
        closure = await ClosureService.create_closure(db, ClosureCreate(
            client_id=client_record.id,
            period_start=PERIOD_START,
            period_end=PERIOD_END,
            tax_rate=tax_rate,
        ))
        closure = await ClosureService.approve_closure(db, closure.id)
        invoice = await InvoiceService.create_invoice(db, InvoiceCreate(
            billing_closure_id=closure.id,
            fiscal_folio=f"F-{uuid.uuid4().hex[:8]}",
            issue_date=issue_date,
            due_date=due_date,
        ))
        return closure, invoice

    return _make
