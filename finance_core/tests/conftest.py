"""
Test fixtures - in-memory SQLite database + principal-bearing HTTP client
"""
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from finance_core.database import Base, get_db, make_engine, make_session_factory
from finance_core.main import app
from finance_core.models.project import Project
from finance_core.models.supplier import Customer, Supplier
from finance_core.schemas import Principal

MANAGER_HEADERS = {
    "X-User-Id": "user-pm-1",
    "X-User-Role": "PROJECT_MANAGER",
    "X-User-Email": "pm@example.com",
    "X-User-Name": "Pat Manager",
}


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = make_engine("sqlite:///:memory:")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = make_session_factory(engine)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: project, supplier, customer"""
    project = Project(
        name="Marina Fit-Out",
        project_number="PRJ-2025-001",
        address="1 Marina Boulevard, Singapore",
        status="ACTIVE",
        contract_value=Decimal("200000.00"),
    )
    supplier = Supplier(name="Acme Builders", contact_name="Alex Tan", email="alex@acme.test")
    customer = Customer(name="Harbour Holdings", email="ap@harbour.test")

    db_session.add_all([project, supplier, customer])
    await db_session.commit()
    await db_session.refresh(project)
    await db_session.refresh(supplier)
    await db_session.refresh(customer)

    return {"project": project, "supplier": supplier, "customer": customer}


@pytest.fixture()
def principal():
    return Principal(
        id=MANAGER_HEADERS["X-User-Id"],
        role=MANAGER_HEADERS["X-User-Role"],
        email=MANAGER_HEADERS["X-User-Email"],
        name=MANAGER_HEADERS["X-User-Name"],
    )


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """Project-manager httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers.update(MANAGER_HEADERS)
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session):
    """httpx AsyncClient without principal headers"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
