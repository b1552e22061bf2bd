"""
PyTest configuration and fixtures for Property Operations Portal tests
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.session import get_db
from app.models.base import Base
from app.models.user import Organization, User, UserRole, Property, PropertyAssignment
from app.services.auth_service import auth_service


# Test database setup - Using async SQLite with aiosqlite
SQLALCHEMY_TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_test_engine():
    engine = create_async_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    # pysqlite/aiosqlite handle BEGIN themselves, which breaks SAVEPOINT;
    # let SQLAlchemy emit BEGIN so begin_nested() works as on PostgreSQL
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest_asyncio.fixture(scope="function")
async def db_session():
    """
    Create a fresh database for each test.
    """
    engine = make_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session):
    """
    Route the app's database dependency to the test session.
    Requests commit or roll back like get_db does; fixtures share the same
    session. Each request runs inside a SAVEPOINT so a rollback only expires
    the objects that request touched.
    """
    async def override_get_db():
        savepoint = await db_session.begin_nested()
        try:
            yield db_session
        except Exception:
            await savepoint.rollback()
            raise
        await db_session.commit()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


# ============================================================================
# Tenant fixtures
# ============================================================================

@pytest_asyncio.fixture
async def organization(db_session):
    """Create a test organization"""
    org = Organization(name="Coastal Lodges", slug="coastal-lodges", is_active=True)
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest_asyncio.fixture
async def other_organization(db_session):
    """Create another organization for cross-org testing"""
    org = Organization(name="Mountain Inns", slug="mountain-inns", is_active=True)
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


async def _create_user(db_session, organization, email, full_name, role):
    user = User(
        email=email,
        full_name=full_name,
        role=role,
        organization_id=organization.id,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session, organization):
    return await _create_user(db_session, organization, "admin@coastal.test", "Ada Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def manager_user(db_session, organization):
    return await _create_user(db_session, organization, "pm@coastal.test", "Pat Manager", UserRole.PROPERTY_MANAGER)


@pytest_asyncio.fixture
async def staff_user(db_session, organization):
    return await _create_user(db_session, organization, "staff@coastal.test", "Sam Staff", UserRole.STAFF)


@pytest_asyncio.fixture
async def lodge(db_session, organization, manager_user, staff_user):
    """Property managed by manager_user; manager and staff are assigned to it"""
    prop = Property(
        organization_id=organization.id,
        name="Seaside Lodge",
        slug="seaside-lodge",
        code="SSL",
        location="Cape Town",
        primary_pm_id=manager_user.id,
        is_active=True,
    )
    db_session.add(prop)
    await db_session.flush()
    db_session.add_all([
        PropertyAssignment(user_id=manager_user.id, property_id=prop.id),
        PropertyAssignment(user_id=staff_user.id, property_id=prop.id),
    ])
    await db_session.commit()
    await db_session.refresh(prop)
    return prop


@pytest_asyncio.fixture
async def other_lodge(db_session, organization):
    """Property nobody but admins can see"""
    prop = Property(
        organization_id=organization.id,
        name="Harbour House",
        slug="harbour-house",
        code="HBH",
        is_active=True,
    )
    db_session.add(prop)
    await db_session.commit()
    await db_session.refresh(prop)
    return prop


def _headers(user):
    token = auth_service.create_user_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def manager_headers(manager_user):
    return _headers(manager_user)


@pytest.fixture
def staff_headers(staff_user):
    return _headers(staff_user)


# ============================================================================
# Payloads
# ============================================================================

@pytest.fixture
def template_payload():
    """
    Two categories:
    - Housekeeping (weight 2): subcategories Lobby (2 questions) and Rooms (1 question)
    - Front Desk (weight 1): simple category with one ungrouped question
    """
    return {
        "name": "Quality Audit",
        "description": "Monthly internal audit",
        "survey_type": "internal",
        "categories": [
            {
                "name": "Housekeeping",
                "weight": 2.0,
                "sort_order": 1,
                "subcategories": [
                    {
                        "name": "Lobby",
                        "sort_order": 1,
                        "questions": [
                            {"text": "Lobby floors clean", "sort_order": 1},
                            {"text": "Lobby smells fresh", "sort_order": 2, "is_required": False},
                        ],
                    },
                    {
                        "name": "Rooms",
                        "sort_order": 2,
                        "questions": [{"text": "Beds made to standard", "sort_order": 1}],
                    },
                ],
            },
            {
                "name": "Front Desk",
                "weight": 1.0,
                "sort_order": 2,
                "questions": [{"text": "Guest greeted within 30 seconds", "sort_order": 1}],
            },
        ],
    }


@pytest_asyncio.fixture
async def quality_template(client, admin_headers, template_payload):
    """The template_payload template, created through the API"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/v1/templates/", json=template_payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def question_ids(quality_template):
    """Question text -> id of quality_template"""
    return {
        q["text"]: q["id"]
        for c in quality_template["categories"]
        for s in c["subcategories"]
        for q in s["questions"]
    }
