import os
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SCHEMA_DIR = FIXTURES_DIR / "schema"

# Store original environment variables to restore after tests
_original_env = {}
_TEST_VARS = (
    "CRUD6_SCHEMA_PATH",
    "CRUD6_SCHEMA_DIRECTORY",
    "DEV_MODE",
    "ADMIN_EMAILS",
    "CRUD6_CACHE_ENABLED",
    "CRUD6_LOCALE",
)


def _setup_test_env():
    """Point the service at the fixture schemas before any crud6 import reads settings."""
    for var in _TEST_VARS:
        if var in os.environ:
            _original_env[var] = os.environ[var]
    os.environ["CRUD6_SCHEMA_PATH"] = str(SCHEMA_DIR)
    os.environ["CRUD6_SCHEMA_DIRECTORY"] = str(SCHEMA_DIR)
    os.environ.pop("DEV_MODE", None)
    os.environ.pop("ADMIN_EMAILS", None)
    os.environ.pop("CRUD6_CACHE_ENABLED", None)
    os.environ.pop("CRUD6_LOCALE", None)


def _restore_env():
    for var in _TEST_VARS:
        if var not in _original_env and var in os.environ:
            del os.environ[var]
    for var, value in _original_env.items():
        os.environ[var] = value
    _original_env.clear()


_setup_test_env()

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import (  # noqa: E402
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
)

from crud6.config import refresh_settings_cache  # noqa: E402
from crud6.db import models  # noqa: E402
from crud6.db.database import SessionLocal, engine  # noqa: E402
from crud6.db.repositories import users as user_repo  # noqa: E402
from crud6.db.tables import clear_table_cache  # noqa: E402
from crud6.schema.service import get_schema_service  # noqa: E402

# Application tables described by the fixture schemas. The service never owns
# them; they are reflected at request time like any customer table.
app_metadata = MetaData()

Table(
    "categories", app_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("slug", String(100)),
    Column("is_active", Boolean, default=True),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)
Table(
    "products", app_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("sku", String(50), unique=True),
    Column("price", Float),
    Column("category_id", Integer, ForeignKey("categories.id")),
    Column("is_active", Boolean),
    Column("description", Text),
    Column("launched_on", Date),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
    Column("deleted_at", DateTime),
)
Table(
    "product_tags", app_metadata,
    Column("product_id", Integer, primary_key=True),
    Column("tag_id", Integer, primary_key=True),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)
Table(
    "orders", app_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_number", String(50), nullable=False),
    Column("customer_email", String(255)),
    Column("total", Float),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
    Column("deleted_at", DateTime),
)
Table(
    "order_details", app_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, ForeignKey("orders.id")),
    Column("product_name", String(100), nullable=False),
    Column("quantity", Integer),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
    Column("deleted_at", DateTime),
)
Table(
    "members", app_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_name", String(50), nullable=False),
    Column("email", String(255), nullable=False),
    Column("password", String(255)),
    Column("flag_enabled", Boolean),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)
Table(
    "member_roles", app_metadata,
    Column("member_id", Integer, primary_key=True),
    Column("role_id", Integer, primary_key=True),
    Column("assigned_by", String(64)),
    Column("created_at", DateTime),
)


@pytest.fixture(scope="session", autouse=True)
def _create_tables():
    models.Base.metadata.create_all(bind=engine)
    app_metadata.create_all(bind=engine)
    yield
    app_metadata.drop_all(bind=engine)
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session", autouse=True)
def _restore_test_env():
    yield
    _restore_env()


@pytest.fixture(autouse=True)
def _fresh_state():
    refresh_settings_cache()
    get_schema_service().clear_cache()
    clear_table_cache()
    yield
    get_schema_service().clear_cache()
    refresh_settings_cache()
    with engine.begin() as conn:
        for table in reversed(app_metadata.sorted_tables):
            conn.execute(delete(table))
        for table in reversed(models.Base.metadata.sorted_tables):
            conn.execute(delete(table))


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from crud6.api.main import app
    return TestClient(app)


@pytest.fixture
def user_factory(db_session):
    def _create(email: str, permissions=(), is_superadmin: bool = False):
        user = models.User(email=email, display_name=email.split("@")[0], is_superadmin=is_superadmin)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        for slug in permissions:
            user_repo.grant_permission(db_session, user.id, slug)
        return user
    return _create
