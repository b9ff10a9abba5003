import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, insert

from storefront.config import Settings
from storefront.database import init_db, make_engine, make_session_factory
from storefront.main import create_app
from storefront.models import Widget
from storefront.repository import Repository


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'storefront_test.db'}",
        stripe_secret_key="sk_test_123",
        stripe_publishable_key="pk_test_123",
    )


@pytest.fixture
def engine(settings):
    engine = make_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory, settings):
    return Repository(session_factory, timeout=settings.db_timeout)


@pytest.fixture
def widget_id(engine):
    with engine.begin() as conn:
        result = conn.execute(insert(Widget).values(
            name="Custom Widget",
            description="A very nice widget",
            inventory_level=10,
            price=1000,
            created_at=func.now(),
            updated_at=func.now(),
        ))
    return result.inserted_primary_key[0]


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
