import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from dental_saas.core.database import Base, get_db  # noqa: E402
import dental_saas.models  # noqa: E402,F401
from dental_saas.deps import get_object_storage, get_payment_gateway  # noqa: E402
from dental_saas.services.object_storage import ObjectStorage  # noqa: E402
from tests.fixtures_data import FakeGateway, FakeStorageClient  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite só suporta SAVEPOINT com o BEGIN emitido pelo SQLAlchemy.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
def build_client(session_factory, fake_gateway, storage_client):
    def _build(*routers):
        app = FastAPI()
        for router in routers:
            app.include_router(router)

        def override_get_db():
            session = session_factory()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
        app.dependency_overrides[get_object_storage] = lambda: ObjectStorage(client=storage_client, bucket="test-bucket")
        return TestClient(app)

    return _build
