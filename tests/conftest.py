import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from decimal import Decimal  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from imagegen.db.base import Base  # noqa: E402
from imagegen.models import AiModel, TransactionType, User  # noqa: E402
from imagegen.services.catalog.service import CatalogService  # noqa: E402
from imagegen.services.ledger.service import LedgerService  # noqa: E402


class FakeIdempotencyStore:
    def __init__(self):
        self.keys = set()

    def check_and_set(self, key, ttl_seconds=None):
        if key in self.keys:
            return False
        self.keys.add(key)
        return True

    def release(self, key):
        self.keys.discard(key)

    def ping(self):
        return True


@pytest.fixture
def engine(tmp_path):
    # File database: every session gets its own connection, like the real pool.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(balance: int = 0, **kwargs) -> User:
        suffix = uuid4().hex[:8]
        user = User(username=f"user_{suffix}", email=f"{suffix}@example.com", **kwargs)
        db.add(user)
        db.commit()
        if balance:
            LedgerService(db).grant(user.id, balance, TransactionType.PURCHASE, notes="test top-up")
        return user

    return _make


@pytest.fixture
def make_model(db):
    def _make(
        cost: Decimal | None = Decimal("2"),
        is_active: bool = True,
        provider: str = "OpenAI",
        name: str | None = None,
    ) -> AiModel:
        prov = CatalogService(db).get_or_create_provider(provider, f"https://{provider.lower()}.example")
        suffix = uuid4().hex[:6]
        model = AiModel(
            provider_id=prov.id,
            model_name=name or f"Model {suffix}",
            api_identifier=f"model-{suffix}",
            is_active=is_active,
            cost_per_request=cost,
        )
        db.add(model)
        db.commit()
        return model

    return _make


@pytest.fixture
def idempotency_store():
    return FakeIdempotencyStore()


@pytest.fixture
def app(session_factory, idempotency_store):
    from imagegen.api.deps import get_idempotency_store
    from imagegen.db.session import get_db
    from imagegen.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_idempotency_store] = lambda: idempotency_store
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def server_error_client(app):
    # Returns the 500 response instead of re-raising the unhandled exception.
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
