import os
import tempfile

from tests.helpers import HANOI, generate_pem_pair

# Settings are read once at import time, so the environment is fixed first
_PRIVATE_PEM, _PUBLIC_PEM = generate_pem_pair()
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_PRIVATE_KEY"] = _PRIVATE_PEM
os.environ["JWT_PUBLIC_KEY"] = _PUBLIC_PEM
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CACHE_REDIS_URL"] = ""
os.environ["CREATE_ADMIN_ON_STARTUP"] = "false"
os.environ["LOG_FILE"] = os.path.join(tempfile.mkdtemp(prefix="nearby-tests-"), "app.log")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nearby.core.cache import InMemoryCache, cache as shared_cache  # noqa: E402
from nearby.core.database import Base  # noqa: E402
from nearby.core.security import hash_password  # noqa: E402
from nearby.models.service import Service, ServiceType  # noqa: E402
from nearby.models.user import User  # noqa: E402


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session_factory():
    return make_session_factory()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def memory_cache():
    return InMemoryCache()


@pytest.fixture(autouse=True)
def _reset_shared_cache():
    shared_cache.clear()
    yield
    shared_cache.clear()


@pytest.fixture
def make_user(db):
    def _make(email="a@x.com", password="Password123!", role="user", status="active", name="Test User"):
        user = User(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=role,
            status=status,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def service_type(db):
    row = ServiceType(name="Restaurant", slug="restaurant", description="Places to eat")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def make_service(db, service_type):
    def _make(name="Pho Thin", latitude=HANOI[0], longitude=HANOI[1], **fields):
        fields.setdefault("service_type_id", service_type.id)
        fields.setdefault("status", "active")
        service = Service(name=name, latitude=latitude, longitude=longitude, **fields)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service
    return _make
