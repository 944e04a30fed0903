import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import auth, models
from config import settings
from database import Base, enable_sqlite_foreign_keys, get_db, init_db
from main import app
from services import users as user_service


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def bearer(user: models.User) -> dict:
    token = auth.create_access_token(user.id, user.role, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(db_session):
    return user_service.register(db_session, "alice", "secret1")


@pytest.fixture
def bob(db_session):
    return user_service.register(db_session, "bob", "secret2")


@pytest.fixture
def admin(db_session):
    return user_service.register(db_session, "root", "supersecret", models.Role.admin)


@pytest.fixture
def book(db_session):
    book = models.Book(title="Dune", author="Frank Herbert", description="Spice", stock=1)
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book
