from __future__ import annotations

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskflow.auth import create_user_token
from taskflow.database import Base, get_db
from taskflow.main import create_app
from taskflow.models import Company, User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_company(db):
    def _make(name: str = "Acme") -> Company:
        company = Company(name=name)
        db.add(company)
        db.commit()
        return company

    return _make


@pytest.fixture
def make_user(db):
    def _make(company: Company, *, name: str = "User", role: str = "member", is_active: bool = True) -> User:
        user = User(
            company_id=company.id,
            name=name,
            email=f"{uuid4().hex[:12]}@example.com",
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def company(make_company):
    return make_company("Acme")


@pytest.fixture
def other_company(make_company):
    return make_company("Globex")


@pytest.fixture
def admin(make_user, company):
    return make_user(company, name="Alice", role="admin")


@pytest.fixture
def member(make_user, company):
    return make_user(company, name="Bob")


@pytest.fixture
def teammate(make_user, company):
    return make_user(company, name="Carol")


@pytest.fixture
def outsider(make_user, other_company):
    return make_user(other_company, name="Mallory", role="admin")


@pytest.fixture
def app(session_factory):
    app = create_app(session_factory=session_factory)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return _headers
