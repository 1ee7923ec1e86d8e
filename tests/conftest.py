"""Shared fixtures: in-memory SQLite database, API client, account factories."""

import os

# Must be set before crm_access.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import crm_access.models  # noqa: F401
from crm_access.db.base import Base
from crm_access.db.session import get_db
from crm_access.main import app
from crm_access.models.branch import Branch
from crm_access.models.user import User
from crm_access.core.security import create_access_token, hash_password
from crm_access.services.audit_service import audit_service

DEFAULT_PASSWORD = "secret123"


@pytest.fixture()
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


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    previous_factory = audit_service.session_factory
    audit_service.session_factory = session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    audit_service.session_factory = previous_factory


@pytest.fixture()
def make_branch(db):
    def _make(name: str, **fields) -> Branch:
        branch = Branch(name=name, **fields)
        db.add(branch)
        db.commit()
        db.refresh(branch)
        return branch

    return _make


@pytest.fixture()
def make_user(db):
    def _make(
        name: str,
        role: str = "staff",
        email: str = None,
        password: str = DEFAULT_PASSWORD,
        department: str = None,
        branch: Branch = None,
        status: str = "active",
    ) -> User:
        user = User(
            email=email or f"{name.lower()}@example.com",
            hashed_password=hash_password(password),
            name=name,
            role=role,
            department=department,
            branch_id=branch.id if branch else None,
            status=status,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def token_for(user: User) -> str:
    return create_access_token({
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "department": user.department,
        "branch_id": user.branch_id,
    })


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}
