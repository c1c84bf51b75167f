import os

os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models.user import User

TEST_SECRET = "test-secret"


def make_token(user_id: str, email: str, name: str = None, expires_in: int = 3600) -> str:
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    if name:
        claims["name"] = name
    return jwt.encode(claims, TEST_SECRET, algorithm="HS256")


def auth_headers(user_id: str, email: str, name: str = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email, name)}"}


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
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def add_user(db):
    def _add_user(user_id: str, email: str, name: str = None) -> User:
        user = User(id=user_id, email=email, name=name)
        db.add(user)
        db.commit()
        return user
    return _add_user
