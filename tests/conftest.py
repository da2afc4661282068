import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from carelink.core.db import Base, get_db
from carelink.core.deps import get_blob_store
from carelink.core.security import create_access_token, get_password_hash
from carelink.main import app
from carelink.models.user import User
from carelink.services.blob_store import LocalBlobStore
from carelink.services.profiles import ensure_profile


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
def store(tmp_path):
    return LocalBlobStore(str(tmp_path / "uploads"))


@pytest.fixture()
def client(session_factory, store):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def signup(client):
    """Sign a user up through the API and return ``(user_id, headers)``."""

    def _signup(email: str, role: str = "patient", full_name: str = "Test User", **extra):
        payload = {"email": email, "password": "secret123", "full_name": full_name, "role": role}
        if role == "doctor":
            payload.setdefault("specialization", "Cardiology")
        payload.update(extra)
        res = client.post("/auth/signup", json=payload)
        assert res.status_code == 201, res.text
        body = res.json()
        client.cookies.clear()
        return body["user_id"], auth_headers(body["access_token"])

    return _signup


@pytest.fixture()
def admin(db):
    """An admin account created directly in the database."""
    user = User(
        email="admin@example.com",
        password_hash=get_password_hash("secret123"),
        role="admin",
        is_active=True,
    )
    db.add(user)
    db.commit()
    ensure_profile(db, user)
    token = create_access_token(sub=str(user.id), role="admin")
    return str(user.id), auth_headers(token)
