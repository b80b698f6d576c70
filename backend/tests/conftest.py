import os
import tempfile

import pytest

# Set test environment before any application module reads it
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="equipment-parts-logs-")

from fastapi.testclient import TestClient

from database import Base, engine, SessionLocal, get_db
from main import app
from models.users import User, UserRole
from schemas.parts import PartCreate
from crud import parts as crud_parts
from utils.auth_utils import create_access_token


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin(db):
    user = User(username="admin", hashed_password="not-used", role=UserRole.ADMIN)
    db.add(user)
    db.commit()
    return {"id": user.id, "username": user.username, "role": "admin"}


def token_headers(identity: dict) -> dict:
    token = create_access_token({"sub": identity["username"], "id": identity["id"], "role": identity["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, admin):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        test_client.headers.update(token_headers(admin))
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_part(db, admin):
    counter = {"n": 0}

    def factory(name=None, quantity=0, min_stock_level=0, purchase_price="10.00", **kwargs):
        counter["n"] += 1
        part = PartCreate(
            name=name or f"Part {counter['n']}",
            quantity=quantity,
            min_stock_level=min_stock_level,
            purchase_price=purchase_price,
            **kwargs,
        )
        return crud_parts.create_part(db, part, admin)

    return factory


@pytest.fixture
def auth_headers():
    return token_headers
