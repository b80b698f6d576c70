import pytest

from exceptions import Conflict, NotFound, ValidationError
from models.audit_log import AuditLog
from models.users import User, UserRole
from schemas.users import UserCreate, UserUpdate
from crud import users as crud_users
from utils.auth_utils import verify_password


def test_create_user_hashes_password_and_keeps_it_out_of_audit(db, admin):
    user = crud_users.create_user(
        db, UserCreate(username="maria", password="secret1", email="maria@example.com", role=UserRole.MANAGER), admin
    )

    assert user.role == UserRole.MANAGER
    assert user.full_name == "maria"
    assert verify_password("secret1", user.hashed_password)
    log = db.query(AuditLog).filter(AuditLog.table_name == "users", AuditLog.record_id == user.id).one()
    assert log.action == "CREATE"
    assert log.changed_by == "admin"
    assert "hashed_password" not in log.new_values


def test_username_and_email_must_be_unique(db, admin):
    crud_users.create_user(db, UserCreate(username="maria", password="secret1", email="m@example.com"), admin)

    with pytest.raises(Conflict):
        crud_users.create_user(db, UserCreate(username="maria", password="secret2"), admin)
    with pytest.raises(Conflict):
        crud_users.create_user(db, UserCreate(username="other", password="secret2", email="m@example.com"), admin)


def test_update_user(db, admin):
    user = crud_users.create_user(db, UserCreate(username="maria", password="secret1"), admin)

    updated = crud_users.update_user(
        db, user.id, UserUpdate(password="changed1", role=UserRole.MANAGER, is_active=False), admin
    )

    assert updated.role == UserRole.MANAGER
    assert updated.is_active is False
    assert verify_password("changed1", updated.hashed_password)
    with pytest.raises(ValidationError):
        crud_users.update_user(db, user.id, UserUpdate(), admin)


def test_filter_by_role(db, admin):
    crud_users.create_user(db, UserCreate(username="bob", password="secret1", full_name="Bob"), admin)
    crud_users.create_user(db, UserCreate(username="ann", password="secret1", full_name="Ann"), admin)
    crud_users.create_user(db, UserCreate(username="boss", password="secret1", role=UserRole.MANAGER), admin)

    assert [u.username for u in crud_users.get_users_by_role(db, UserRole.USER)] == ["ann", "bob"]
    assert [u.username for u in crud_users.get_users(db, role=UserRole.MANAGER)] == ["boss"]
    assert len(crud_users.get_users(db)) == 4


def test_delete_user(db, admin):
    user = crud_users.create_user(db, UserCreate(username="temp", password="secret1"), admin)

    crud_users.delete_user(db, user.id, admin)

    assert db.query(User).filter(User.id == user.id).first() is None
    with pytest.raises(NotFound):
        crud_users.get_user(db, user.id)
    with pytest.raises(ValidationError):
        crud_users.delete_user(db, admin["id"], admin)


def test_user_endpoints(client):
    response = client.post("/users/", json={"username": "clerk", "password": "secret1", "role": "manager"})
    assert response.status_code == 201
    clerk = response.json()["data"]
    assert "hashed_password" not in clerk

    body = client.get("/users/role/manager").json()
    assert body["count"] == 1
    assert body["data"][0]["username"] == "clerk"
    assert client.get("/users/", params={"role": "admin"}).json()["count"] == 1

    response = client.patch(f"/users/{clerk['id']}", json={"full_name": "Store Clerk"})
    assert response.json()["data"]["full_name"] == "Store Clerk"

    assert client.delete(f"/users/{clerk['id']}").status_code == 200
    assert client.get(f"/users/{clerk['id']}").status_code == 404


def test_user_writes_require_admin(client, auth_headers):
    headers = auth_headers({"id": 42, "username": "boss", "role": "manager"})

    response = client.post("/users/", json={"username": "new1", "password": "secret1"}, headers=headers)
    assert response.status_code == 403
    assert client.get("/users/", headers=headers).status_code == 200
    assert client.get("/users/", headers={"Authorization": ""}).status_code == 401


def test_unknown_role_is_rejected(client):
    assert client.get("/users/role/client").status_code == 400
