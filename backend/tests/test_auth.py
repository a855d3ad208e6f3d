"""
Tests for registration, login, bearer authentication, the user endpoints
and application startup.
"""

import logging
from datetime import timedelta
from typing import Dict

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import main
import models
from auth.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


def test_password_hash_roundtrip():
    hashed = hash_password("correct horse")

    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_register_creates_user(client: TestClient, test_db: Session):
    response = client.post(
        "/auth/registro",
        json={"name": "Ana", "email": "Ana@Example.com", "password": "s3cret-pass"},
    )

    assert response.status_code == 201, response.json()
    body = response.json()
    assert body["email"] == "ana@example.com"
    assert body["is_active"] is True
    assert "password" not in body and "password_hash" not in body

    user = test_db.query(models.User).filter(models.User.email == "ana@example.com").first()
    assert user is not None
    assert verify_password("s3cret-pass", user.password_hash)


def test_register_duplicate_email_is_400(client: TestClient, regular_user: models.User):
    response = client.post(
        "/auth/registro",
        json={"name": "Dup", "email": regular_user.email, "password": "s3cret-pass"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_register_missing_fields_is_400(client: TestClient):
    response = client.post("/auth/registro", json={"email": "x@example.com"})
    assert response.status_code == 400


def test_login_returns_bearer_token(client: TestClient, regular_user: models.User):
    response = client.post("/auth/login", json={"email": "user@test.com", "password": "user12345"})

    assert response.status_code == 200, response.json()
    token = response.json()["access_token"]
    assert response.json()["token_type"] == "bearer"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == regular_user.id
    logger.info("✓ login token authenticates /auth/me")


def test_login_wrong_password_is_401(client: TestClient, regular_user: models.User):
    response = client.post("/auth/login", json={"email": "user@test.com", "password": "nope-nope"})
    assert response.status_code == 401


def test_login_unknown_email_is_401(client: TestClient):
    response = client.post("/auth/login", json={"email": "ghost@test.com", "password": "whatever1"})
    assert response.status_code == 401


def test_login_inactive_user_is_403(client: TestClient, test_db: Session, regular_user: models.User):
    regular_user.is_active = False
    test_db.commit()

    response = client.post("/auth/login", json={"email": "user@test.com", "password": "user12345"})
    assert response.status_code == 403


def test_me_requires_token(client: TestClient):
    response = client.get("/auth/me")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_me_rejects_invalid_token(client: TestClient):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_me_rejects_expired_token(client: TestClient, regular_user: models.User):
    token = create_access_token({"sub": str(regular_user.id)}, expires_delta=timedelta(minutes=-1))

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_me_rejects_token_for_deleted_user(client: TestClient):
    token = create_access_token({"sub": "9999"})

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_me_rejects_malformed_subject(client: TestClient):
    token = create_access_token({"sub": "abc"})

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# ============== Users ==============


def test_create_and_list_users(client: TestClient):
    created = client.post(
        "/usuarios",
        json={"name": "Bia", "email": "bia@example.com", "password": "another-pass"},
    )
    assert created.status_code == 201, created.json()

    response = client.get("/usuarios")
    assert response.status_code == 200
    assert [u["email"] for u in response.json()] == ["bia@example.com"]


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "ok"}


def test_startup_creates_tables(monkeypatch):
    created = []
    monkeypatch.setattr(main.Base.metadata, "create_all", lambda bind: created.append(bind))

    with TestClient(main.app):
        pass

    assert created == [main.engine]
