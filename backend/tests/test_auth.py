from datetime import timedelta

from fastapi.testclient import TestClient

from storefront.api.deps import get_session_repository
from storefront.main import app, purge_sessions_job
from storefront.models.session import AuthSession
from storefront.repositories.session_repo import (
    DbSessionRepository,
    InMemorySessionRepository,
    utcnow,
)


def test_register_login_logout(gateway):
    client = TestClient(app)
    res = client.post(
        "/api/auth/register",
        json={"username": "ann", "email": "ann@example.com", "password": "pw123456", "fullName": "Ann"},
    )
    assert res.status_code == 201
    assert res.json()["user"]["fullName"] == "Ann"
    assert "passwordHash" not in res.json()["user"]

    # registering again is refused
    res = client.post(
        "/api/auth/register", json={"username": "ann", "email": "x@example.com", "password": "pw"}
    )
    assert res.status_code == 400

    client.post("/api/auth/logout")
    assert client.get("/api/auth/user").status_code == 401

    res = client.post("/api/auth/login", json={"username": "ann", "password": "wrong"})
    assert res.status_code == 401

    res = client.post("/api/auth/login", json={"username": "ann", "password": "pw123456"})
    assert res.status_code == 200
    token = res.json()["token"]
    # cookie session
    assert client.get("/api/auth/user").json()["username"] == "ann"
    # bearer session
    fresh = TestClient(app)
    assert fresh.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"}).status_code == 200

    client.post("/api/auth/logout")
    assert fresh.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_sessions_can_live_in_memory(gateway):
    now = [utcnow()]
    store = InMemorySessionRepository(clock=lambda: now[0])
    app.dependency_overrides[get_session_repository] = lambda: store
    client = TestClient(app)

    token = client.post(
        "/api/auth/register", json={"username": "bo", "email": "bo@example.com", "password": "pw123456"}
    ).json()["token"]
    assert store.get(token)["user_id"]
    assert client.get("/api/auth/user").status_code == 200

    now[0] += timedelta(days=30)
    assert client.get("/api/auth/user").status_code == 401
    assert store.purge_expired() == 1


def test_db_sessions_expire(db):
    repo = DbSessionRepository(db)
    repo.set("short", {"user_id": None}, ttl_seconds=-1)
    assert repo.get("short") is None
    assert repo.purge_expired() >= 1


def test_purge_job_removes_expired_sessions(db):
    repo = DbSessionRepository(db)
    repo.set("old", {"user_id": None}, ttl_seconds=-1)
    repo.set("live", {"user_id": None}, ttl_seconds=600)
    purge_sessions_job()
    db.expire_all()
    assert repo.get("live") == {"user_id": None}
    assert db.query(AuthSession).filter_by(token="old").count() == 0
