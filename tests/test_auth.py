from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from floortrack.database import get_db
from floortrack.utils.auth import AuthError, create_access_token, create_user_token, verify_token


@pytest.fixture
def raw_client(db):
    """Client with the real auth dependency."""
    from floortrack.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(token):
    return {"Authorization": f"Bearer {token}", "x-timezone-offset": "0"}


def test_token_subject_is_user_id():
    payload = verify_token(create_user_token(42))
    assert payload["sub"] == "42"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(AuthError):
        verify_token(token)


def test_status_with_valid_token(raw_client, user):
    response = raw_client.get("/api/tracker/status", headers=bearer(create_user_token(user.id)))
    assert response.status_code == 200
    assert response.json()["state"] == "logged_out"


def test_missing_token(raw_client):
    response = raw_client.get("/api/tracker/status", headers={"x-timezone-offset": "0"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


def test_garbage_token(raw_client):
    response = raw_client.get("/api/tracker/status", headers=bearer("not-a-jwt"))
    assert response.status_code == 401


def test_unknown_user(raw_client, user):
    response = raw_client.get("/api/tracker/status", headers=bearer(create_user_token(user.id + 100)))
    assert response.status_code == 401


def test_inactive_user(raw_client, db, user):
    user.is_active = False
    db.commit()

    response = raw_client.get("/api/tracker/status", headers=bearer(create_user_token(user.id)))

    assert response.status_code == 400
    assert response.json()["detail"] == "Inactive user"


def test_expired_token_is_unauthorized(raw_client, user):
    token = create_user_token(user.id, expires_delta=timedelta(seconds=-5))
    response = raw_client.get("/api/tracker/status", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"
