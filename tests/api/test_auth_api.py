from __future__ import annotations


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_a_usable_token(anonymous_client):
    response = anonymous_client.post(
        "/api/auth/register",
        json={"name": "Ana", "email": "Ana@Example.com", "password": "secret123", "organization": "Acme"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["role"] == "user"

    me = anonymous_client.get("/api/auth/me", headers=_bearer(body["access_token"]))
    assert me.status_code == 200
    assert me.json()["organization"] == "Acme"


def test_register_rejects_duplicate_email(anonymous_client, user):
    response = anonymous_client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "tester@example.com", "password": "secret123"},
    )
    assert response.status_code == 400


def test_register_validates_password_length(anonymous_client):
    response = anonymous_client.post(
        "/api/auth/register", json={"name": "Short", "email": "s@example.com", "password": "123"}
    )
    assert response.status_code == 422


def test_login(anonymous_client, user):
    response = anonymous_client.post(
        "/api/auth/login", json={"email": "tester@example.com", "password": "secret123"}
    )

    assert response.status_code == 200
    assert response.json()["user"]["last_login"] is not None


def test_login_with_wrong_password(anonymous_client, user):
    response = anonymous_client.post(
        "/api/auth/login", json={"email": "tester@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 401


def test_protected_routes_require_a_valid_token(anonymous_client):
    assert anonymous_client.get("/api/auth/me").status_code in (401, 403)
    assert anonymous_client.get("/api/auth/me", headers=_bearer("garbage")).status_code == 401


def test_profile_update_keeps_the_session(client):
    response = client.put("/api/auth/me", json={"email": "renamed@example.com", "job_title": "Analyst"})

    assert response.status_code == 200
    assert response.json()["email"] == "renamed@example.com"
    assert response.json()["job_title"] == "Analyst"
    assert client.get("/api/auth/me").json()["email"] == "renamed@example.com"


def test_profile_update_rejects_taken_email(client, anonymous_client):
    anonymous_client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "other@example.com", "password": "secret123"},
    )

    response = client.put("/api/auth/me", json={"email": "other@example.com"})

    assert response.status_code == 409


def test_password_change(client, anonymous_client):
    wrong = client.put(
        "/api/auth/password", json={"current_password": "nope", "new_password": "newsecret"}
    )
    assert wrong.status_code == 400

    changed = client.put(
        "/api/auth/password", json={"current_password": "secret123", "new_password": "newsecret"}
    )
    assert changed.status_code == 200

    login = anonymous_client.post(
        "/api/auth/login", json={"email": "tester@example.com", "password": "newsecret"}
    )
    assert login.status_code == 200


def test_logout(client):
    assert client.post("/api/auth/logout").json() == {"message": "Logged out"}
