from quickvibe.core.config import settings

API = settings.API_V1_STR


def test_signup_and_login(client):
    r = client.post(f"{API}/users/signup", json={"email": "New@Example.com", "password": "secret123"})
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "new@example.com"
    assert body["plan"] == "FREE"
    assert body["token_balance"] == 10000
    assert "hashed_password" not in body

    r = client.post(
        f"{API}/login/access-token",
        data={"username": "new@example.com", "password": "secret123"},
    )
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = client.post(f"{API}/login/test-token", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "new@example.com"


def test_duplicate_signup_conflicts(client, user):
    r = client.post(f"{API}/users/signup", json={"email": user.email, "password": "secret123"})
    assert r.status_code == 409


def test_short_password_rejected(client):
    r = client.post(f"{API}/users/signup", json={"email": "a@example.com", "password": "123"})
    assert r.status_code == 422


def test_wrong_password(client, user):
    r = client.post(f"{API}/login/access-token", data={"username": user.email, "password": "nope"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Incorrect email or password"


def test_me_requires_token(client):
    assert client.get(f"{API}/users/me").status_code == 401
    r = client.get(f"{API}/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"


def test_me_and_usage(client, user_headers):
    r = client.get(f"{API}/users/me", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["email"] == "owner@example.com"

    r = client.get(f"{API}/users/me/usage", headers=user_headers)
    assert r.status_code == 200
    assert r.json() == {
        "token_balance": 10000,
        "context_used": 0,
        "plan": "FREE",
        "monthly_tokens_used": 0,
        "monthly_tokens_saved": 0,
    }
