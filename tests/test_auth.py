from carelink.routers.auth import _mask_email


def test_signup_login_and_me(client):
    res = client.post(
        "/auth/signup",
        json={"email": "Jane@Example.com", "password": "secret123", "full_name": "Jane"},
    )
    assert res.status_code == 201
    assert res.json()["role"] == "patient"
    assert "cl_access_token" in res.cookies

    client.cookies.clear()
    res = client.post("/auth/login", json={"email": "jane@example.com", "password": "secret123"})
    assert res.status_code == 200
    token = res.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "jane@example.com"


def test_cookie_session(client):
    client.post("/auth/signup", json={"email": "jane@example.com", "password": "secret123", "full_name": "Jane"})
    assert client.get("/auth/me").status_code == 200
    client.post("/auth/logout")
    client.cookies.clear()
    assert client.get("/auth/me").status_code == 401


def test_duplicate_signup(client, signup):
    signup("jane@example.com")
    res = client.post(
        "/auth/signup",
        json={"email": "jane@example.com", "password": "secret123", "full_name": "Jane"},
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "This email is already registered. Please log in instead."


def test_wrong_password(client, signup):
    signup("jane@example.com")
    res = client.post("/auth/login", json={"email": "jane@example.com", "password": "nope"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Incorrect email or password"


def test_invalid_token(client):
    res = client.get("/profiles/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401


def test_mask_email():
    assert _mask_email("jane@example.com") == "j**e@example.com"
    assert _mask_email("jo@example.com") == "j*@example.com"


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
