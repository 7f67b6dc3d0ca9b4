from travel_app.core.jwt import decode_access_token
from travel_app.models.enums import UserRole
from travel_app.models.user import User

from conftest import auth_header, make_user


def register(client, **overrides):
    body = {"name": "Abena Mensah", "email": "abena@example.com", "password": "password123"}
    body.update(overrides)
    return client.post("/auth/register", json=body)


def test_register_creates_customer_and_returns_token(client, db):
    response = register(client, role="ADMIN", phone="+233241234567")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["tokenType"] == "bearer"
    assert data["user"]["role"] == "CUSTOMER"
    assert data["user"]["phone"] == "+233241234567"

    payload = decode_access_token(data["accessToken"])
    assert payload["sub"] == str(data["user"]["id"])
    assert payload["role"] == "CUSTOMER"
    assert payload["jti"]

    user = db.query(User).filter(User.email == "abena@example.com").one()
    assert user.password_hash != "password123"


def test_register_collects_field_errors(client, customer):
    response = register(client, name="A", email="customer@example.com", password="short")

    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Validation failed"
    assert set(body["errors"]) == {"name", "email", "password"}


def test_register_rejects_malformed_email(client):
    response = register(client, email="not-an-email")

    assert response.status_code == 422
    assert "email" in response.json()["errors"]


def test_login(client, db):
    make_user(db, "kwame@example.com", password="secret-pass")

    ok = client.post("/auth/login", json={"email": "KWAME@example.com", "password": "secret-pass"})
    assert ok.status_code == 200
    assert ok.json()["data"]["user"]["email"] == "kwame@example.com"

    bad = client.post("/auth/login", json={"email": "kwame@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json() == {"message": "Invalid credentials"}


def test_me_returns_the_session(client, customer, customer_headers):
    response = client.get("/auth/me", headers=customer_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["userId"] == customer.id
    assert data["email"] == customer.email
    assert data["role"] == "CUSTOMER"
    assert data["expiresAt"]


def test_invalid_token_is_rejected(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or expired token"}


def test_token_for_deleted_user_is_rejected(client, db):
    user = make_user(db, "gone@example.com")
    headers = auth_header(user)
    db.delete(user)
    db.commit()

    assert client.get("/auth/me", headers=headers).status_code == 401


def test_role_is_read_from_the_store(client, db, customer, customer_headers):
    customer.role = UserRole.AGENT
    db.commit()

    response = client.get("/auth/me", headers=customer_headers)

    assert response.json()["data"]["role"] == "AGENT"


def test_logout_without_redis_still_succeeds(client, customer_headers):
    response = client.post("/auth/logout", headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully"
