from datetime import timedelta

from jose import jwt

from conftest import API, auth
from config import settings
from models import utcnow


def test_register_rider_returns_user_and_token(client):
    response = client.post(f"{API}/auth/register", json={
        "name": "Alice",
        "email": "Alice@Example.com",
        "password": "secret123",
        "phone": "+919876543210",
    })
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["role"] == "rider"
    assert data["user"]["email"] == "alice@example.com"
    assert "passwordHash" not in data["user"]

    payload = jwt.decode(data["token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == data["user"]["id"]
    assert payload["email"] == "alice@example.com"
    assert payload["role"] == "rider"


def test_register_duplicate_email_conflicts(client, register_rider):
    user, _ = register_rider()
    response = client.post(f"{API}/auth/register", json={
        "name": "Copycat",
        "email": user["email"].upper(),
        "password": "secret123",
        "phone": "+919000000001",
    })
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_register_duplicate_phone_conflicts_and_frees_email(client, register_rider):
    user, _ = register_rider()
    body = {"name": "Copycat", "email": "fresh@example.com", "password": "secret123", "phone": user["phone"]}
    assert client.post(f"{API}/auth/register", json=body).status_code == 409

    # the email reserved before the phone clash must be usable again
    body["phone"] = "+919000000002"
    assert client.post(f"{API}/auth/register", json=body).status_code == 201


def test_register_driver_is_pending(client, register_driver):
    driver, token = register_driver()
    assert driver["role"] == "driver"
    assert driver["approvalStatus"] == "pending"
    assert driver["driverStatus"] == "offline"
    assert driver["totalRides"] == 0


def test_register_driver_duplicate_license(client, register_driver):
    driver, _ = register_driver()
    response = client.post(f"{API}/auth/register/driver", json={
        "name": "Other Driver",
        "email": "other.driver@example.com",
        "password": "secret123",
        "phone": "+919000000003",
        "licenseNumber": driver["licenseNumber"],
        "vehicleInfo": {"make": "Honda", "model": "City", "year": 2019, "plateNumber": "NEW-1", "color": "Red"},
    })
    assert response.status_code == 409
    assert response.json()["message"] == "License number already registered"


def test_login(client, register_rider):
    user, _ = register_rider()
    response = client.post(f"{API}/auth/login", json={"email": user["email"], "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == user["id"]


def test_login_wrong_password(client, register_rider):
    user, _ = register_rider()
    response = client.post(f"{API}/auth/login", json={"email": user["email"], "password": "wrong-one"})
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_profile_requires_token(client):
    response = client.get(f"{API}/auth/profile")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_profile_rejects_bad_token(client):
    response = client.get(f"{API}/auth/profile", headers=auth("not-a-token"))
    assert response.status_code == 401


def test_profile_rejects_expired_token(client, register_rider):
    user, _ = register_rider()
    expired = jwt.encode(
        {"sub": user["id"], "email": user["email"], "role": "rider", "exp": utcnow() - timedelta(minutes=1)},
        settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM,
    )
    response = client.get(f"{API}/auth/profile", headers=auth(expired))
    assert response.status_code == 401
    assert "expired" in response.json()["message"]


def test_profile_rejects_token_for_unknown_user(client):
    token = jwt.encode(
        {"sub": "ghost", "email": "ghost@example.com", "role": "rider", "exp": utcnow() + timedelta(minutes=5)},
        settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM,
    )
    assert client.get(f"{API}/auth/profile", headers=auth(token)).status_code == 401


def test_driver_profile_includes_driver_fields(client, register_driver):
    _, token = register_driver()
    user = client.get(f"{API}/auth/profile", headers=auth(token)).json()["data"]["user"]
    assert user["vehicleInfo"]["make"] == "Toyota"
    assert user["approvalStatus"] == "pending"


def test_update_profile(client, register_rider):
    user, token = register_rider()
    response = client.patch(f"{API}/auth/profile", json={"name": "Alice Renamed", "email": "new.alice@example.com"},
                            headers=auth(token))
    assert response.status_code == 200
    updated = response.json()["data"]["user"]
    assert updated["name"] == "Alice Renamed"
    assert updated["email"] == "new.alice@example.com"

    # the old email is free again
    response = client.post(f"{API}/auth/register", json={
        "name": "Someone", "email": user["email"], "password": "secret123", "phone": "+919000000004",
    })
    assert response.status_code == 201


def test_update_profile_to_taken_phone(client, register_rider):
    other, _ = register_rider()
    _, token = register_rider()
    response = client.patch(f"{API}/auth/profile", json={"phone": other["phone"]}, headers=auth(token))
    assert response.status_code == 409


def test_change_password(client, register_rider):
    user, token = register_rider()
    response = client.patch(f"{API}/auth/password", json={"currentPassword": "wrong", "newPassword": "another123"},
                            headers=auth(token))
    assert response.status_code == 401

    response = client.patch(f"{API}/auth/password", json={"currentPassword": "secret123", "newPassword": "another123"},
                            headers=auth(token))
    assert response.status_code == 200
    login = client.post(f"{API}/auth/login", json={"email": user["email"], "password": "another123"})
    assert login.status_code == 200


def test_deactivated_account_is_forbidden(client, register_rider):
    user, token = register_rider()
    assert client.post(f"{API}/auth/deactivate", headers=auth(token)).status_code == 200

    assert client.get(f"{API}/auth/profile", headers=auth(token)).status_code == 403
    login = client.post(f"{API}/auth/login", json={"email": user["email"], "password": "secret123"})
    assert login.status_code == 403


def test_role_gate(client, register_rider):
    _, token = register_rider()
    response = client.get(f"{API}/admin/dashboard/stats", headers=auth(token))
    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


def test_pending_driver_cannot_list_rides(client, register_driver):
    _, token = register_driver()
    response = client.get(f"{API}/rides/available", headers=auth(token))
    assert response.status_code == 403


def test_resubmitting_own_phone_without_whitespace(client):
    body = {"name": "Spacey", "email": "spacey@example.com", "password": "secret123", "phone": "+15551234567 "}
    token = client.post(f"{API}/auth/register", json=body).json()["data"]["token"]

    response = client.patch(f"{API}/auth/profile", json={"phone": "+15551234567"}, headers=auth(token))
    assert response.status_code == 200
