import os

# Settings are read at import time, so configure the app before main is imported
os.environ["STORE_BACKEND"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["NOTIFY_WEBHOOK_URL"] = ""
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "admin-password"
os.environ["ADMIN_PHONE"] = "+15550000000"

import pytest
from fastapi.testclient import TestClient

from main import app

API = "/api/v1"

PICKUP = {"address": "MG Road", "latitude": 12.9, "longitude": 77.6}
DESTINATION = {"address": "Hebbal", "latitude": 13.0, "longitude": 77.7}

_counter = {"n": 0}


def _unique():
    _counter["n"] += 1
    return _counter["n"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def store(client):
    return client.app.state.store


@pytest.fixture
def admin_token(client):
    response = client.post(f"{API}/auth/login", json={"email": "admin@example.com", "password": "admin-password"})
    assert response.status_code == 200
    return response.json()["data"]["token"]


@pytest.fixture
def register_rider(client):
    def register(name="Alice Rider"):
        n = _unique()
        response = client.post(f"{API}/auth/register", json={
            "name": name,
            "email": f"rider{n}@example.com",
            "password": "secret123",
            "phone": f"+1555{n:07d}",
        })
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return data["user"], data["token"]
    return register


@pytest.fixture
def register_driver(client):
    def register(name="Dave Driver"):
        n = _unique()
        response = client.post(f"{API}/auth/register/driver", json={
            "name": name,
            "email": f"driver{n}@example.com",
            "password": "secret123",
            "phone": f"+1666{n:07d}",
            "licenseNumber": f"LIC-{n}",
            "vehicleInfo": {
                "make": "Toyota",
                "model": "Prius",
                "year": 2020,
                "plateNumber": f"KA-01-{n:04d}",
                "color": "White",
            },
        })
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return data["driver"], data["token"]
    return register


@pytest.fixture
def online_driver(client, register_driver, admin_token):
    """Register a driver, approve it and put it online"""
    def create(location=None):
        driver, token = register_driver()
        response = client.patch(f"{API}/admin/drivers/{driver['id']}/approve", headers=auth(admin_token))
        assert response.status_code == 200, response.text
        body = {"status": "online"}
        if location:
            body["location"] = location
        response = client.patch(f"{API}/drivers/availability", json=body, headers=auth(token))
        assert response.status_code == 200, response.text
        return driver, token
    return create


@pytest.fixture
def requested_ride(client, register_rider):
    def create(pickup=PICKUP, destination=DESTINATION, ride_type="standard"):
        rider, token = register_rider()
        response = client.post(f"{API}/rides/request", json={
            "pickupLocation": pickup,
            "destination": destination,
            "rideType": ride_type,
        }, headers=auth(token))
        assert response.status_code == 201, response.text
        return response.json()["data"]["ride"], rider, token
    return create
