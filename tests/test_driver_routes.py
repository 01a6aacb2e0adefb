from datetime import timedelta

import pytest

from conftest import API, auth
from models import utcnow
from services.driver_service import period_window


def drive_to_completion(client, ride_id, token):
    client.post(f"{API}/rides/{ride_id}/accept", headers=auth(token))
    for status in ("picked_up", "in_transit", "completed"):
        client.patch(f"{API}/rides/{ride_id}/status", json={"status": status}, headers=auth(token))


def test_pending_driver_cannot_go_online(client, register_driver):
    _, token = register_driver()
    response = client.patch(f"{API}/drivers/availability", json={"status": "online"}, headers=auth(token))
    assert response.status_code == 403
    assert response.json()["message"] == "Driver not approved yet"

    # going offline needs no approval
    response = client.patch(f"{API}/drivers/availability", json={"status": "offline"}, headers=auth(token))
    assert response.status_code == 200


def test_availability_with_location(client, online_driver):
    _, token = online_driver()
    response = client.patch(f"{API}/drivers/availability",
                            json={"status": "offline", "location": {"latitude": 12.95, "longitude": 77.65}},
                            headers=auth(token))
    assert response.status_code == 200
    driver = response.json()["data"]["driver"]
    assert driver["driverStatus"] == "offline"
    assert driver["currentLocation"] == {"latitude": 12.95, "longitude": 77.65}


def test_availability_rejects_busy(client, online_driver, requested_ride):
    ride, _, _ = requested_ride()
    _, token = online_driver()
    client.post(f"{API}/rides/{ride['id']}/accept", headers=auth(token))

    response = client.patch(f"{API}/drivers/availability", json={"status": "offline"}, headers=auth(token))
    assert response.status_code == 409


def test_availability_rejects_unknown_status(client, online_driver):
    _, token = online_driver()
    response = client.patch(f"{API}/drivers/availability", json={"status": "busy"}, headers=auth(token))
    assert response.status_code == 400


def test_driver_routes_reject_riders(client, register_rider):
    _, token = register_rider()
    response = client.patch(f"{API}/drivers/location", json={"latitude": 1, "longitude": 1}, headers=auth(token))
    assert response.status_code == 403


def test_update_location(client, register_driver):
    _, token = register_driver()
    response = client.patch(f"{API}/drivers/location", json={"latitude": 12.97, "longitude": 77.59},
                            headers=auth(token))
    assert response.status_code == 200
    assert response.json()["data"]["location"] == {"latitude": 12.97, "longitude": 77.59}

    response = client.patch(f"{API}/drivers/location", json={"latitude": 95, "longitude": 77.59}, headers=auth(token))
    assert response.status_code == 400


def test_earnings(client, online_driver, requested_ride):
    _, token = online_driver()
    first, _, _ = requested_ride()
    second, _, _ = requested_ride(ride_type="premium")
    drive_to_completion(client, first["id"], token)
    drive_to_completion(client, second["id"], token)

    data = client.get(f"{API}/drivers/earnings", headers=auth(token)).json()["data"]
    expected = round(first["estimatedFare"] + second["estimatedFare"], 2)
    assert data["totalRides"] == 2
    assert data["totalEarnings"] == pytest.approx(expected)
    assert data["periodRides"] == 2
    assert data["periodEarnings"] == pytest.approx(expected)
    assert data["averageFare"] == pytest.approx(round(expected / 2, 2))
    assert [ride["id"] for ride in data["rides"]] == [second["id"], first["id"]]

    data = client.get(f"{API}/drivers/earnings", params={"period": "today"}, headers=auth(token)).json()["data"]
    assert data["periodRides"] == 2


def test_earnings_date_range(client, online_driver, requested_ride):
    _, token = online_driver()
    ride, _, _ = requested_ride()
    drive_to_completion(client, ride["id"], token)

    data = client.get(f"{API}/drivers/earnings", params={"startDate": "2999-01-01T00:00:00"},
                      headers=auth(token)).json()["data"]
    assert data["periodRides"] == 0
    assert data["periodEarnings"] == 0
    assert data["averageFare"] == 0
    assert data["totalRides"] == 1


def test_earnings_rejects_unknown_period(client, register_driver):
    _, token = register_driver()
    response = client.get(f"{API}/drivers/earnings", params={"period": "decade"}, headers=auth(token))
    assert response.status_code == 400


def test_period_window():
    now = utcnow().replace(year=2024, month=5, day=15, hour=13)  # a Wednesday
    start, end = period_window("today", now)
    assert (start.day, start.hour, end - start) == (15, 0, timedelta(days=1))

    start, end = period_window("week", now)
    assert start.day == 13 and start.weekday() == 0 and end is None

    start, _ = period_window("month", now)
    assert (start.day, start.hour) == (1, 0)
    assert period_window(None, now) == (None, None)


def test_update_vehicle(client, register_driver):
    driver, token = register_driver()
    vehicle = {"make": "Honda", "model": "City", "year": 2022, "plateNumber": "NEW-PLATE-1", "color": "Blue"}
    response = client.put(f"{API}/drivers/vehicle", json=vehicle, headers=auth(token))
    assert response.status_code == 200
    assert response.json()["data"]["vehicleInfo"] == vehicle

    # the old plate can be registered by someone else now
    _, other_token = register_driver()
    old_plate = {**vehicle, "plateNumber": driver["vehicleInfo"]["plateNumber"]}
    assert client.put(f"{API}/drivers/vehicle", json=old_plate, headers=auth(other_token)).status_code == 200


def test_update_vehicle_plate_conflict(client, register_driver):
    first, _ = register_driver()
    _, token = register_driver()
    vehicle = {**first["vehicleInfo"], "color": "Black"}
    response = client.put(f"{API}/drivers/vehicle", json=vehicle, headers=auth(token))
    assert response.status_code == 409


def test_update_vehicle_rejects_bad_year(client, register_driver):
    driver, token = register_driver()
    vehicle = {**driver["vehicleInfo"], "year": 1800}
    assert client.put(f"{API}/drivers/vehicle", json=vehicle, headers=auth(token)).status_code == 400
