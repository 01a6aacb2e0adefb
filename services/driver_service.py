import logging
from datetime import datetime, timedelta

from errors import Conflict, Forbidden, NotFound, ValidationFailed
from models import Coordinates, Driver, Ride, VehicleInfo, parse_account, utcnow
from services.query_utils import within
from services.ride_service import RIDES
from services.user_service import USERS, release, reserve, unique_key
from store import DocumentStore

logger = logging.getLogger(__name__)


async def set_availability(store: DocumentStore, driver: Driver, status: str, location: Coordinates | None = None) -> Driver:
    if status == "online" and driver.approvalStatus != "approved":
        raise Forbidden("Driver not approved yet")

    changes = {"driverStatus": status, "updatedAt": utcnow()}
    if location is not None:
        changes["currentLocation"] = location.model_dump()

    # A busy driver keeps its status until the ride ends
    document = store.update_if(USERS, driver.id, {"activeRideId": None}, changes)
    if document is None:
        raise Conflict("Cannot change availability during an active ride")

    logger.info(f"Driver {driver.id} is now {status}")
    return parse_account(document)


async def update_location(store: DocumentStore, driver: Driver, location: Coordinates) -> Driver:
    document = store.update(USERS, driver.id, {"currentLocation": location.model_dump(), "updatedAt": utcnow()})
    if document is None:
        raise NotFound("Driver profile not found")
    return parse_account(document)


def period_window(period: str | None, now: datetime | None = None):
    """Start/end datetimes for the named earnings period"""
    if period is None:
        return None, None
    now = now or utcnow()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return day_start, day_start + timedelta(days=1)
    if period == "week":
        return day_start - timedelta(days=now.weekday()), None
    if period == "month":
        return day_start.replace(day=1), None
    raise ValidationFailed("Period must be today, week or month")


async def earnings(store: DocumentStore, driver: Driver, period: str | None = None,
                   start_date: datetime | None = None, end_date: datetime | None = None) -> dict:
    if period is not None:
        start_date, end_date = period_window(period)

    rides = [Ride(**document) for document in store.find(RIDES, {"driverId": driver.id, "status": "completed"})]
    if start_date is not None or end_date is not None:
        rides = [ride for ride in rides if within(ride.completedAt, start_date, end_date)]
    rides.sort(key=lambda ride: ride.completedAt, reverse=True)

    fares = [ride.actualFare if ride.actualFare is not None else ride.estimatedFare for ride in rides]
    period_earnings = round(sum(fares), 2)
    return {
        "totalEarnings": round(driver.totalEarnings, 2),
        "totalRides": driver.totalRides,
        "periodEarnings": period_earnings,
        "periodRides": len(rides),
        "averageFare": round(period_earnings / len(rides), 2) if rides else 0,
        "rides": [ride.model_dump(mode="json") for ride in rides],
    }


async def update_vehicle(store: DocumentStore, driver: Driver, vehicle: VehicleInfo) -> Driver:
    new_key = None
    old_plate = driver.vehicleInfo.plateNumber
    if unique_key("plate", vehicle.plateNumber) != unique_key("plate", old_plate):
        new_key = reserve(store, driver.id, "plate", vehicle.plateNumber)

    document = store.update(USERS, driver.id, {"vehicleInfo": vehicle.model_dump(), "updatedAt": utcnow()})
    if document is None:
        if new_key:
            release(store, new_key)
        raise NotFound("Driver profile not found")
    if new_key:
        release(store, unique_key("plate", old_plate))

    logger.info(f"Vehicle updated for driver {driver.id}")
    return parse_account(document)
