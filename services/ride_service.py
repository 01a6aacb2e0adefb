"""Ride lifecycle.

Every status change is a conditional update on the ride document that
matches the status (and driver) the change was validated against, so two
concurrent requests can never both move the same ride. Riders and drivers
hold their single active ride in ``activeRideId`` on their account, claimed
the same way.
"""
import logging
import uuid

from config import settings
from errors import Conflict, Forbidden, InvalidTransition, NotFound
from models import Driver, Ride, RideRequest, utcnow
from services.fare import haversine_km, quote
from services.query_utils import paginate
from services.user_service import USERS
from store import DocumentStore

logger = logging.getLogger(__name__)

RIDES = "rides"

# Transitions a driver may request through the status endpoint
TRANSITIONS = {
    "accepted": ("picked_up", "rejected"),
    "picked_up": ("in_transit",),
    "in_transit": ("completed",),
}
CANCELLABLE = ("requested", "accepted")

TIMESTAMP_FIELDS = {
    "picked_up": "pickedUpAt",
    "in_transit": "inTransitAt",
    "completed": "completedAt",
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


async def get_ride(store: DocumentStore, ride_id: str) -> Ride:
    document = store.get(RIDES, ride_id)
    if document is None:
        raise NotFound("Ride not found")
    return Ride(**document)


def _release_rider(store: DocumentStore, rider_id: str, ride_id: str):
    return store.update_if(USERS, rider_id, {"activeRideId": ride_id}, {"activeRideId": None, "updatedAt": utcnow()})


def _release_driver(store: DocumentStore, driver_id: str, ride_id: str, increments=None):
    """Free the driver's active slot, returning a busy driver to online.

    A driver that is no longer busy keeps its current status.
    """
    now = utcnow()
    released = store.update_if(
        USERS, driver_id,
        {"activeRideId": ride_id, "driverStatus": "busy"},
        {"activeRideId": None, "driverStatus": "online", "updatedAt": now},
        increments,
    )
    if released is None:
        released = store.update_if(
            USERS, driver_id, {"activeRideId": ride_id}, {"activeRideId": None, "updatedAt": now}, increments,
        )
    return released


async def request_ride(store: DocumentStore, rider, request: RideRequest) -> Ride:
    ride_id = uuid.uuid4().hex
    now = utcnow()

    distance, fare = quote(request.pickupLocation, request.destination, request.rideType)
    ride = Ride(
        id=ride_id,
        riderId=rider.id,
        pickupLocation=request.pickupLocation,
        destination=request.destination,
        rideType=request.rideType,
        status="requested",
        requestedAt=now,
        estimatedFare=fare,
        distance=distance,
        createdAt=now,
        updatedAt=now,
    )

    claimed = store.update_if(USERS, rider.id, {"activeRideId": None}, {"activeRideId": ride_id, "updatedAt": now})
    if claimed is None:
        raise Conflict("You already have an active ride")

    try:
        store.create(RIDES, ride_id, ride.model_dump())
    except Exception:
        _release_rider(store, rider.id, ride_id)
        raise

    logger.info(f"Ride {ride_id} requested by {rider.id}: {distance} km, fare {fare}")
    return ride


async def cancel_ride(store: DocumentStore, user, ride_id: str, reason: str | None = None) -> Ride:
    ride = await get_ride(store, ride_id)
    if user.id == ride.riderId:
        actor = "rider"
    elif ride.driverId is not None and user.id == ride.driverId:
        actor = "driver"
    else:
        raise Forbidden("Unauthorized to cancel this ride")

    if ride.status not in CANCELLABLE:
        raise InvalidTransition("Ride cannot be cancelled at this stage")

    now = utcnow()
    document = store.update_if(
        RIDES, ride_id,
        {"status": ride.status, "driverId": ride.driverId},
        {
            "status": "cancelled",
            "cancelledAt": now,
            "cancelledBy": actor,
            "cancellationReason": reason or f"Cancelled by {actor}",
            "updatedAt": now,
        },
    )
    if document is None:
        current = await get_ride(store, ride_id)
        if current.status not in CANCELLABLE:
            raise InvalidTransition("Ride cannot be cancelled at this stage")
        raise Conflict("Ride was updated concurrently, please retry")

    _release_rider(store, ride.riderId, ride_id)
    if ride.driverId:
        _release_driver(store, ride.driverId, ride_id)

    logger.info(f"Ride {ride_id} cancelled by {actor} {user.id}")
    return Ride(**document)


async def available_rides(store: DocumentStore, driver: Driver) -> list:
    """Requested rides a driver can pick from, nearest first when the driver's location is known"""
    if driver.activeRideId:
        raise Conflict("Driver already has an active ride")
    if driver.driverStatus != "online":
        raise Conflict("Driver must be online to view available rides")

    documents = store.find(
        RIDES, {"status": "requested"}, order_by="requestedAt", limit=settings.AVAILABLE_RIDES_SCAN_LIMIT,
    )
    rides = [Ride(**document).model_dump(mode="json") for document in documents]

    location = driver.currentLocation
    if location is not None:
        for ride in rides:
            pickup = ride["pickupLocation"]
            distance = haversine_km(location.latitude, location.longitude, pickup["latitude"], pickup["longitude"])
            ride["distanceFromDriver"] = round(distance, 2)
        rides.sort(key=lambda ride: ride["distanceFromDriver"])

    return rides[:settings.AVAILABLE_RIDES_LIMIT]


async def accept_ride(store: DocumentStore, driver: Driver, ride_id: str) -> Ride:
    now = utcnow()
    claimed = store.update_if(
        USERS, driver.id,
        {"driverStatus": "online", "activeRideId": None},
        {"driverStatus": "busy", "activeRideId": ride_id, "updatedAt": now},
    )
    if claimed is None:
        if driver.activeRideId or driver.driverStatus == "busy":
            raise Conflict("Driver already has an active ride")
        raise Conflict("Driver must be online to accept rides")

    document = store.update_if(
        RIDES, ride_id,
        {"status": "requested", "driverId": None},
        {"status": "accepted", "driverId": driver.id, "acceptedAt": now, "updatedAt": now},
    )
    if document is None:
        _release_driver(store, driver.id, ride_id)
        if store.get(RIDES, ride_id) is None:
            raise NotFound("Ride not found")
        raise Conflict("Ride not found or already accepted")

    logger.info(f"Ride {ride_id} accepted by driver {driver.id}")
    return Ride(**document)


async def update_status(store: DocumentStore, driver: Driver, ride_id: str, target: str) -> Ride:
    ride = await get_ride(store, ride_id)
    if ride.driverId != driver.id:
        raise NotFound("Ride not found or unauthorized")
    if not can_transition(ride.status, target):
        raise InvalidTransition(f"Cannot transition from {ride.status} to {target}")

    now = utcnow()
    increments = None
    if target == "rejected":
        # Back to the pool for another driver
        changes = {"status": "requested", "driverId": None, "acceptedAt": None, "updatedAt": now}
        increments = {"rejectionCount": 1}
    else:
        changes = {"status": target, TIMESTAMP_FIELDS[target]: now, "updatedAt": now}
        if target == "completed":
            changes["actualFare"] = ride.estimatedFare
            if ride.pickedUpAt is not None:
                changes["duration"] = round((now - ride.pickedUpAt).total_seconds() / 60)

    document = store.update_if(RIDES, ride_id, {"status": ride.status, "driverId": driver.id}, changes, increments)
    if document is None:
        raise Conflict("Ride was updated concurrently, please retry")

    if target == "rejected":
        _release_driver(store, driver.id, ride_id)
    elif target == "completed":
        fare = changes["actualFare"]
        _release_driver(store, driver.id, ride_id, increments={"totalRides": 1, "totalEarnings": fare})
        _release_rider(store, ride.riderId, ride_id)

    logger.info(f"Ride {ride_id}: {ride.status} -> {target} by driver {driver.id}")
    return Ride(**document)


async def refresh_driver_rating(store: DocumentStore, driver_id: str) -> float | None:
    """Recompute a driver's rating as the mean over every rated ride they completed"""
    rides = store.find(RIDES, {"driverId": driver_id, "status": "completed"})
    ratings = [ride["rating"] for ride in rides if ride.get("rating") is not None]
    if not ratings:
        return None
    average = sum(ratings) / len(ratings)
    store.update(USERS, driver_id, {"rating": average, "ratingCount": len(ratings), "updatedAt": utcnow()})
    return average


async def rate_ride(store: DocumentStore, rider, ride_id: str, rating: int, feedback: str | None = None) -> Ride:
    ride = await get_ride(store, ride_id)
    if ride.riderId != rider.id:
        raise NotFound("Ride not found or not eligible for rating")
    if ride.status != "completed":
        raise InvalidTransition("Only completed rides can be rated")
    if ride.rating is not None:
        raise Conflict("Ride already rated")

    now = utcnow()
    document = store.update_if(
        RIDES, ride_id,
        {"status": "completed", "riderId": rider.id, "rating": None},
        {"rating": rating, "feedback": feedback, "ratedAt": now, "updatedAt": now},
    )
    if document is None:
        raise Conflict("Ride already rated")

    if ride.driverId:
        await refresh_driver_rating(store, ride.driverId)
    logger.info(f"Ride {ride_id} rated {rating} by {rider.id}")
    return Ride(**document)


async def ride_history(store: DocumentStore, user, status: str | None = None, page: int = 1, limit: int = 10):
    filters = {"status": status} if status else {}
    documents = {}
    for field in ("riderId", "driverId"):
        for document in store.find(RIDES, {**filters, field: user.id}):
            documents[document["id"]] = document

    rides = sorted((Ride(**document) for document in documents.values()), key=lambda ride: ride.requestedAt, reverse=True)
    return paginate(rides, page, limit, "totalRides")


async def current_ride(store: DocumentStore, user) -> Ride:
    if not user.activeRideId:
        raise NotFound("No active ride found")
    document = store.get(RIDES, user.activeRideId)
    if document is None:
        raise NotFound("No active ride found")
    return Ride(**document)
