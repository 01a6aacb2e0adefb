from fastapi import APIRouter, BackgroundTasks, Query

from dependencies import ApprovedDriver, CurrentRider, CurrentUser, Store
from models import CancelRideRequest, RateRideRequest, RideRequest, RideStatus, RideStatusUpdate
from responses import success_response
from services import ride_service
from services.notification_service import DRIVERS_TOPIC, publish_ride

router = APIRouter(prefix="/api/v1/rides")


@router.post("/request")
async def request_ride(request: RideRequest, rider: CurrentRider, store: Store, background_tasks: BackgroundTasks):
    ride = await ride_service.request_ride(store, rider, request)
    background_tasks.add_task(publish_ride, "ride:request", ride, DRIVERS_TOPIC)
    return success_response("Ride requested successfully", {"ride": ride}, status_code=201)


@router.get("/available")
async def available_rides(driver: ApprovedDriver, store: Store):
    rides = await ride_service.available_rides(store, driver)
    return success_response("Available rides retrieved successfully", {"rides": rides})


@router.get("/history")
async def ride_history(
    user: CurrentUser,
    store: Store,
    status: RideStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    rides, pagination = await ride_service.ride_history(store, user, status=status, page=page, limit=limit)
    return success_response("Ride history retrieved successfully", {"rides": rides, "pagination": pagination})


@router.get("/current")
async def current_ride(user: CurrentUser, store: Store):
    ride = await ride_service.current_ride(store, user)
    return success_response("Current ride retrieved successfully", {"ride": ride})


@router.patch("/{ride_id}/cancel")
async def cancel_ride(ride_id: str, user: CurrentUser, store: Store, background_tasks: BackgroundTasks,
                      request: CancelRideRequest | None = None):
    reason = request.reason if request else None
    ride = await ride_service.cancel_ride(store, user, ride_id, reason)
    background_tasks.add_task(publish_ride, "ride:cancelled", ride, ride.riderId, ride.driverId)
    return success_response("Ride cancelled successfully", {"ride": ride})


@router.post("/{ride_id}/accept")
async def accept_ride(ride_id: str, driver: ApprovedDriver, store: Store, background_tasks: BackgroundTasks):
    ride = await ride_service.accept_ride(store, driver, ride_id)
    background_tasks.add_task(publish_ride, "ride:accepted", ride, ride.riderId)
    return success_response("Ride accepted successfully", {"ride": ride})


@router.patch("/{ride_id}/status")
async def update_ride_status(ride_id: str, request: RideStatusUpdate, driver: ApprovedDriver, store: Store,
                             background_tasks: BackgroundTasks):
    ride = await ride_service.update_status(store, driver, ride_id, request.status)
    background_tasks.add_task(publish_ride, "ride:status_change", ride, ride.riderId, driver.id)
    return success_response(f"Ride status updated to {request.status}", {"ride": ride})


@router.post("/{ride_id}/rate")
async def rate_ride(ride_id: str, request: RateRideRequest, rider: CurrentRider, store: Store):
    ride = await ride_service.rate_ride(store, rider, ride_id, request.rating, request.feedback)
    return success_response("Ride rated successfully", {"ride": ride})
