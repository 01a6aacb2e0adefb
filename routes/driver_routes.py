from datetime import datetime
from typing import Literal

from fastapi import APIRouter

from dependencies import CurrentDriver, Store
from models import AvailabilityRequest, Coordinates, VehicleInfo
from responses import success_response
from services import driver_service

router = APIRouter(prefix="/api/v1/drivers")


@router.patch("/availability")
async def set_availability(request: AvailabilityRequest, driver: CurrentDriver, store: Store):
    updated = await driver_service.set_availability(store, driver, request.status, request.location)
    return success_response("Availability status updated successfully", {"driver": updated.public()})


@router.patch("/location")
async def update_location(request: Coordinates, driver: CurrentDriver, store: Store):
    updated = await driver_service.update_location(store, driver, request)
    return success_response("Location updated successfully", {"location": updated.currentLocation})


@router.get("/earnings")
async def get_earnings(
    driver: CurrentDriver,
    store: Store,
    period: Literal["today", "week", "month"] | None = None,
    startDate: datetime | None = None,
    endDate: datetime | None = None,
):
    result = await driver_service.earnings(store, driver, period=period, start_date=startDate, end_date=endDate)
    return success_response("Earnings retrieved successfully", result)


@router.put("/vehicle")
async def update_vehicle(request: VehicleInfo, driver: CurrentDriver, store: Store):
    updated = await driver_service.update_vehicle(store, driver, request)
    return success_response("Vehicle information updated successfully", {"vehicleInfo": updated.vehicleInfo})
