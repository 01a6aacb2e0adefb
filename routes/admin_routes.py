from datetime import datetime

from fastapi import APIRouter, Query

from dependencies import CurrentAdmin, Store
from models import ApprovalStatus, BlockRequest, DriverStatus, RideStatus, Role, SuspendRequest
from responses import success_response
from services import admin_service

router = APIRouter(prefix="/api/v1/admin")


# User management
@router.get("/users")
async def list_users(
    admin: CurrentAdmin,
    store: Store,
    role: Role | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    users, pagination = await admin_service.list_users(store, role=role, search=search, page=page, limit=limit)
    return success_response("Users retrieved successfully", {"users": users, "pagination": pagination})


@router.get("/users/{user_id}")
async def get_user(user_id: str, admin: CurrentAdmin, store: Store):
    user = await admin_service.get_user(store, user_id)
    return success_response("User retrieved successfully", {"user": user.public()})


@router.patch("/users/{user_id}/block")
async def block_user(user_id: str, admin: CurrentAdmin, store: Store, request: BlockRequest | None = None):
    reason = request.reason if request else None
    user = await admin_service.set_blocked(store, admin, user_id, True, reason)
    return success_response("User blocked successfully", {"user": user.public()})


@router.patch("/users/{user_id}/unblock")
async def unblock_user(user_id: str, admin: CurrentAdmin, store: Store):
    user = await admin_service.set_blocked(store, admin, user_id, False)
    return success_response("User unblocked successfully", {"user": user.public()})


# Driver management
@router.get("/drivers")
async def list_drivers(
    admin: CurrentAdmin,
    store: Store,
    approvalStatus: ApprovalStatus | None = None,
    status: DriverStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    drivers, pagination = await admin_service.list_drivers(
        store, approval_status=approvalStatus, driver_status=status, page=page, limit=limit,
    )
    return success_response("Drivers retrieved successfully", {"drivers": drivers, "pagination": pagination})


@router.patch("/drivers/{driver_id}/approve")
async def approve_driver(driver_id: str, admin: CurrentAdmin, store: Store):
    driver = await admin_service.approve_driver(store, admin, driver_id)
    return success_response("Driver approved successfully", {"driver": driver.public()})


@router.patch("/drivers/{driver_id}/suspend")
async def suspend_driver(driver_id: str, admin: CurrentAdmin, store: Store, request: SuspendRequest | None = None):
    reason = request.reason if request else None
    driver = await admin_service.suspend_driver(store, admin, driver_id, reason)
    return success_response("Driver suspended successfully", {"driver": driver.public()})


# Ride management
@router.get("/rides")
async def list_rides(
    admin: CurrentAdmin,
    store: Store,
    status: RideStatus | None = None,
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    rides, pagination = await admin_service.list_rides(
        store, status=status, start_date=startDate, end_date=endDate, page=page, limit=limit,
    )
    return success_response("Rides retrieved successfully", {"rides": rides, "pagination": pagination})


@router.get("/rides/{ride_id}")
async def get_ride(ride_id: str, admin: CurrentAdmin, store: Store):
    ride = await admin_service.get_ride(store, ride_id)
    return success_response("Ride retrieved successfully", {"ride": ride})


# Dashboard
@router.get("/dashboard/stats")
async def dashboard_stats(admin: CurrentAdmin, store: Store):
    stats = await admin_service.dashboard_stats(store)
    return success_response("Dashboard statistics retrieved successfully", {"stats": stats})
