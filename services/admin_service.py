import logging
from datetime import datetime

from errors import Conflict, NotFound, ValidationFailed
from models import ACTIVE_RIDE_STATUSES, Driver, Ride, parse_account, utcnow
from services.query_utils import paginate, within
from services.ride_service import RIDES
from services.user_service import USERS, get_account, require_account, require_driver
from store import DocumentStore

logger = logging.getLogger(__name__)

ROLES = ("admin", "rider", "driver")
RIDE_STATUSES = ("requested", "accepted", "picked_up", "in_transit", "completed", "cancelled")
APPROVAL_STATUSES = ("pending", "approved", "suspended")

DRIVER_MID_RIDE = "Driver has an active ride; wait until it is completed or cancelled"


def _newest_first(documents):
    return sorted(documents, key=lambda document: document["createdAt"], reverse=True)


async def list_users(store: DocumentStore, role: str | None = None, search: str | None = None,
                     page: int = 1, limit: int = 10):
    documents = store.find(USERS, {"role": role} if role else None)
    if search:
        needle = search.lower()
        documents = [
            document for document in documents
            if any(needle in str(document.get(field) or "").lower() for field in ("name", "email", "phone"))
        ]
    accounts = [parse_account(document).public() for document in _newest_first(documents)]
    return paginate(accounts, page, limit, "totalUsers")


async def get_user(store: DocumentStore, user_id: str):
    return await require_account(store, user_id)


async def list_drivers(store: DocumentStore, approval_status: str | None = None, driver_status: str | None = None,
                       page: int = 1, limit: int = 10):
    filters = {"role": "driver"}
    if approval_status:
        filters["approvalStatus"] = approval_status
    if driver_status:
        filters["driverStatus"] = driver_status
    drivers = [parse_account(document).public() for document in _newest_first(store.find(USERS, filters))]
    return paginate(drivers, page, limit, "totalDrivers")


async def list_rides(store: DocumentStore, status: str | None = None, start_date: datetime | None = None,
                     end_date: datetime | None = None, page: int = 1, limit: int = 10):
    documents = store.find(RIDES, {"status": status} if status else None)
    if start_date is not None or end_date is not None:
        documents = [document for document in documents if within(document.get("createdAt"), start_date, end_date)]
    rides = [Ride(**document) for document in _newest_first(documents)]
    return paginate(rides, page, limit, "totalRides")


async def get_ride(store: DocumentStore, ride_id: str) -> dict:
    """A ride with the public details of its rider and driver embedded"""
    document = store.get(RIDES, ride_id)
    if document is None:
        raise NotFound("Ride not found")
    ride = Ride(**document).model_dump(mode="json")

    for field, key in (("riderId", "rider"), ("driverId", "driver")):
        account = await get_account(store, ride[field]) if ride[field] else None
        ride[key] = account.public() if account else None
    return ride


async def set_blocked(store: DocumentStore, admin, user_id: str, blocked: bool, reason: str | None = None):
    """Block or unblock an account. Blocking a driver also suspends it and takes it offline."""
    if blocked and user_id == admin.id:
        raise ValidationFailed("Admins cannot block themselves")
    account = await require_account(store, user_id)

    now = utcnow()
    expected = {}
    if blocked:
        changes = {"isBlocked": True, "blockReason": reason or "Account blocked by admin", "updatedAt": now}
        if isinstance(account, Driver):
            changes.update({"approvalStatus": "suspended", "driverStatus": "offline", "suspensionReason": changes["blockReason"]})
            expected = {"activeRideId": None}
    else:
        changes = {"isBlocked": False, "blockReason": None, "updatedAt": now}

    document = store.update_if(USERS, user_id, expected, changes)
    if document is None:
        await require_account(store, user_id)
        raise Conflict(DRIVER_MID_RIDE)
    logger.info(f"User {user_id} {'blocked' if blocked else 'unblocked'} by admin {admin.id}")
    return parse_account(document)


async def approve_driver(store: DocumentStore, admin, driver_id: str) -> Driver:
    await require_driver(store, driver_id)
    now = utcnow()
    document = store.update(USERS, driver_id, {
        "approvalStatus": "approved",
        "approvedAt": now,
        "approvedBy": admin.id,
        "suspensionReason": None,
        "updatedAt": now,
    })
    logger.info(f"Driver {driver_id} approved by admin {admin.id}")
    return parse_account(document)


async def suspend_driver(store: DocumentStore, admin, driver_id: str, reason: str | None = None) -> Driver:
    await require_driver(store, driver_id)
    document = store.update_if(USERS, driver_id, {"activeRideId": None}, {
        "approvalStatus": "suspended",
        "driverStatus": "offline",
        "suspensionReason": reason or "Suspended by admin",
        "updatedAt": utcnow(),
    })
    if document is None:
        await require_driver(store, driver_id)
        raise Conflict(DRIVER_MID_RIDE)
    logger.info(f"Driver {driver_id} suspended by admin {admin.id}")
    return parse_account(document)


async def dashboard_stats(store: DocumentStore) -> dict:
    users_by_role = {role: store.count(USERS, {"role": role}) for role in ROLES}
    rides_by_status = {status: store.count(RIDES, {"status": status}) for status in RIDE_STATUSES}
    drivers_by_approval = {
        status: store.count(USERS, {"role": "driver", "approvalStatus": status}) for status in APPROVAL_STATUSES
    }

    completed = store.find(RIDES, {"status": "completed"})
    fares = [document.get("actualFare") or document.get("estimatedFare") or 0 for document in completed]
    total_revenue = round(sum(fares), 2)
    total_rides = sum(rides_by_status.values())
    completed_rides = rides_by_status["completed"]

    return {
        "totalUsers": sum(users_by_role.values()),
        "usersByRole": users_by_role,
        "totalDrivers": users_by_role["driver"],
        "driversByApprovalStatus": drivers_by_approval,
        "pendingDriverApprovals": drivers_by_approval["pending"],
        "totalRides": total_rides,
        "ridesByStatus": rides_by_status,
        "activeRides": sum(rides_by_status[status] for status in ACTIVE_RIDE_STATUSES),
        "completedRides": completed_rides,
        "totalRevenue": total_revenue,
        "averageFare": round(total_revenue / len(fares), 2) if fares else 0,
        "rideCompletionRate": round(completed_rides / total_rides * 100, 2) if total_rides else 0,
    }
