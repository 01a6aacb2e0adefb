import logging
import uuid

from config import settings
from errors import Conflict, NotFound, Unauthorized
from models import Driver, parse_account, utcnow
from services.auth_service import hash_password, verify_password
from store import DocumentExists, DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"
UNIQUE_KEYS = "unique_keys"

_CONFLICT_MESSAGES = {
    "email": "Email already in use",
    "phone": "Phone number already in use",
    "license": "License number already registered",
    "plate": "Plate number already registered",
}


def unique_key(kind: str, value: str) -> str:
    value = value.strip()
    if kind == "email":
        value = value.lower()
    return f"{kind}:{value}"


def reserve(store: DocumentStore, owner_id: str, kind: str, value: str) -> str:
    """Claim a unique value for an account, raising Conflict if it is taken"""
    key = unique_key(kind, value)
    try:
        store.create(UNIQUE_KEYS, key, {"ownerId": owner_id, "createdAt": utcnow()})
    except DocumentExists:
        raise Conflict(_CONFLICT_MESSAGES[kind])
    return key


def release(store: DocumentStore, *keys: str) -> None:
    for key in keys:
        store.delete(UNIQUE_KEYS, key)


def reserve_all(store: DocumentStore, owner_id: str, values: dict) -> list:
    """Reserve several unique values; on a conflict the ones already taken are released"""
    reserved = []
    try:
        for kind, value in values.items():
            reserved.append(reserve(store, owner_id, kind, value))
    except Conflict:
        release(store, *reserved)
        raise
    return reserved


async def get_account(store: DocumentStore, user_id: str):
    document = store.get(USERS, user_id)
    if document is None:
        return None
    return parse_account(document)


async def require_account(store: DocumentStore, user_id: str):
    account = await get_account(store, user_id)
    if account is None:
        raise NotFound("User not found")
    return account


async def require_driver(store: DocumentStore, user_id: str) -> Driver:
    account = await get_account(store, user_id)
    if not isinstance(account, Driver):
        raise NotFound("Driver profile not found")
    return account


async def create_account(store: DocumentStore, data: dict, password_hash: str):
    """Save a new rider, admin or driver, reserving its unique fields first.

    ``data`` holds the account fields without id, hash or timestamps; the
    ``role`` key selects the variant.
    """
    user_id = uuid.uuid4().hex
    now = utcnow()
    document = {
        **data,
        "id": user_id,
        "email": data["email"].lower(),
        "passwordHash": password_hash,
        "activeRideId": None,
        "createdAt": now,
        "updatedAt": now,
    }
    account = parse_account(document)

    unique_values = {"email": account.email, "phone": account.phone}
    if isinstance(account, Driver):
        unique_values["license"] = account.licenseNumber
        unique_values["plate"] = account.vehicleInfo.plateNumber
    reserved = reserve_all(store, user_id, unique_values)

    try:
        store.create(USERS, user_id, account.model_dump())
    except Exception:
        release(store, *reserved)
        raise

    logger.info(f"{account.role.capitalize()} account created: {user_id}")
    return account


async def update_profile(store: DocumentStore, account, name=None, email=None, phone=None):
    """Change name, email or phone, moving the uniqueness reservations along"""
    changes = {}
    new_keys, old_keys = [], []
    try:
        if email and unique_key("email", email) != unique_key("email", account.email):
            new_keys.append(reserve(store, account.id, "email", email))
            old_keys.append(unique_key("email", account.email))
            changes["email"] = email.lower()
        if phone and unique_key("phone", phone) != unique_key("phone", account.phone):
            new_keys.append(reserve(store, account.id, "phone", phone))
            old_keys.append(unique_key("phone", account.phone))
            changes["phone"] = phone
    except Conflict:
        release(store, *new_keys)
        raise
    if name:
        changes["name"] = name
    if not changes:
        return account

    changes["updatedAt"] = utcnow()
    document = store.update(USERS, account.id, changes)
    if document is None:
        release(store, *new_keys)
        raise NotFound("User not found")
    release(store, *old_keys)
    logger.info(f"Profile updated: {account.id}")
    return parse_account(document)


async def change_password(store: DocumentStore, account, current_password: str, new_password: str):
    if not verify_password(current_password, account.passwordHash):
        raise Unauthorized("Current password is incorrect")
    store.update(USERS, account.id, {"passwordHash": hash_password(new_password), "updatedAt": utcnow()})
    logger.info(f"Password changed: {account.id}")


async def deactivate(store: DocumentStore, account):
    if account.activeRideId:
        raise Conflict("Finish or cancel your active ride before deactivating")
    document = store.update(USERS, account.id, {"isActive": False, "updatedAt": utcnow()})
    logger.info(f"Account deactivated: {account.id}")
    return parse_account(document)


async def ensure_admin(store: DocumentStore):
    """Create the configured bootstrap admin if it does not exist yet"""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return None
    existing = store.find(USERS, {"email": settings.ADMIN_EMAIL.lower()}, limit=1)
    if existing:
        return parse_account(existing[0])

    admin = await create_account(store, {
        "name": settings.ADMIN_NAME,
        "email": settings.ADMIN_EMAIL,
        "phone": settings.ADMIN_PHONE,
        "role": "admin",
    }, hash_password(settings.ADMIN_PASSWORD))
    logger.info(f"Bootstrap admin created: {admin.id}")
    return admin