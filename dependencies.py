from typing import Annotated, Union

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import Forbidden, Unauthorized
from models import Driver, Role, User
from services.auth_service import decode_access_token, ensure_can_sign_in
from services.user_service import get_account
from store import DocumentStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


async def get_current_user(
    store: Annotated[DocumentStore, Depends(get_store)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Union[User, Driver]:
    """
    Resolves the bearer token to the stored account.
    Raises 401 for a missing or bad token, 403 for blocked or deactivated accounts.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Access denied. No token provided.")

    payload = decode_access_token(credentials.credentials)
    account = await get_account(store, payload["sub"])
    if account is None:
        raise Unauthorized("Invalid token. User not found.")
    ensure_can_sign_in(account)
    return account


def require_roles(*roles: Role):
    """Dependency factory gating a route to the given roles."""

    async def check_role(user: Annotated[Union[User, Driver], Depends(get_current_user)]):
        if user.role not in roles:
            raise Forbidden("Access denied. Insufficient permissions.")
        return user

    return check_role


async def require_approved_driver(
    driver: Annotated[Driver, Depends(require_roles("driver"))],
) -> Driver:
    if driver.approvalStatus != "approved":
        raise Forbidden(f"Driver is {driver.approvalStatus}, not approved")
    return driver


CurrentUser = Annotated[Union[User, Driver], Depends(get_current_user)]
CurrentRider = Annotated[User, Depends(require_roles("rider"))]
CurrentDriver = Annotated[Driver, Depends(require_roles("driver"))]
ApprovedDriver = Annotated[Driver, Depends(require_approved_driver)]
CurrentAdmin = Annotated[User, Depends(require_roles("admin"))]
Store = Annotated[DocumentStore, Depends(get_store)]
