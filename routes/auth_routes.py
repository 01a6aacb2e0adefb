from fastapi import APIRouter

from dependencies import CurrentUser, Store
from models import (
    DriverRegisterRequest,
    LoginRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RegisterRequest,
)
from responses import success_response
from services.auth_service import authenticate, create_access_token, hash_password
from services.user_service import change_password, create_account, deactivate, update_profile

router = APIRouter(prefix="/api/v1/auth")


async def _register(store, data: dict, password: str):
    account = await create_account(store, data, hash_password(password))
    token = create_access_token(account.id, account.email, account.role)
    return account, token


@router.post("/register")
async def register(request: RegisterRequest, store: Store):
    data = request.model_dump(exclude={"password"})
    data["role"] = "rider"
    user, token = await _register(store, data, request.password)
    return success_response("User registered successfully", {"user": user.public(), "token": token}, status_code=201)


@router.post("/register/driver")
async def register_driver(request: DriverRegisterRequest, store: Store):
    data = request.model_dump(exclude={"password"})
    data["role"] = "driver"
    driver, token = await _register(store, data, request.password)
    return success_response(
        "Driver registered successfully. Pending approval.",
        {"driver": driver.public(), "token": token},
        status_code=201,
    )


@router.post("/login")
async def login(request: LoginRequest, store: Store):
    user, token = await authenticate(store, request.email, request.password)
    return success_response("Login successful", {"user": user.public(), "token": token})


@router.get("/profile")
async def get_profile(user: CurrentUser):
    return success_response("Profile retrieved successfully", {"user": user.public()})


@router.patch("/profile")
async def patch_profile(request: ProfileUpdateRequest, user: CurrentUser, store: Store):
    updated = await update_profile(store, user, name=request.name, email=request.email, phone=request.phone)
    return success_response("Profile updated successfully", {"user": updated.public()})


@router.patch("/password")
async def patch_password(request: PasswordChangeRequest, user: CurrentUser, store: Store):
    await change_password(store, user, request.currentPassword, request.newPassword)
    return success_response("Password changed successfully")


@router.post("/deactivate")
async def deactivate_account(user: CurrentUser, store: Store):
    await deactivate(store, user)
    return success_response("Account deactivated successfully")
