from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, field_validator

Role = Literal["admin", "rider", "driver"]
ApprovalStatus = Literal["pending", "approved", "suspended"]
DriverStatus = Literal["online", "offline", "busy"]
RideType = Literal["standard", "premium", "shared"]
RideStatus = Literal["requested", "accepted", "picked_up", "in_transit", "completed", "cancelled"]

ACTIVE_RIDE_STATUSES = ("requested", "accepted", "picked_up", "in_transit")

PHONE_PATTERN = r"^[+]?[1-9][\d\s\-()]{7,15}$"


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Location(Coordinates):
    address: str = Field(..., min_length=1)

    @field_validator("address")
    @classmethod
    def strip_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Address is required")
        return value


class VehicleInfo(BaseModel):
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int = Field(..., ge=1900, le=datetime.now().year + 1)
    plateNumber: str = Field(..., min_length=1)
    color: str = Field(..., min_length=1)


class User(BaseModel):
    """Stored account. Riders and admins share this shape."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    phone: str
    passwordHash: str
    role: Literal["admin", "rider"] = "rider"
    isActive: bool = True
    isBlocked: bool = False
    blockReason: str | None = None
    activeRideId: str | None = None
    createdAt: datetime
    updatedAt: datetime

    def public(self) -> dict:
        return self.model_dump(mode="json", exclude={"passwordHash"})


class Driver(User):
    role: Literal["driver"] = "driver"
    licenseNumber: str
    vehicleInfo: VehicleInfo
    approvalStatus: ApprovalStatus = "pending"
    driverStatus: DriverStatus = "offline"
    currentLocation: Coordinates | None = None
    rating: float = 5.0
    ratingCount: int = 0
    totalRides: int = 0
    totalEarnings: float = 0.0
    approvedAt: datetime | None = None
    approvedBy: str | None = None
    suspensionReason: str | None = None


Account = Annotated[Union[User, Driver], Field(discriminator="role")]
account_adapter = TypeAdapter(Account)


def parse_account(document: dict) -> Union[User, Driver]:
    return account_adapter.validate_python(document)


class Ride(BaseModel):
    id: str
    riderId: str
    driverId: str | None = None
    pickupLocation: Location
    destination: Location
    rideType: RideType = "standard"
    status: RideStatus = "requested"
    requestedAt: datetime
    acceptedAt: datetime | None = None
    pickedUpAt: datetime | None = None
    inTransitAt: datetime | None = None
    completedAt: datetime | None = None
    cancelledAt: datetime | None = None
    estimatedFare: float = Field(..., ge=0)
    actualFare: float | None = None
    distance: float = Field(..., ge=0)
    duration: int | None = None
    rating: int | None = None
    feedback: str | None = None
    ratedAt: datetime | None = None
    cancellationReason: str | None = None
    cancelledBy: Literal["rider", "driver"] | None = None
    rejectionCount: int = 0
    createdAt: datetime
    updatedAt: datetime


# Request bodies

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: str = Field(..., pattern=PHONE_PATTERN)


class DriverRegisterRequest(RegisterRequest):
    licenseNumber: str = Field(..., min_length=1)
    vehicleInfo: VehicleInfo


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(None, pattern=PHONE_PATTERN)


class PasswordChangeRequest(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)


class RideRequest(BaseModel):
    pickupLocation: Location
    destination: Location
    rideType: RideType = "standard"


class CancelRideRequest(BaseModel):
    reason: str | None = Field(None, max_length=200)


class RideStatusUpdate(BaseModel):
    status: Literal["requested", "accepted", "picked_up", "in_transit", "completed", "cancelled", "rejected"]


class RateRideRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: str | None = Field(None, max_length=500)


class AvailabilityRequest(BaseModel):
    status: Literal["online", "offline"]
    location: Coordinates | None = None


class BlockRequest(BaseModel):
    reason: str | None = Field(None, max_length=200)


class SuspendRequest(BaseModel):
    reason: str | None = Field(None, max_length=200)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
