from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer

from .models import BookingStatus, Role

T = TypeVar("T")

# Prices are stored as Decimal but travel as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ----- Envelope -----
class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


# ----- Users -----
class UserBrief(ORMModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None


class UserOut(UserBrief):
    role: Role
    is_deleted: bool
    created_at: datetime


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)


class AdminUserCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    phone: Optional[str] = Field(default=None, max_length=30)
    role: Role = Role.STAFF


class AdminUserUpdate(ProfileUpdate):
    role: Optional[Role] = None
    is_deleted: Optional[bool] = None


class UserPage(BaseModel):
    users: List[UserOut]
    pagination: Pagination


# ----- Auth -----
class SignupRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    phone: Optional[str] = Field(default=None, max_length=30)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthPayload(BaseModel):
    user: UserOut
    token: str
    redirect_url: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ForgotPasswordOut(BaseModel):
    session_id: str


class ResetPasswordRequest(BaseModel):
    otp: str = Field(min_length=6, max_length=6)
    new_password: str = Field(min_length=8)


class TokenData(BaseModel):
    user_id: Optional[int] = None
    email: Optional[str] = None
    role: Optional[Role] = None


# ----- Room types -----
class RoomTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    base_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    max_guests: int = Field(gt=0)
    image_url: Optional[str] = None


class RoomTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    max_guests: Optional[int] = Field(default=None, gt=0)
    image_url: Optional[str] = None


class RoomTypeBrief(ORMModel):
    id: int
    name: str
    base_price: Money


class RoomTypeOut(RoomTypeBrief):
    description: Optional[str] = None
    max_guests: int
    image_url: Optional[str] = None


class RoomTypeDetail(RoomTypeOut):
    room_count: int = 0


# ----- Amenities -----
class AmenityCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    icon: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


class AmenityUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class AmenityOut(ORMModel):
    id: int
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None
    is_active: bool


# ----- Rooms -----
class RoomImageCreate(BaseModel):
    image_url: str = Field(min_length=1)
    caption: Optional[str] = None


class RoomImageOut(ORMModel):
    id: int
    image_url: str
    caption: Optional[str] = None


class RoomAmenityOut(ORMModel):
    id: int
    amenity: AmenityOut


class RoomCreate(BaseModel):
    room_number: str = Field(min_length=1, max_length=10)
    room_type_id: int = Field(gt=0)
    floor: Optional[int] = Field(default=None, ge=1, le=100)
    image_urls: List[str] = Field(default_factory=list)
    amenity_ids: List[int] = Field(default_factory=list)
    is_active: bool = True


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(default=None, min_length=1, max_length=10)
    room_type_id: Optional[int] = Field(default=None, gt=0)
    floor: Optional[int] = Field(default=None, ge=1, le=100)
    is_active: Optional[bool] = None
    # None leaves images/amenities untouched, a list replaces them
    image_urls: Optional[List[str]] = None
    amenity_ids: Optional[List[int]] = None


class RoomOut(ORMModel):
    id: int
    room_number: str
    floor: Optional[int] = None
    is_active: bool
    is_deleted: bool
    created_at: datetime
    updated_at: datetime
    room_type: RoomTypeOut
    amenities: List[RoomAmenityOut] = []
    images: List[RoomImageOut] = []


class RoomPage(BaseModel):
    rooms: List[RoomOut]
    pagination: Pagination


class RoomAvailabilityUpdate(BaseModel):
    date: date
    is_available: bool
    reason: Optional[str] = None


class RoomAvailabilityOut(ORMModel):
    id: int
    room_id: int
    date: date
    is_available: bool
    reason: Optional[str] = None


class AvailabilityOut(BaseModel):
    check_in: date
    check_out: date
    guests: int
    available_rooms: List[RoomOut]


# ----- Bookings -----
class BookingCreate(BaseModel):
    room_id: int = Field(gt=0)
    check_in: date
    check_out: date
    guests: int = Field(default=1, ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=1000)


class AdminBookingCreate(BookingCreate):
    user_id: int = Field(gt=0)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(default=None, max_length=500)
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None


class BookingRoomOut(ORMModel):
    id: int
    room_number: str
    room_type: RoomTypeBrief


class BookingOut(ORMModel):
    id: int
    user_id: int
    room_id: int
    check_in: date
    check_out: date
    guests: int
    total_amount: Money
    status: BookingStatus
    special_requests: Optional[str] = None
    status_reason: Optional[str] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    user: UserBrief
    room: BookingRoomOut


class BookingPage(BaseModel):
    bookings: List[BookingOut]
    pagination: Pagination


class BookingStatusLogOut(ORMModel):
    id: int
    status: BookingStatus
    reason: Optional[str] = None
    changed_by_id: Optional[int] = None
    created_at: datetime


# ----- Dashboard -----
class RevenuePoint(BaseModel):
    month: str
    revenue: float
    bookings: int


class DashboardStats(BaseModel):
    total_bookings: int
    active_guests: int
    available_rooms: int
    monthly_revenue: float
    occupancy_rate: int
    recent_bookings: List[BookingOut]
    revenue_data: List[RevenuePoint]
