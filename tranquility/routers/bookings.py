from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_current_user, get_db, is_staff, require_staff
from ..exceptions import NotFoundError
from ..pagination import PageParams, paginate
from ..services import booking_lifecycle

router = APIRouter(prefix="/bookings", tags=["bookings"])
admin_router = APIRouter(prefix="/admin/bookings", tags=["admin"])


class BookingFilters:
    """Query-string filters shared by the booking list endpoints."""

    def __init__(
        self,
        status: Optional[models.BookingStatus] = None,
        room_id: Optional[int] = None,
        user_id: Optional[int] = None,
        check_in: Optional[date] = None,
        check_out: Optional[date] = None,
    ):
        self.status = status
        self.room_id = room_id
        self.user_id = user_id
        self.check_in = check_in
        self.check_out = check_out

    def apply(self, query):
        if self.status is not None:
            query = query.filter(models.Booking.status == self.status)
        if self.room_id is not None:
            query = query.filter(models.Booking.room_id == self.room_id)
        if self.user_id is not None:
            query = query.filter(models.Booking.user_id == self.user_id)
        if self.check_in is not None:
            query = query.filter(models.Booking.check_in >= self.check_in)
        if self.check_out is not None:
            query = query.filter(models.Booking.check_out <= self.check_out)
        return query


def _booking_page(db: Session, filters: BookingFilters, page: PageParams, owner_id: int | None = None):
    query = db.query(models.Booking)
    if owner_id is not None:
        query = query.filter(models.Booking.user_id == owner_id)
    query = filters.apply(query).order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    bookings, pagination = paginate(query, page)
    return {"bookings": bookings, "pagination": pagination}


def _visible_booking(db: Session, booking_id: int, user: models.User) -> models.Booking:
    booking = db.get(models.Booking, booking_id)
    if not booking or (not is_staff(user) and booking.user_id != user.id):
        raise NotFoundError("Booking not found")
    return booking


@router.post("/", response_model=schemas.ApiResponse[schemas.BookingOut], status_code=201)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Book a room for the current user.

    The booking starts out PENDING and is priced at the room type's base
    price times the number of nights.

    Raises
    ------
    ValidationError
        - 400 for an empty or past stay, or too many guests for the room.
    NotFoundError
        - 404 if the room does not exist or is not bookable.
    ConflictError
        - 409 if the room is taken or closed for any night of the stay.
    ServiceUnavailableError
        - 503 while the booking circuit breaker is open.
    """
    booking = booking_lifecycle.create_booking(
        db,
        guest=current_user,
        room_id=booking_in.room_id,
        check_in=booking_in.check_in,
        check_out=booking_in.check_out,
        guests=booking_in.guests,
        special_requests=booking_in.special_requests,
        earliest_check_in=booking_lifecycle.today_utc(),
    )
    return {"message": "Booking created successfully", "data": booking}


@router.get("/", response_model=schemas.ApiResponse[schemas.BookingPage])
def list_bookings(
    filters: BookingFilters = Depends(),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List bookings for the current user or all bookings.

    - Staff and admins see **all** bookings.
    - Guests see **only their own** bookings.
    """
    owner_id = None if is_staff(current_user) else current_user.id
    data = _booking_page(db, filters, page, owner_id)
    return {"message": "Bookings retrieved successfully", "data": data}


@router.get("/{booking_id}", response_model=schemas.ApiResponse[schemas.BookingOut])
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    booking = _visible_booking(db, booking_id, current_user)
    return {"message": "Booking retrieved successfully", "data": booking}


@router.delete("/{booking_id}", response_model=schemas.ApiResponse[schemas.BookingOut])
def cancel_booking(
    booking_id: int,
    reason: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Cancel a booking.

    Guests can cancel their own PENDING or CONFIRMED bookings; staff and
    admins can cancel any of them. The booking row is kept as CANCELLED.
    """
    booking = booking_lifecycle.cancel_booking(db, booking_id, actor=current_user, reason=reason)
    return {"message": "Booking cancelled successfully", "data": booking}


# ----- Back office -----
@admin_router.get("/", response_model=schemas.ApiResponse[schemas.BookingPage])
def admin_list_bookings(
    filters: BookingFilters = Depends(),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    data = _booking_page(db, filters, page)
    return {"message": "Bookings retrieved successfully", "data": data}


@admin_router.post("/", response_model=schemas.ApiResponse[schemas.BookingOut], status_code=201)
def admin_create_booking(
    booking_in: schemas.AdminBookingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_staff),
):
    """
    Book a room on behalf of a guest. *(Staff or Admin)*

    Same rules as a guest booking, except that stays may start in the past
    so walk-ins and late entries can be recorded.
    """
    guest = db.get(models.User, booking_in.user_id)
    if not guest or guest.is_deleted:
        raise NotFoundError("User not found")

    booking = booking_lifecycle.create_booking(
        db,
        guest=guest,
        room_id=booking_in.room_id,
        check_in=booking_in.check_in,
        check_out=booking_in.check_out,
        guests=booking_in.guests,
        special_requests=booking_in.special_requests,
        actor=current_user,
    )
    return {"message": "Booking created successfully", "data": booking}


@admin_router.patch("/{booking_id}/status", response_model=schemas.ApiResponse[schemas.BookingOut])
def update_booking_status(
    booking_id: int,
    status_update: schemas.BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_staff),
):
    """
    Move a booking through its lifecycle. *(Staff or Admin)*

    Allowed moves are PENDING to CONFIRMED or CANCELLED and CONFIRMED to
    COMPLETED or CANCELLED. ``check_in_time`` may accompany a confirmation
    and ``check_out_time`` a completion.

    Raises
    ------
    NotFoundError
        - 404 if the booking does not exist.
    ValidationError
        - 400 for a move the lifecycle does not allow.
    ConflictError
        - 409 if the booking is already COMPLETED or CANCELLED.
    """
    booking = booking_lifecycle.update_status(
        db,
        booking_id,
        status_update.status,
        reason=status_update.reason,
        check_in_time=status_update.check_in_time,
        check_out_time=status_update.check_out_time,
        actor=current_user,
    )
    return {"message": "Booking status updated successfully", "data": booking}


@admin_router.get(
    "/{booking_id}/history", response_model=schemas.ApiResponse[List[schemas.BookingStatusLogOut]]
)
def booking_history(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_staff),
):
    """Every status the booking has been through, oldest first."""
    booking = db.get(models.Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    logs = (
        db.query(models.BookingStatusLog)
        .filter(models.BookingStatusLog.booking_id == booking_id)
        .order_by(models.BookingStatusLog.created_at, models.BookingStatusLog.id)
        .all()
    )
    return {"message": "Booking history retrieved successfully", "data": logs}
