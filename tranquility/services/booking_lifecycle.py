"""
Booking lifecycle: availability checks, pricing and status transitions.

Bookings occupy the half-open date range ``[check_in, check_out)``. Only
PENDING and CONFIRMED bookings hold a room; CANCELLED and COMPLETED are
terminal and never block anything.

State machine::

    PENDING   --confirm--> CONFIRMED --complete--> COMPLETED
    PENDING   --cancel---> CANCELLED
    CONFIRMED --cancel---> CANCELLED
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from pybreaker import CircuitBreakerError
from sqlalchemy import and_
from sqlalchemy.orm import Session

from .. import models
from ..circuit_breaker import booking_circuit_breaker
from ..exceptions import ConflictError, NotFoundError, ServiceUnavailableError, ValidationError
from ..models import ACTIVE_BOOKING_STATUSES, BookingStatus

logger = logging.getLogger(__name__)

TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def overlaps(start1, end1, start2, end2) -> bool:
    """
    Check if two date ranges overlap.

    Returns True if the interval [start1, end1) overlaps with [start2, end2).
    Back-to-back stays (one checks out the day the other checks in) do not.
    """
    return start1 < end2 and start2 < end1


def nights_between(check_in: date, check_out: date) -> int:
    nights = (check_out - check_in).days
    if nights < 1:
        raise ValidationError("Check-out date must be after check-in date")
    return nights


def compute_total(base_price, nights: int) -> Decimal:
    return (Decimal(base_price) * nights).quantize(Decimal("0.01"))


def validate_stay(check_in: date, check_out: date, guests: int, earliest_check_in: date | None = None) -> None:
    if check_in >= check_out:
        raise ValidationError("Check-out date must be after check-in date")
    if guests < 1:
        raise ValidationError("At least one guest is required")
    if earliest_check_in is not None and check_in < earliest_check_in:
        raise ValidationError("Check-in date cannot be in the past")


# ----- Availability -----
def active_overlap_criteria(check_in: date, check_out: date):
    return and_(
        models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        models.Booking.check_in < check_out,
        models.Booking.check_out > check_in,
    )


def blocked_date_criteria(check_in: date, check_out: date):
    return and_(
        models.RoomAvailability.is_available.is_(False),
        models.RoomAvailability.date >= check_in,
        models.RoomAvailability.date < check_out,
    )


def available_room_criteria(check_in: date, check_out: date):
    """Filter for rooms with no active booking or blocked date in the range."""
    return and_(
        ~models.Room.bookings.any(active_overlap_criteria(check_in, check_out)),
        ~models.Room.availability.any(blocked_date_criteria(check_in, check_out)),
    )


def find_conflicts(
    db: Session,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: int | None = None,
) -> list[models.Booking]:
    query = db.query(models.Booking).filter(
        models.Booking.room_id == room_id,
        active_overlap_criteria(check_in, check_out),
    )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return query.all()


def blocked_dates(db: Session, room_id: int, check_in: date, check_out: date) -> list[date]:
    rows = (
        db.query(models.RoomAvailability)
        .filter(models.RoomAvailability.room_id == room_id, blocked_date_criteria(check_in, check_out))
        .order_by(models.RoomAvailability.date)
        .all()
    )
    return [row.date for row in rows]


def ensure_available(db: Session, room_id: int, check_in: date, check_out: date) -> None:
    if find_conflicts(db, room_id, check_in, check_out):
        raise ConflictError("Room is not available for the selected dates")
    if blocked_dates(db, room_id, check_in, check_out):
        raise ConflictError("Room is closed on one or more of the selected dates")


def get_bookable_room(db: Session, room_id: int) -> models.Room:
    room = (
        db.query(models.Room)
        .join(models.RoomType)
        .filter(
            models.Room.id == room_id,
            models.Room.is_active.is_(True),
            models.Room.is_deleted.is_(False),
            models.RoomType.is_deleted.is_(False),
        )
        .first()
    )
    if not room:
        raise NotFoundError("Room not found or not available")
    return room


# ----- Creation -----
@booking_circuit_breaker
def _persist_new_booking(db: Session, booking: models.Booking, actor_id: int | None) -> models.Booking:
    try:
        # Lock the room row so concurrent writers for the same room serialize,
        # then repeat the overlap check inside the same transaction. On SQLite
        # the transaction already holds the database write lock (see database.py).
        db.query(models.Room).filter(models.Room.id == booking.room_id).with_for_update().one()
        ensure_available(db, booking.room_id, booking.check_in, booking.check_out)

        db.add(booking)
        db.flush()
        db.add(
            models.BookingStatusLog(
                booking_id=booking.id,
                status=booking.status,
                changed_by_id=actor_id,
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    return booking


def create_booking(
    db: Session,
    *,
    guest: models.User,
    room_id: int,
    check_in: date,
    check_out: date,
    guests: int = 1,
    special_requests: str | None = None,
    earliest_check_in: date | None = None,
    actor: models.User | None = None,
) -> models.Booking:
    """
    Create a PENDING booking for ``guest``.

    Validation and the first availability check happen before any write;
    the authoritative check is repeated inside the write transaction.
    ``earliest_check_in`` rejects stays starting before that date (guest
    bookings pass today's date; back-office entries may omit it).
    """
    validate_stay(check_in, check_out, guests, earliest_check_in)

    room = get_bookable_room(db, room_id)
    room_type = room.room_type
    if guests > room_type.max_guests:
        raise ValidationError(f"Room can only accommodate {room_type.max_guests} guests")

    ensure_available(db, room_id, check_in, check_out)

    nights = nights_between(check_in, check_out)
    booking = models.Booking(
        user_id=guest.id,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        total_amount=compute_total(room_type.base_price, nights),
        special_requests=special_requests,
        status=BookingStatus.PENDING,
    )

    actor = actor or guest
    try:
        booking = _persist_new_booking(db, booking, actor.id)
    except CircuitBreakerError:
        logger.error("Booking write path unavailable, circuit open (room_id=%s)", room_id)
        raise ServiceUnavailableError(
            "Booking service temporarily unavailable. Please try again later."
        )

    logger.info(
        "Created booking id=%s room_id=%s user_id=%s %s..%s nights=%s total=%s",
        booking.id, room_id, guest.id, check_in, check_out, nights, booking.total_amount,
    )
    return booking


# ----- Transitions -----
def validate_transition(current: BookingStatus, new: BookingStatus) -> None:
    if current in TERMINAL_STATUSES:
        raise ConflictError(f"Booking is already {current.value.lower()} and cannot be changed")
    if new not in TRANSITIONS[current]:
        raise ValidationError(f"Cannot change booking status from {current.value} to {new.value}")


def _lock_booking(db: Session, booking_id: int) -> models.Booking | None:
    return db.query(models.Booking).filter(models.Booking.id == booking_id).with_for_update().first()


def _apply_transition(
    db: Session,
    booking: models.Booking,
    new_status: BookingStatus,
    reason: str | None,
    actor: models.User | None,
) -> models.Booking:
    previous = booking.status
    booking.status = new_status
    if reason is not None:
        booking.status_reason = reason
    db.add(
        models.BookingStatusLog(
            booking_id=booking.id,
            status=new_status,
            reason=reason,
            changed_by_id=actor.id if actor else None,
        )
    )
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking id=%s %s -> %s by user_id=%s",
        booking.id, previous.value, new_status.value, actor.id if actor else None,
    )
    return booking


def update_status(
    db: Session,
    booking_id: int,
    new_status: BookingStatus,
    *,
    reason: str | None = None,
    check_in_time: datetime | None = None,
    check_out_time: datetime | None = None,
    actor: models.User | None = None,
) -> models.Booking:
    booking = _lock_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")

    validate_transition(booking.status, new_status)

    if check_in_time is not None and new_status != BookingStatus.CONFIRMED:
        raise ValidationError("check_in_time can only be set when confirming a booking")
    if check_out_time is not None and new_status != BookingStatus.COMPLETED:
        raise ValidationError("check_out_time can only be set when completing a booking")

    # Arrival and departure default to the moment of the transition
    if new_status == BookingStatus.CONFIRMED:
        booking.check_in_time = as_naive_utc(check_in_time) if check_in_time else models.utcnow()
    if new_status == BookingStatus.COMPLETED:
        check_out_time = as_naive_utc(check_out_time) if check_out_time else models.utcnow()
        if booking.check_in_time is not None and check_out_time < booking.check_in_time:
            raise ValidationError("check_out_time cannot be before check_in_time")
        booking.check_out_time = check_out_time

    return _apply_transition(db, booking, new_status, reason, actor)


def cancel_booking(
    db: Session,
    booking_id: int,
    *,
    actor: models.User,
    reason: str | None = None,
) -> models.Booking:
    """
    Cancel a booking on behalf of ``actor``.

    Guests may only cancel their own bookings; anyone else's booking is
    reported as missing. Only PENDING and CONFIRMED bookings can be cancelled.
    """
    booking = _lock_booking(db, booking_id)
    if not booking or (actor.role == models.Role.GUEST and booking.user_id != actor.id):
        raise NotFoundError("Booking not found")

    if booking.status == BookingStatus.CANCELLED:
        raise ConflictError("Booking is already cancelled")
    if booking.status == BookingStatus.COMPLETED:
        raise ConflictError("Cannot cancel completed booking")

    return _apply_transition(db, booking, BookingStatus.CANCELLED, reason, actor)


# ----- Queries used by the inventory guards -----
def room_has_active_bookings(db: Session, room_id: int) -> bool:
    return (
        db.query(models.Booking.id)
        .filter(
            models.Booking.room_id == room_id,
            models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        .first()
        is not None
    )


def room_type_has_active_bookings(db: Session, room_type_id: int) -> bool:
    return (
        db.query(models.Booking.id)
        .join(models.Room)
        .filter(
            models.Room.room_type_id == room_type_id,
            models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        .first()
        is not None
    )
