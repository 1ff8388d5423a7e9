from datetime import date, datetime

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_db, require_admin
from ..services.booking_lifecycle import today_utc

router = APIRouter(prefix="/admin/dashboard", tags=["admin"])

REVENUE_STATUSES = (models.BookingStatus.CONFIRMED, models.BookingStatus.COMPLETED)
REVENUE_MONTHS = 6


def month_start(today: date, months_back: int = 0) -> datetime:
    """Midnight on the first day of the month ``months_back`` before ``today``."""
    index = today.year * 12 + today.month - 1 - months_back
    return datetime(index // 12, index % 12 + 1, 1)


def revenue_between(db: Session, start: datetime, end: datetime | None = None):
    """Return ``(revenue, bookings)`` for paid bookings created in ``[start, end)``."""
    query = db.query(
        func.coalesce(func.sum(models.Booking.total_amount), 0),
        func.count(models.Booking.id),
    ).filter(
        models.Booking.status.in_(REVENUE_STATUSES),
        models.Booking.created_at >= start,
    )
    if end is not None:
        query = query.filter(models.Booking.created_at < end)
    revenue, count = query.one()
    return float(revenue), count


@router.get("/", response_model=schemas.ApiResponse[schemas.DashboardStats])
def get_dashboard(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Headline numbers for the admin dashboard. *(Admin-only)*

    Active guests are CONFIRMED stays covering today. Revenue counts
    CONFIRMED and COMPLETED bookings by the month they were made.
    """
    today = today_utc()

    total_bookings = (
        db.query(models.Booking)
        .filter(models.Booking.created_at >= datetime(today.year, 1, 1))
        .count()
    )
    active_guests = (
        db.query(models.Booking)
        .filter(
            models.Booking.status == models.BookingStatus.CONFIRMED,
            models.Booking.check_in <= today,
            models.Booking.check_out > today,
        )
        .count()
    )
    total_rooms = (
        db.query(models.Room)
        .filter(models.Room.is_active.is_(True), models.Room.is_deleted.is_(False))
        .count()
    )
    monthly_revenue, _count = revenue_between(db, month_start(today))
    recent_bookings = (
        db.query(models.Booking)
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
        .limit(10)
        .all()
    )

    revenue_data = []
    for months_back in reversed(range(REVENUE_MONTHS)):
        start = month_start(today, months_back)
        end = month_start(today, months_back - 1)
        revenue, count = revenue_between(db, start, end)
        revenue_data.append({"month": start.strftime("%b"), "revenue": revenue, "bookings": count})

    stats = {
        "total_bookings": total_bookings,
        "active_guests": active_guests,
        "available_rooms": max(total_rooms - active_guests, 0),
        "monthly_revenue": monthly_revenue,
        "occupancy_rate": round(active_guests / total_rooms * 100) if total_rooms else 0,
        "recent_bookings": recent_bookings,
        "revenue_data": revenue_data,
    }
    return {"message": "Dashboard data retrieved successfully", "data": stats}
