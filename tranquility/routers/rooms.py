from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_db, require_admin
from ..exceptions import ValidationError
from ..pagination import PageParams, paginate
from ..services import inventory
from ..services.booking_lifecycle import available_room_criteria, get_bookable_room, today_utc

router = APIRouter(prefix="/rooms", tags=["rooms"])
admin_router = APIRouter(prefix="/admin/rooms", tags=["admin"])

SORT_COLUMNS = {
    "price": models.RoomType.base_price,
    "name": models.RoomType.name,
    "created_at": models.Room.created_at,
}


def _bookable_rooms(db: Session):
    return (
        db.query(models.Room)
        .join(models.RoomType)
        .filter(
            models.Room.is_deleted.is_(False),
            models.Room.is_active.is_(True),
            models.RoomType.is_deleted.is_(False),
        )
    )


@router.get("/", response_model=schemas.ApiResponse[schemas.RoomPage])
def list_rooms(
    sort_by: Literal["price", "name", "created_at"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    guests: Optional[int] = Query(None, ge=1),
    available: bool = False,
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
):
    """
    List bookable rooms with optional filters.

    Parameters
    ----------
    min_price, max_price : float, optional
        Bounds on the room type's nightly base price.
    guests : int, optional
        Only rooms whose type sleeps at least this many guests.
    available : bool, optional
        If True, only rooms free for the whole ``check_in``..``check_out``
        stay are returned. Both dates are then required.
    """
    query = _bookable_rooms(db)
    if min_price is not None:
        query = query.filter(models.RoomType.base_price >= min_price)
    if max_price is not None:
        query = query.filter(models.RoomType.base_price <= max_price)
    if guests is not None:
        query = query.filter(models.RoomType.max_guests >= guests)
    if available:
        if check_in is None or check_out is None:
            raise ValidationError("check_in and check_out are required when filtering by availability")
        if check_in >= check_out:
            raise ValidationError("Check-out date must be after check-in date")
        query = query.filter(available_room_criteria(check_in, check_out))

    column = SORT_COLUMNS[sort_by]
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), models.Room.id)
    rooms, pagination = paginate(query, page)
    return {"message": "Rooms retrieved successfully", "data": {"rooms": rooms, "pagination": pagination}}


@router.get("/availability", response_model=schemas.ApiResponse[schemas.AvailabilityOut])
def check_availability(
    check_in: date,
    check_out: date,
    guests: int = Query(1, ge=1),
    db: Session = Depends(get_db),
):
    """
    Rooms that can take ``guests`` people for the whole stay.

    A room is free when no PENDING or CONFIRMED booking overlaps the stay
    and none of the nights has been closed from the admin area.
    """
    if check_in >= check_out:
        raise ValidationError("Check-out date must be after check-in date")
    if check_in < today_utc():
        raise ValidationError("Check-in date cannot be in the past")

    rooms = (
        _bookable_rooms(db)
        .filter(
            models.RoomType.max_guests >= guests,
            available_room_criteria(check_in, check_out),
        )
        .order_by(models.RoomType.base_price, models.Room.room_number)
        .all()
    )
    return {
        "message": "Availability retrieved successfully",
        "data": {
            "check_in": check_in,
            "check_out": check_out,
            "guests": guests,
            "available_rooms": rooms,
        },
    }


@router.get("/{room_id}", response_model=schemas.ApiResponse[schemas.RoomOut])
def get_room(room_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a single room by its ID.

    Inactive and deleted rooms are reported as missing.
    """
    return {"message": "Room retrieved successfully", "data": get_bookable_room(db, room_id)}


# ----- Admin -----
@admin_router.get("/", response_model=schemas.ApiResponse[schemas.RoomPage])
def admin_list_rooms(
    search: Optional[str] = None,
    room_type_id: Optional[int] = None,
    floor: Optional[int] = None,
    is_active: Optional[bool] = None,
    include_deleted: bool = False,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    List every room, including inactive ones. *(Admin-only)*

    ``search`` matches the room number or the room type name.
    """
    query = db.query(models.Room).join(models.RoomType)
    if not include_deleted:
        query = query.filter(models.Room.is_deleted.is_(False))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(models.Room.room_number.ilike(pattern), models.RoomType.name.ilike(pattern))
        )
    if room_type_id is not None:
        query = query.filter(models.Room.room_type_id == room_type_id)
    if floor is not None:
        query = query.filter(models.Room.floor == floor)
    if is_active is not None:
        query = query.filter(models.Room.is_active.is_(is_active))

    query = query.order_by(models.Room.room_number)
    rooms, pagination = paginate(query, page)
    return {"message": "Rooms retrieved successfully", "data": {"rooms": rooms, "pagination": pagination}}


@admin_router.post("/", response_model=schemas.ApiResponse[schemas.RoomOut], status_code=201)
def create_room(
    room_in: schemas.RoomCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Create a new room. *(Admin-only)*

    Raises
    ------
    ConflictError
        - 409 if a room with the same number already exists.
    NotFoundError
        - 404 if the room type or one of the amenities does not exist.
    """
    room = inventory.create_room(db, room_in)
    return {"message": "Room created successfully", "data": room}


@admin_router.get("/{room_id}", response_model=schemas.ApiResponse[schemas.RoomOut])
def admin_get_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    room = inventory.get_room(db, room_id, include_deleted=True)
    return {"message": "Room retrieved successfully", "data": room}


@admin_router.patch("/{room_id}", response_model=schemas.ApiResponse[schemas.RoomOut])
def update_room(
    room_id: int,
    room_update: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Update details of an existing room. *(Admin-only)*

    Supplying ``image_urls`` or ``amenity_ids`` replaces that collection.
    """
    room = inventory.update_room(db, room_id, room_update)
    return {"message": "Room updated successfully", "data": room}


@admin_router.delete("/{room_id}", response_model=schemas.MessageResponse)
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Soft-delete a room. *(Admin-only)*

    Refused while the room still has PENDING or CONFIRMED bookings.
    """
    inventory.delete_room(db, room_id)
    return {"message": "Room deleted successfully"}


@admin_router.post(
    "/{room_id}/images", response_model=schemas.ApiResponse[schemas.RoomImageOut], status_code=201
)
def add_room_image(
    room_id: int,
    image_in: schemas.RoomImageCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    image = inventory.add_room_image(db, room_id, image_in)
    return {"message": "Image added successfully", "data": image}


@admin_router.delete("/{room_id}/images/{image_id}", response_model=schemas.MessageResponse)
def delete_room_image(
    room_id: int,
    image_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    inventory.delete_room_image(db, room_id, image_id)
    return {"message": "Image deleted successfully"}


@admin_router.put(
    "/{room_id}/availability", response_model=schemas.ApiResponse[schemas.RoomAvailabilityOut]
)
def set_room_availability(
    room_id: int,
    update: schemas.RoomAvailabilityUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Open or close a room for one night. *(Admin-only)*

    Closed nights block new bookings exactly like an existing stay would.
    """
    entry = inventory.set_room_availability(db, room_id, update)
    return {"message": "Room availability updated successfully", "data": entry}
