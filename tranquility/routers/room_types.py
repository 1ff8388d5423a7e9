from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_db, require_admin
from ..services import inventory

router = APIRouter(prefix="/room-types", tags=["room-types"])
admin_router = APIRouter(prefix="/admin/room-types", tags=["admin"])


def _active_room_types(db: Session):
    return (
        db.query(models.RoomType)
        .filter(models.RoomType.is_deleted.is_(False))
        .order_by(models.RoomType.base_price, models.RoomType.name)
        .all()
    )


def _with_room_count(db: Session, room_type: models.RoomType) -> schemas.RoomTypeDetail:
    detail = schemas.RoomTypeDetail.model_validate(room_type)
    detail.room_count = inventory.count_rooms(db, room_type.id)
    return detail


@router.get("/", response_model=schemas.ApiResponse[List[schemas.RoomTypeOut]])
def list_room_types(db: Session = Depends(get_db)):
    return {"message": "Room types retrieved successfully", "data": _active_room_types(db)}


@router.get("/{room_type_id}", response_model=schemas.ApiResponse[schemas.RoomTypeDetail])
def get_room_type(room_type_id: int, db: Session = Depends(get_db)):
    """Room type details together with how many rooms use it."""
    room_type = inventory.get_room_type(db, room_type_id)
    return {"message": "Room type retrieved successfully", "data": _with_room_count(db, room_type)}


# ----- Admin -----
@admin_router.get("/", response_model=schemas.ApiResponse[List[schemas.RoomTypeDetail]])
def admin_list_room_types(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    data = [_with_room_count(db, room_type) for room_type in _active_room_types(db)]
    return {"message": "Room types retrieved successfully", "data": data}


@admin_router.post("/", response_model=schemas.ApiResponse[schemas.RoomTypeOut], status_code=201)
def create_room_type(
    room_type_in: schemas.RoomTypeCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Create a room type. *(Admin-only)*

    Raises
    ------
    ConflictError
        - 409 if another room type already uses the name.
    """
    room_type = inventory.create_room_type(db, room_type_in)
    return {"message": "Room type created successfully", "data": room_type}


@admin_router.patch("/{room_type_id}", response_model=schemas.ApiResponse[schemas.RoomTypeOut])
def update_room_type(
    room_type_id: int,
    room_type_update: schemas.RoomTypeUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    room_type = inventory.update_room_type(db, room_type_id, room_type_update)
    return {"message": "Room type updated successfully", "data": room_type}


@admin_router.delete("/{room_type_id}", response_model=schemas.MessageResponse)
def delete_room_type(
    room_type_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Soft-delete a room type. *(Admin-only)*

    Refused while any of its rooms holds a PENDING or CONFIRMED booking.
    """
    inventory.delete_room_type(db, room_type_id)
    return {"message": "Room type deleted successfully"}
