from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_db, require_admin
from ..services import inventory

router = APIRouter(prefix="/amenities", tags=["amenities"])
admin_router = APIRouter(prefix="/admin/amenities", tags=["admin"])


@router.get("/", response_model=schemas.ApiResponse[List[schemas.AmenityOut]])
def list_amenities(db: Session = Depends(get_db)):
    """Active amenities, alphabetically."""
    amenities = (
        db.query(models.Amenity)
        .filter(models.Amenity.is_deleted.is_(False), models.Amenity.is_active.is_(True))
        .order_by(models.Amenity.name)
        .all()
    )
    return {"message": "Amenities retrieved successfully", "data": amenities}


# ----- Admin -----
@admin_router.get("/", response_model=schemas.ApiResponse[List[schemas.AmenityOut]])
def admin_list_amenities(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    amenities = (
        db.query(models.Amenity)
        .filter(models.Amenity.is_deleted.is_(False))
        .order_by(models.Amenity.name)
        .all()
    )
    return {"message": "Amenities retrieved successfully", "data": amenities}


@admin_router.post("/", response_model=schemas.ApiResponse[schemas.AmenityOut], status_code=201)
def create_amenity(
    amenity_in: schemas.AmenityCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    amenity = inventory.create_amenity(db, amenity_in)
    return {"message": "Amenity created successfully", "data": amenity}


@admin_router.patch("/{amenity_id}", response_model=schemas.ApiResponse[schemas.AmenityOut])
def update_amenity(
    amenity_id: int,
    amenity_update: schemas.AmenityUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    amenity = inventory.update_amenity(db, amenity_id, amenity_update)
    return {"message": "Amenity updated successfully", "data": amenity}


@admin_router.delete("/{amenity_id}", response_model=schemas.MessageResponse)
def delete_amenity(
    amenity_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Soft-delete an amenity. *(Admin-only)*

    Raises
    ------
    ConflictError
        - 409 while rooms are still using the amenity.
    """
    inventory.delete_amenity(db, amenity_id)
    return {"message": "Amenity deleted successfully"}
