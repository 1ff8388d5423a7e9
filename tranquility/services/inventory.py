"""
Room, room type and amenity administration.

Rooms, room types and amenities are never hard-deleted: bookings keep
pointing at them for history. Each operation here runs as a single
transaction.
"""
import logging

from sqlalchemy.orm import Session

from .. import models, schemas
from ..exceptions import ConflictError, NotFoundError
from .booking_lifecycle import room_has_active_bookings, room_type_has_active_bookings

logger = logging.getLogger(__name__)


# ----- Lookups -----
def get_room(db: Session, room_id: int, include_deleted: bool = False) -> models.Room:
    query = db.query(models.Room).filter(models.Room.id == room_id)
    if not include_deleted:
        query = query.filter(models.Room.is_deleted.is_(False))
    room = query.first()
    if not room:
        raise NotFoundError("Room not found")
    return room


def get_room_type(db: Session, room_type_id: int) -> models.RoomType:
    room_type = (
        db.query(models.RoomType)
        .filter(models.RoomType.id == room_type_id, models.RoomType.is_deleted.is_(False))
        .first()
    )
    if not room_type:
        raise NotFoundError("Room type not found")
    return room_type


def get_amenity(db: Session, amenity_id: int) -> models.Amenity:
    amenity = (
        db.query(models.Amenity)
        .filter(models.Amenity.id == amenity_id, models.Amenity.is_deleted.is_(False))
        .first()
    )
    if not amenity:
        raise NotFoundError("Amenity not found")
    return amenity


def _check_amenities(db: Session, amenity_ids: list[int]) -> None:
    unique_ids = set(amenity_ids)
    if not unique_ids:
        return
    found = (
        db.query(models.Amenity.id)
        .filter(
            models.Amenity.id.in_(unique_ids),
            models.Amenity.is_active.is_(True),
            models.Amenity.is_deleted.is_(False),
        )
        .count()
    )
    if found != len(unique_ids):
        raise NotFoundError("One or more amenities not found or inactive")


def _ensure_unique_room_number(db: Session, room_number: str, room_id: int | None = None) -> None:
    existing = db.query(models.Room).filter(models.Room.room_number == room_number).first()
    if existing and existing.id != room_id:
        raise ConflictError("Room with this number already exists")


def _ensure_unique_name(db: Session, model, name: str, label: str, entity_id: int | None = None) -> None:
    existing = (
        db.query(model)
        .filter(model.name == name, model.is_deleted.is_(False))
        .first()
    )
    if existing and existing.id != entity_id:
        raise ConflictError(f"{label} name already exists")


# ----- Rooms -----
def create_room(db: Session, room_in: schemas.RoomCreate) -> models.Room:
    _ensure_unique_room_number(db, room_in.room_number)
    get_room_type(db, room_in.room_type_id)
    _check_amenities(db, room_in.amenity_ids)

    room = models.Room(
        room_number=room_in.room_number,
        room_type_id=room_in.room_type_id,
        floor=room_in.floor,
        is_active=room_in.is_active,
        images=[models.RoomImage(image_url=url) for url in room_in.image_urls],
        amenities=[models.RoomAmenity(amenity_id=a_id) for a_id in dict.fromkeys(room_in.amenity_ids)],
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    logger.info("Created room id=%s number=%s", room.id, room.room_number)
    return room


def update_room(db: Session, room_id: int, room_update: schemas.RoomUpdate) -> models.Room:
    room = get_room(db, room_id, include_deleted=True)
    if room.is_deleted:
        raise ConflictError("Cannot update deleted room")

    data = room_update.model_dump(exclude_unset=True)
    image_urls = data.pop("image_urls", None)
    amenity_ids = data.pop("amenity_ids", None)

    if data.get("room_number") is not None:
        _ensure_unique_room_number(db, data["room_number"], room_id)
    if data.get("room_type_id") is not None:
        get_room_type(db, data["room_type_id"])
    if amenity_ids is not None:
        _check_amenities(db, amenity_ids)

    for field, value in data.items():
        if value is not None or field == "floor":
            setattr(room, field, value)

    # Replacing the collections deletes the old rows (delete-orphan)
    if image_urls is not None:
        room.images = [models.RoomImage(image_url=url) for url in image_urls]
    if amenity_ids is not None:
        # Old links must be gone before new ones hit the (room, amenity) unique key
        room.amenities = []
        db.flush()
        room.amenities = [models.RoomAmenity(amenity_id=a_id) for a_id in dict.fromkeys(amenity_ids)]

    db.commit()
    db.refresh(room)
    logger.info("Updated room id=%s", room.id)
    return room


def delete_room(db: Session, room_id: int) -> models.Room:
    room = get_room(db, room_id, include_deleted=True)
    if room.is_deleted:
        raise ConflictError("Room is already deleted")
    if room_has_active_bookings(db, room_id):
        raise ConflictError("Cannot delete room with active bookings")

    room.is_deleted = True
    room.is_active = False
    room.images = []
    room.amenities = []
    room.availability = []
    db.commit()
    db.refresh(room)
    logger.info("Soft-deleted room id=%s number=%s", room.id, room.room_number)
    return room


def add_room_image(db: Session, room_id: int, image_in: schemas.RoomImageCreate) -> models.RoomImage:
    get_room(db, room_id)
    image = models.RoomImage(room_id=room_id, image_url=image_in.image_url, caption=image_in.caption)
    db.add(image)
    db.commit()
    db.refresh(image)
    return image


def delete_room_image(db: Session, room_id: int, image_id: int) -> None:
    image = (
        db.query(models.RoomImage)
        .filter(models.RoomImage.id == image_id, models.RoomImage.room_id == room_id)
        .first()
    )
    if not image:
        raise NotFoundError("Image not found")
    db.delete(image)
    db.commit()


def set_room_availability(
    db: Session, room_id: int, update: schemas.RoomAvailabilityUpdate
) -> models.RoomAvailability:
    get_room(db, room_id)
    entry = (
        db.query(models.RoomAvailability)
        .filter(models.RoomAvailability.room_id == room_id, models.RoomAvailability.date == update.date)
        .first()
    )
    if entry is None:
        entry = models.RoomAvailability(room_id=room_id, date=update.date)
        db.add(entry)
    entry.is_available = update.is_available
    entry.reason = update.reason
    db.commit()
    db.refresh(entry)
    logger.info(
        "Room id=%s availability on %s set to %s", room_id, update.date, update.is_available
    )
    return entry


# ----- Room types -----
def create_room_type(db: Session, room_type_in: schemas.RoomTypeCreate) -> models.RoomType:
    _ensure_unique_name(db, models.RoomType, room_type_in.name, "Room type")
    room_type = models.RoomType(**room_type_in.model_dump())
    db.add(room_type)
    db.commit()
    db.refresh(room_type)
    return room_type


def update_room_type(
    db: Session, room_type_id: int, room_type_update: schemas.RoomTypeUpdate
) -> models.RoomType:
    room_type = get_room_type(db, room_type_id)
    data = room_type_update.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        _ensure_unique_name(db, models.RoomType, data["name"], "Room type", room_type_id)
    for field, value in data.items():
        if value is not None or field in ("description", "image_url"):
            setattr(room_type, field, value)
    db.commit()
    db.refresh(room_type)
    return room_type


def delete_room_type(db: Session, room_type_id: int) -> models.RoomType:
    room_type = get_room_type(db, room_type_id)
    if room_type_has_active_bookings(db, room_type_id):
        raise ConflictError("Cannot delete room type with active bookings")
    room_type.is_deleted = True
    db.commit()
    db.refresh(room_type)
    logger.info("Soft-deleted room type id=%s name=%s", room_type.id, room_type.name)
    return room_type


def count_rooms(db: Session, room_type_id: int) -> int:
    return (
        db.query(models.Room)
        .filter(models.Room.room_type_id == room_type_id, models.Room.is_deleted.is_(False))
        .count()
    )


# ----- Amenities -----
def create_amenity(db: Session, amenity_in: schemas.AmenityCreate) -> models.Amenity:
    _ensure_unique_name(db, models.Amenity, amenity_in.name, "Amenity")
    amenity = models.Amenity(**amenity_in.model_dump())
    db.add(amenity)
    db.commit()
    db.refresh(amenity)
    return amenity


def update_amenity(db: Session, amenity_id: int, amenity_update: schemas.AmenityUpdate) -> models.Amenity:
    amenity = get_amenity(db, amenity_id)
    data = amenity_update.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        _ensure_unique_name(db, models.Amenity, data["name"], "Amenity", amenity_id)
    for field, value in data.items():
        if value is not None or field in ("icon", "description"):
            setattr(amenity, field, value)
    db.commit()
    db.refresh(amenity)
    return amenity


def delete_amenity(db: Session, amenity_id: int) -> models.Amenity:
    amenity = get_amenity(db, amenity_id)
    rooms_using = (
        db.query(models.RoomAmenity)
        .join(models.Room)
        .filter(models.RoomAmenity.amenity_id == amenity_id, models.Room.is_deleted.is_(False))
        .count()
    )
    if rooms_using:
        raise ConflictError(f"Cannot delete amenity. {rooms_using} room(s) are still using this amenity.")
    amenity.is_deleted = True
    amenity.is_active = False
    db.commit()
    db.refresh(amenity)
    logger.info("Soft-deleted amenity id=%s", amenity.id)
    return amenity
