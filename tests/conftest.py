"""
Pytest configuration and shared fixtures for testing the Tranquility Inn API.
"""
import os

# Must be set before the application (and its settings) are imported
os.environ.setdefault("TRANQUILITY_DATABASE_URL", "sqlite://")
os.environ.setdefault("TRANQUILITY_RATE_LIMIT_ENABLED", "false")

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tranquility import models
from tranquility.circuit_breaker import booking_circuit_breaker
from tranquility.database import Base
from tranquility.deps import get_db, get_password_hash
from tranquility.main import app
from tranquility.services.booking_lifecycle import today_utc


# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with the test database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    """The breaker is module-level state; start every test with it closed."""
    booking_circuit_breaker.close()
    yield
    booking_circuit_breaker.close()


def make_user(db_session, email, password, role, first_name="Test"):
    user = models.User(
        first_name=first_name,
        last_name="User",
        email=email,
        password_hash=get_password_hash(password),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    """
    Create an admin user for testing.
    """
    return make_user(db_session, "admin@example.com", "adminpass123", models.Role.ADMIN, "Admin")


@pytest.fixture
def staff_user(db_session):
    """
    Create a front-desk staff user for testing.
    """
    return make_user(db_session, "staff@example.com", "staffpass123", models.Role.STAFF, "Staff")


@pytest.fixture
def guest_user(db_session):
    """
    Create a guest user for testing.
    """
    return make_user(db_session, "guest@example.com", "guestpass123", models.Role.GUEST, "Guest")


@pytest.fixture
def other_guest(db_session):
    return make_user(db_session, "other@example.com", "otherpass123", models.Role.GUEST, "Other")


def login(client, email: str, password: str) -> str:
    response = client.post("/auth/login", json={"email": email, "password": password})
    # Login also sets the session cookie; tests authenticate with headers only
    client.cookies.clear()
    return response.json()["data"]["token"]


@pytest.fixture
def admin_token(client, admin_user):
    """
    Get an admin authentication token.
    """
    return login(client, "admin@example.com", "adminpass123")


@pytest.fixture
def staff_token(client, staff_user):
    return login(client, "staff@example.com", "staffpass123")


@pytest.fixture
def guest_token(client, guest_user):
    """
    Get a guest authentication token.
    """
    return login(client, "guest@example.com", "guestpass123")


@pytest.fixture
def other_guest_token(client, other_guest):
    return login(client, "other@example.com", "otherpass123")


@pytest.fixture
def room_type(db_session):
    """
    Create a room type sleeping two at 150.00 a night.
    """
    room_type = models.RoomType(
        name="Deluxe",
        description="Sea view",
        base_price=Decimal("150.00"),
        max_guests=2,
    )
    db_session.add(room_type)
    db_session.commit()
    db_session.refresh(room_type)
    return room_type


@pytest.fixture
def suite_type(db_session):
    room_type = models.RoomType(
        name="Suite",
        description="Two bedrooms",
        base_price=Decimal("400.00"),
        max_guests=4,
    )
    db_session.add(room_type)
    db_session.commit()
    db_session.refresh(room_type)
    return room_type


@pytest.fixture
def amenity(db_session):
    amenity = models.Amenity(name="WiFi", icon="wifi", description="Free wireless")
    db_session.add(amenity)
    db_session.commit()
    db_session.refresh(amenity)
    return amenity


@pytest.fixture
def sample_room(db_session, room_type):
    """
    Create a sample room for testing.
    """
    room = models.Room(room_number="101", floor=1, room_type_id=room_type.id)
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_rooms(db_session, room_type, suite_type):
    """
    Create multiple sample rooms for testing: two deluxe rooms, one suite
    and one inactive deluxe room.
    """
    rooms = [
        models.Room(room_number="201", floor=2, room_type_id=room_type.id),
        models.Room(room_number="202", floor=2, room_type_id=room_type.id),
        models.Room(room_number="301", floor=3, room_type_id=suite_type.id),
        models.Room(room_number="302", floor=3, room_type_id=room_type.id, is_active=False),
    ]
    for room in rooms:
        db_session.add(room)
    db_session.commit()
    for room in rooms:
        db_session.refresh(room)
    return rooms


def future_stay(start_in_days: int = 10, nights: int = 3):
    """Return ``(check_in, check_out)`` starting ``start_in_days`` from today."""
    check_in = today_utc() + timedelta(days=start_in_days)
    return check_in, check_in + timedelta(days=nights)


@pytest.fixture
def sample_booking(db_session, guest_user, sample_room):
    """
    Create a PENDING three-night booking for the guest, ten days out.
    """
    check_in, check_out = future_stay()
    booking = models.Booking(
        user_id=guest_user.id,
        room_id=sample_room.id,
        check_in=check_in,
        check_out=check_out,
        guests=2,
        total_amount=Decimal("450.00"),
        status=models.BookingStatus.PENDING,
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}
