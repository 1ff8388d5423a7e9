"""
Unit tests for booking endpoints.
"""
from datetime import timedelta

from conftest import future_stay, get_auth_header
from tranquility import models
from tranquility.circuit_breaker import booking_circuit_breaker
from tranquility.services.booking_lifecycle import today_utc


def booking_payload(room_id, start_in_days=10, nights=3, guests=2, **extra):
    check_in, check_out = future_stay(start_in_days, nights)
    payload = {
        "room_id": room_id,
        "check_in": str(check_in),
        "check_out": str(check_out),
        "guests": guests,
    }
    payload.update(extra)
    return payload


class TestBookingCreation:
    """Tests for POST /bookings."""

    def test_create_booking(self, client, guest_user, guest_token, sample_room):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_room.id, special_requests="Late arrival"),
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "PENDING"
        assert data["total_amount"] == 450.0
        assert data["user_id"] == guest_user.id
        assert data["room"]["room_number"] == "101"
        assert data["special_requests"] == "Late arrival"

    def test_requires_auth(self, client, sample_room):
        response = client.post("/bookings/", json=booking_payload(sample_room.id))
        assert response.status_code == 401

    def test_overlap_rejected(self, client, guest_token, sample_booking):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_booking.room_id, start_in_days=11, nights=1),
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 409
        assert response.json()["errors"]["type"] == "Conflict"

    def test_back_to_back_allowed(self, client, other_guest_token, sample_booking):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_booking.room_id, start_in_days=13, nights=2),
            headers=get_auth_header(other_guest_token),
        )
        assert response.status_code == 201

    def test_blocked_date_rejected(self, client, db_session, guest_token, sample_room):
        check_in, _ = future_stay()
        db_session.add(
            models.RoomAvailability(room_id=sample_room.id, date=check_in, is_available=False)
        )
        db_session.commit()
        response = client.post(
            "/bookings/", json=booking_payload(sample_room.id), headers=get_auth_header(guest_token)
        )
        assert response.status_code == 409

    def test_too_many_guests(self, client, db_session, guest_token, sample_room):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_room.id, guests=3),
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Room can only accommodate 2 guests"
        assert db_session.query(models.Booking).count() == 0

    def test_past_check_in(self, client, guest_token, sample_room):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_room.id, start_in_days=-2),
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 400

    def test_zero_nights(self, client, guest_token, sample_room):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_room.id, nights=0),
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 400

    def test_unknown_room(self, client, guest_token):
        response = client.post(
            "/bookings/", json=booking_payload(9999), headers=get_auth_header(guest_token)
        )
        assert response.status_code == 404

    def test_inactive_room(self, client, guest_token, sample_rooms):
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_rooms[3].id),
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 404

    def test_circuit_open_returns_503(self, client, guest_token, sample_room):
        booking_circuit_breaker.open()
        response = client.post(
            "/bookings/", json=booking_payload(sample_room.id), headers=get_auth_header(guest_token)
        )
        assert response.status_code == 503
        assert response.json()["errors"]["type"] == "ServiceUnavailable"


class TestBookingVisibility:
    """Tests for listing and reading bookings."""

    def test_guest_sees_own_bookings(self, client, guest_token, other_guest_token, sample_booking):
        response = client.get("/bookings/", headers=get_auth_header(guest_token))
        assert [b["id"] for b in response.json()["data"]["bookings"]] == [sample_booking.id]

        response = client.get("/bookings/", headers=get_auth_header(other_guest_token))
        assert response.json()["data"]["bookings"] == []

    def test_staff_sees_all(self, client, staff_token, sample_booking):
        response = client.get("/bookings/", headers=get_auth_header(staff_token))
        assert response.json()["data"]["pagination"]["total_count"] == 1

    def test_filters(self, client, staff_token, sample_booking):
        headers = get_auth_header(staff_token)
        response = client.get("/bookings/", params={"status": "CONFIRMED"}, headers=headers)
        assert response.json()["data"]["bookings"] == []

        response = client.get(
            "/bookings/", params={"check_in": str(sample_booking.check_in)}, headers=headers
        )
        assert len(response.json()["data"]["bookings"]) == 1

        late = sample_booking.check_in + timedelta(days=1)
        response = client.get("/bookings/", params={"check_in": str(late)}, headers=headers)
        assert response.json()["data"]["bookings"] == []

    def test_get_own_booking(self, client, guest_token, sample_booking):
        response = client.get(f"/bookings/{sample_booking.id}", headers=get_auth_header(guest_token))
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "guest@example.com"

    def test_other_guest_gets_not_found(self, client, other_guest_token, sample_booking):
        response = client.get(
            f"/bookings/{sample_booking.id}", headers=get_auth_header(other_guest_token)
        )
        assert response.status_code == 404


class TestBookingCancellation:
    """Tests for DELETE /bookings/{id}."""

    def test_guest_cancels_own_booking(self, client, guest_token, sample_booking):
        response = client.delete(
            f"/bookings/{sample_booking.id}",
            params={"reason": "Change of plans"},
            headers=get_auth_header(guest_token),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "CANCELLED"
        assert data["status_reason"] == "Change of plans"

    def test_cancel_twice(self, client, guest_token, sample_booking):
        headers = get_auth_header(guest_token)
        client.delete(f"/bookings/{sample_booking.id}", headers=headers)
        response = client.delete(f"/bookings/{sample_booking.id}", headers=headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Booking is already cancelled"

    def test_cancel_completed(self, client, db_session, guest_token, sample_booking):
        sample_booking.status = models.BookingStatus.COMPLETED
        db_session.commit()
        response = client.delete(f"/bookings/{sample_booking.id}", headers=get_auth_header(guest_token))
        assert response.status_code == 409
        assert response.json()["message"] == "Cannot cancel completed booking"

    def test_other_guest_cannot_cancel(self, client, other_guest_token, sample_booking):
        response = client.delete(
            f"/bookings/{sample_booking.id}", headers=get_auth_header(other_guest_token)
        )
        assert response.status_code == 404

    def test_staff_can_cancel(self, client, staff_token, sample_booking):
        response = client.delete(f"/bookings/{sample_booking.id}", headers=get_auth_header(staff_token))
        assert response.status_code == 200

    def test_cancelled_dates_can_be_rebooked(self, client, guest_token, other_guest_token, sample_booking):
        client.delete(f"/bookings/{sample_booking.id}", headers=get_auth_header(guest_token))
        response = client.post(
            "/bookings/",
            json=booking_payload(sample_booking.room_id),
            headers=get_auth_header(other_guest_token),
        )
        assert response.status_code == 201


class TestAdminBookings:
    """Tests for /admin/bookings."""

    def test_guest_forbidden(self, client, guest_token):
        response = client.get("/admin/bookings/", headers=get_auth_header(guest_token))
        assert response.status_code == 403

    def test_staff_creates_backdated_booking(self, client, staff_token, guest_user, sample_room):
        check_in = today_utc() - timedelta(days=1)
        response = client.post(
            "/admin/bookings/",
            json={
                "user_id": guest_user.id,
                "room_id": sample_room.id,
                "check_in": str(check_in),
                "check_out": str(check_in + timedelta(days=2)),
                "guests": 1,
            },
            headers=get_auth_header(staff_token),
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "PENDING"
        assert data["user_id"] == guest_user.id
        assert data["total_amount"] == 300.0

    def test_create_for_unknown_user(self, client, admin_token, sample_room):
        payload = booking_payload(sample_room.id, user_id=9999)
        response = client.post("/admin/bookings/", json=payload, headers=get_auth_header(admin_token))
        assert response.status_code == 404

    def test_full_lifecycle(self, client, staff_token, sample_booking):
        headers = get_auth_header(staff_token)
        url = f"/admin/bookings/{sample_booking.id}/status"

        response = client.patch(
            url,
            json={"status": "CONFIRMED", "check_in_time": "2030-01-01T15:00:00Z"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CONFIRMED"
        assert response.json()["data"]["check_in_time"].startswith("2030-01-01T15:00:00")

        response = client.patch(
            url,
            json={"status": "COMPLETED", "check_out_time": "2030-01-03T11:00:00Z"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "COMPLETED"

        response = client.patch(url, json={"status": "CANCELLED"}, headers=headers)
        assert response.status_code == 409

        response = client.get(f"/admin/bookings/{sample_booking.id}/history", headers=headers)
        assert response.status_code == 200
        assert [log["status"] for log in response.json()["data"]] == ["CONFIRMED", "COMPLETED"]

    def test_skipping_confirmation_rejected(self, client, staff_token, sample_booking):
        response = client.patch(
            f"/admin/bookings/{sample_booking.id}/status",
            json={"status": "COMPLETED"},
            headers=get_auth_header(staff_token),
        )
        assert response.status_code == 400

    def test_check_out_before_check_in(self, client, staff_token, sample_booking):
        headers = get_auth_header(staff_token)
        url = f"/admin/bookings/{sample_booking.id}/status"
        client.patch(
            url, json={"status": "CONFIRMED", "check_in_time": "2030-01-02T15:00:00"}, headers=headers
        )
        response = client.patch(
            url, json={"status": "COMPLETED", "check_out_time": "2030-01-01T11:00:00"}, headers=headers
        )
        assert response.status_code == 400

    def test_status_unknown_booking(self, client, staff_token):
        response = client.patch(
            "/admin/bookings/9999/status",
            json={"status": "CONFIRMED"},
            headers=get_auth_header(staff_token),
        )
        assert response.status_code == 404

    def test_history_records_creation(self, client, staff_token, guest_token, sample_room):
        response = client.post(
            "/bookings/", json=booking_payload(sample_room.id), headers=get_auth_header(guest_token)
        )
        booking_id = response.json()["data"]["id"]
        response = client.get(
            f"/admin/bookings/{booking_id}/history", headers=get_auth_header(staff_token)
        )
        assert [log["status"] for log in response.json()["data"]] == ["PENDING"]
