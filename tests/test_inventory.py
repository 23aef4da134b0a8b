from decimal import Decimal

import pytest

from src.bookings.schemas import BookingKind, BookingStatus
from src.exceptions import ConflictError, NotFoundError, SeatUnavailableError
from src.inventory.schemas import SeatStatus
from src.inventory.service import CategoryInventory, SeatInventory
from src.models import Booking, Event
from tests.conftest import START, auth_headers


def add_booking(db, catalog, kind, items, status=BookingStatus.PENDING, number="BK20250115900"):
    booking = Booking(
        booking_number=number,
        kind=kind.value,
        user_id=catalog.alice,
        schedule_id=catalog.schedule if kind == BookingKind.THEATER else None,
        event_id=catalog.event if kind == BookingKind.EVENT else None,
        items=items,
        add_ons=[],
        quantity=sum(item.get("quantity", 1) for item in items),
        total_amount=Decimal("100.00"),
        status=status.value,
        created_at=START,
        updated_at=START
    )
    db.add(booking)
    db.commit()
    return booking


class TestSeatInventory:
    def test_layout_lists_online_seats_with_prices(self, db, catalog, reservations):
        layout = SeatInventory(db, reservations).availability(catalog.schedule)

        assert layout.total_online_seats == 6
        assert layout.rows == ["A", "B"]
        assert layout.pricing == {"Normal": Decimal("200.00"), "Premium": Decimal("350.00")}
        assert all(seat.status == SeatStatus.AVAILABLE for seat in layout.seats)

    @pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED])
    def test_active_bookings_mark_seats_booked(self, db, catalog, reservations, status):
        add_booking(db, catalog, BookingKind.THEATER, [{"id": "A3", "category": "Normal"}], status)

        layout = SeatInventory(db, reservations).availability(catalog.schedule, catalog.bob)

        assert next(seat for seat in layout.seats if seat.seat_number == "A3").status == SeatStatus.BOOKED
        assert layout.booked_count == 1

    def test_cancelled_booking_frees_seats(self, db, catalog, reservations):
        add_booking(db, catalog, BookingKind.THEATER, [{"id": "A3", "category": "Normal"}], BookingStatus.CANCELLED)

        layout = SeatInventory(db, reservations).availability(catalog.schedule)

        assert layout.booked_count == 0
        assert layout.available_seats == 6

    def test_booking_on_counter_seat_still_counts(self, db, catalog, reservations):
        add_booking(db, catalog, BookingKind.THEATER, [{"id": "C1", "category": "Normal"}], BookingStatus.CONFIRMED)

        layout = SeatInventory(db, reservations).availability(catalog.schedule)

        assert "C1" not in [seat.seat_number for seat in layout.seats]
        assert layout.booked_count == 1

    def test_booked_seat_cannot_be_held(self, db, catalog, reservations):
        add_booking(db, catalog, BookingKind.THEATER, [{"id": "A3", "category": "Normal"}])

        with pytest.raises(SeatUnavailableError, match="A3"):
            reservations.lock(catalog.schedule, ["A3", "A4"], catalog.bob)

    def test_assert_bookable_rejects_seats_held_by_others(self, db, catalog, reservations):
        reservations.lock(catalog.schedule, ["A1"], catalog.bob)
        inventory = SeatInventory(db, reservations)

        with pytest.raises(SeatUnavailableError, match="A1"):
            inventory.assert_bookable(catalog.schedule, ["A1", "A2"], catalog.alice)

        inventory.assert_bookable(catalog.schedule, ["A1"], catalog.bob)

    def test_missing_schedule(self, db, catalog, reservations):
        with pytest.raises(NotFoundError):
            SeatInventory(db, reservations).availability(9999)


class TestCategoryInventory:
    def test_remaining_counts(self, db, catalog, clock):
        add_booking(db, catalog, BookingKind.EVENT, [{"id": str(catalog.general), "category": "General", "quantity": 2}])

        availability = CategoryInventory(db, clock).availability(catalog.event)
        general = next(ticket for ticket in availability.tickets if ticket.id == catalog.general)

        assert general.available_quantity == 1
        assert general.total_quantity == 3

    def test_sold_out_category_is_omitted(self, db, catalog, clock):
        add_booking(db, catalog, BookingKind.EVENT, [{"id": str(catalog.vip), "category": "VIP", "quantity": 1}])

        availability = CategoryInventory(db, clock).availability(catalog.event)

        assert [ticket.name for ticket in availability.tickets] == ["General"]

    def test_cancelled_bookings_return_quantity(self, db, catalog, clock):
        add_booking(db, catalog, BookingKind.EVENT, [{"id": str(catalog.vip), "category": "VIP", "quantity": 1}],
                    BookingStatus.CANCELLED)

        availability = CategoryInventory(db, clock).availability(catalog.event)

        assert {ticket.name for ticket in availability.tickets} == {"General", "VIP"}

    def test_reserve_more_than_remaining(self, db, catalog, clock):
        add_booking(db, catalog, BookingKind.EVENT, [{"id": str(catalog.general), "category": "General", "quantity": 2}])

        with pytest.raises(ConflictError, match="Only 1 tickets available for General"):
            CategoryInventory(db, clock).reserve(catalog.event, {catalog.general: 2}, catalog.bob)

    def test_reserve_unknown_category(self, db, catalog, clock):
        with pytest.raises(NotFoundError):
            CategoryInventory(db, clock).assert_bookable(catalog.event, {9999: 1}, catalog.bob)

    def test_unpublished_event_not_found(self, db, catalog, clock):
        db.query(Event).filter(Event.id == catalog.event).update({"status": "0"})
        db.commit()

        with pytest.raises(NotFoundError):
            CategoryInventory(db, clock).availability(catalog.event)


class TestAvailabilityEndpoints:
    def test_guest_seat_map(self, client, catalog):
        response = client.get(f"/api/v1/schedules/{catalog.schedule}/seats")

        assert response.status_code == 200
        assert response.json()["movie_title"] == "The Long Night"
        assert response.json()["day_type"] == "base"

    def test_event_tickets(self, client, catalog):
        response = client.get(f"/api/v1/events/{catalog.event}/tickets", headers=auth_headers(catalog.bob))

        assert response.status_code == 200
        tickets = response.json()["tickets"]
        assert [(ticket["name"], ticket["available_quantity"]) for ticket in tickets] == [("General", 3), ("VIP", 1)]

    def test_invalid_token_rejected(self, client, catalog):
        response = client.get(
            f"/api/v1/schedules/{catalog.schedule}/seats",
            headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    def test_unknown_schedule(self, client, catalog):
        response = client.get("/api/v1/schedules/9999/seats")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Schedule not found"}
