from datetime import timedelta

import pytest
from sqlalchemy import event

from src.exceptions import NotFoundError, SeatUnavailableError, ValidationError
from src.inventory.schemas import SeatStatus
from src.inventory.service import SeatInventory
from src.models import SeatHold
from tests.conftest import START, TestingSessionLocal, auth_headers


def seat_status(layout, seat_number):
    return next(seat.status for seat in layout.seats if seat.seat_number == seat_number)


class TestLock:
    def test_holds_are_visible_per_requester(self, db, catalog, reservations):
        reservations.lock(catalog.schedule, ["A1", "A2"], catalog.alice)
        inventory = SeatInventory(db, reservations)

        mine = inventory.availability(catalog.schedule, catalog.alice)
        theirs = inventory.availability(catalog.schedule, catalog.bob)
        guest = inventory.availability(catalog.schedule)

        assert seat_status(mine, "A1") == SeatStatus.HELD_BY_ME
        assert seat_status(mine, "A2") == SeatStatus.HELD_BY_ME
        assert seat_status(theirs, "A1") == SeatStatus.HELD_BY_OTHER
        assert seat_status(guest, "A2") == SeatStatus.HELD_BY_OTHER
        assert seat_status(theirs, "A3") == SeatStatus.AVAILABLE

    def test_conflict_names_the_held_seat(self, catalog, reservations):
        reservations.lock(catalog.schedule, ["A1", "A2"], catalog.alice)

        with pytest.raises(SeatUnavailableError) as exc_info:
            reservations.lock(catalog.schedule, ["A1"], catalog.bob)

        assert exc_info.value.seats == ["A1"]
        assert "A1" in exc_info.value.message

    def test_lock_is_all_or_nothing(self, db, catalog, reservations):
        reservations.lock(catalog.schedule, ["A1"], catalog.alice)

        with pytest.raises(SeatUnavailableError) as exc_info:
            reservations.lock(catalog.schedule, ["A3", "A1"], catalog.bob)

        assert exc_info.value.seats == ["A1"]
        held = {hold.seat_number for hold in db.query(SeatHold).all()}
        assert held == {"A1"}

    def test_concurrent_lock_on_same_seat_has_one_winner(self, db, catalog, reservations):
        # Bob's request commits its hold after Alice's existing-hold check but
        # before her insert reaches the database.
        def rival_commits_first(session, flush_context, instances):
            rival = TestingSessionLocal()
            try:
                rival.add(SeatHold(
                    schedule_id=catalog.schedule,
                    seat_number="A1",
                    user_id=catalog.bob,
                    created_at=START,
                    expires_at=START + timedelta(minutes=15)
                ))
                rival.commit()
            finally:
                rival.close()

        event.listen(db, "before_flush", rival_commits_first, once=True)

        with pytest.raises(SeatUnavailableError) as exc_info:
            reservations.lock(catalog.schedule, ["A1"], catalog.alice)

        assert exc_info.value.seats == ["A1"]
        assert "A1" in exc_info.value.message
        holds = db.query(SeatHold).all()
        assert [(hold.seat_number, hold.user_id) for hold in holds] == [("A1", catalog.bob)]

    def test_relock_by_owner_extends_expiry(self, db, catalog, reservations, clock):
        first = reservations.lock(catalog.schedule, ["A1", "A2"], catalog.alice)
        clock.advance(minutes=10)
        second = reservations.lock(catalog.schedule, ["A1", "A2"], catalog.alice)

        assert first.expires_at == START + timedelta(minutes=15)
        assert second.expires_at == START + timedelta(minutes=25)
        assert db.query(SeatHold).count() == 2

    def test_expired_hold_frees_the_seat(self, db, catalog, reservations, clock):
        reservations.lock(catalog.schedule, ["A1"], catalog.alice)
        clock.advance(minutes=15, seconds=1)

        layout = SeatInventory(db, reservations).availability(catalog.schedule, catalog.bob)
        assert seat_status(layout, "A1") == SeatStatus.AVAILABLE

        summary = reservations.lock(catalog.schedule, ["A1"], catalog.bob)
        assert summary.locked_seats == ["A1"]
        holds = db.query(SeatHold).all()
        assert [(hold.seat_number, hold.user_id) for hold in holds] == [("A1", catalog.bob)]

    def test_counter_quota_seat_cannot_be_held(self, catalog, reservations):
        with pytest.raises(SeatUnavailableError, match="C1"):
            reservations.lock(catalog.schedule, ["C1"], catalog.alice)

    def test_unknown_seat_rejected(self, catalog, reservations):
        with pytest.raises(ValidationError, match="Z9"):
            reservations.lock(catalog.schedule, ["Z9"], catalog.alice)

    def test_unpublished_schedule_not_found(self, catalog, reservations):
        with pytest.raises(NotFoundError):
            reservations.lock(catalog.draft_schedule, ["A1"], catalog.alice)


class TestRelease:
    def test_only_own_holds_are_released(self, db, catalog, reservations):
        reservations.lock(catalog.schedule, ["A1", "A2"], catalog.alice)

        assert reservations.release(catalog.schedule, catalog.bob, ["A1"]) == 0
        assert db.query(SeatHold).count() == 2

        assert reservations.release(catalog.schedule, catalog.alice, ["A1"]) == 1
        assert [hold.seat_number for hold in db.query(SeatHold).all()] == ["A2"]

    def test_release_without_seats_drops_all_of_the_users_holds(self, db, catalog, reservations):
        reservations.lock(catalog.schedule, ["A1", "A2"], catalog.alice)
        reservations.lock(catalog.schedule, ["A3"], catalog.bob)

        assert reservations.release(catalog.schedule, catalog.alice) == 2
        assert [hold.user_id for hold in db.query(SeatHold).all()] == [catalog.bob]

    def test_sweep_removes_only_expired_holds(self, db, catalog, reservations, clock):
        reservations.lock(catalog.schedule, ["A1"], catalog.alice)
        clock.advance(minutes=10)
        reservations.lock(catalog.schedule, ["A2"], catalog.bob)
        clock.advance(minutes=6)

        assert reservations.sweep() == 1
        db.commit()
        assert [hold.seat_number for hold in db.query(SeatHold).all()] == ["A2"]


class TestLockEndpoints:
    def test_second_user_gets_conflict(self, client, catalog):
        url = f"/api/v1/schedules/{catalog.schedule}/locks"

        first = client.post(url, json={"seats": ["A1", "A2"]}, headers=auth_headers(catalog.alice))
        second = client.post(url, json={"seats": ["A1"]}, headers=auth_headers(catalog.bob))

        assert first.status_code == 200
        assert first.json()["locked_seats"] == ["A1", "A2"]
        assert first.json()["expires_in_minutes"] == 15
        assert second.status_code == 409
        assert second.json() == {"success": False, "message": "Seats not available: A1"}

    def test_seat_map_reflects_holds(self, client, catalog):
        client.post(
            f"/api/v1/schedules/{catalog.schedule}/locks",
            json={"seats": ["A1"]},
            headers=auth_headers(catalog.alice)
        )

        response = client.get(f"/api/v1/schedules/{catalog.schedule}/seats", headers=auth_headers(catalog.bob))

        assert response.status_code == 200
        body = response.json()
        statuses = {seat["seat_number"]: seat["status"] for seat in body["seats"]}
        assert statuses["A1"] == "held_by_other"
        assert "C1" not in statuses
        assert body["held_seats"] == 1

    def test_unlock(self, client, catalog):
        headers = auth_headers(catalog.alice)
        client.post(f"/api/v1/schedules/{catalog.schedule}/locks", json={"seats": ["A1", "A2"]}, headers=headers)

        response = client.post(f"/api/v1/schedules/{catalog.schedule}/unlock", json={}, headers=headers)

        assert response.status_code == 200
        assert response.json()["released_count"] == 2

    @pytest.mark.parametrize("seats", [[], ["A1", "A1"], [" "], [f"A{n}" for n in range(11)]])
    def test_invalid_seat_lists_rejected(self, client, catalog, seats):
        response = client.post(
            f"/api/v1/schedules/{catalog.schedule}/locks",
            json={"seats": seats},
            headers=auth_headers(catalog.alice)
        )

        assert response.status_code == 400

    def test_lock_requires_identity(self, client, catalog):
        response = client.post(f"/api/v1/schedules/{catalog.schedule}/locks", json={"seats": ["A1"]})

        assert response.status_code == 401
