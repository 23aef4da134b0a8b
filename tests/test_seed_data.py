from datetime import date

from seed_data import populate
from src.inventory.service import SeatInventory
from src.models import Schedule
from src.reservations.service import ReservationManager


def test_demo_catalog_is_bookable(db, clock):
    created = populate(db, date(2025, 1, 15))
    db.commit()

    assert created["seats"] == 50
    assert created["schedules"] == 14

    schedule = db.query(Schedule).order_by(Schedule.id).first()
    layout = SeatInventory(db, ReservationManager(db, now=clock), now=clock).availability(schedule.id)

    assert layout.total_online_seats == 48
    assert layout.pricing["Normal"] == 200
