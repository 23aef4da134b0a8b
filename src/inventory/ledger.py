from typing import Dict, List, Optional, Set
from collections import defaultdict
from sqlalchemy.orm import Session

from src.exceptions import NotFoundError
from src.models import Schedule, ScreenSeat, Event, EventTicketCategory, Booking
from src.bookings.schemas import ACTIVE_BOOKING_STATUSES, BookingKind

def get_published_schedule(db: Session, schedule_id: int, lock: bool = False) -> Schedule:
    """Load a published, non-deleted schedule or raise NotFoundError"""
    query = db.query(Schedule).filter(
        Schedule.id == schedule_id,
        Schedule.status == "1",
        Schedule.deleted_at.is_(None)
    )
    if lock:
        query = query.with_for_update()
    schedule = query.first()
    if not schedule:
        raise NotFoundError("Schedule not found")
    return schedule

def get_published_event(db: Session, event_id: int) -> Event:
    """Load a published, non-deleted event or raise NotFoundError"""
    event = db.query(Event).filter(
        Event.id == event_id,
        Event.status == "1",
        Event.deleted_at.is_(None)
    ).first()
    if not event:
        raise NotFoundError("Event not found")
    return event

def get_screen_seats(db: Session, schedule: Schedule) -> Dict[str, ScreenSeat]:
    """Seat catalog for the schedule's screen, keyed by seat number"""
    seats = db.query(ScreenSeat).filter(
        ScreenSeat.screen_id == schedule.screen_id
    ).order_by(ScreenSeat.row, ScreenSeat.column).all()
    return {seat.seat_number: seat for seat in seats}

def get_ticket_categories(
    db: Session,
    event_id: int,
    category_ids: Optional[List[int]] = None,
    lock: bool = False
) -> List[EventTicketCategory]:
    query = db.query(EventTicketCategory).filter(
        EventTicketCategory.event_id == event_id,
        EventTicketCategory.status == "1",
        EventTicketCategory.deleted_at.is_(None)
    )
    if category_ids is not None:
        query = query.filter(EventTicketCategory.id.in_(category_ids))
    if lock:
        query = query.with_for_update()
    return query.order_by(EventTicketCategory.price, EventTicketCategory.id).all()

def _active_bookings(db: Session, kind: BookingKind, target_column, target_id: int) -> List[Booking]:
    return db.query(Booking).filter(
        Booking.kind == kind.value,
        target_column == target_id,
        Booking.status.in_([status.value for status in ACTIVE_BOOKING_STATUSES]),
        Booking.deleted_at.is_(None)
    ).all()

def booked_seat_numbers(db: Session, schedule_id: int) -> Set[str]:
    """Seats referenced by any pending, confirmed or completed booking.

    Bookings keep counting even when their seat has since left the online quota.
    """
    booked = set()
    for booking in _active_bookings(db, BookingKind.THEATER, Booking.schedule_id, schedule_id):
        for item in booking.items or []:
            seat_id = item.get("id") or item.get("seat_number")
            if seat_id:
                booked.add(str(seat_id))
    return booked

def sold_quantities(db: Session, event_id: int) -> Dict[str, int]:
    """Tickets sold per category id across active bookings for an event"""
    sold = defaultdict(int)
    for booking in _active_bookings(db, BookingKind.EVENT, Booking.event_id, event_id):
        for item in booking.items or []:
            sold[str(item.get("id"))] += int(item.get("quantity") or 0)
    return dict(sold)
