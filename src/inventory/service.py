from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from src.bookings.schemas import BookingKind
from src.clock import utcnow
from src.exceptions import ConflictError, NotFoundError, SeatUnavailableError
from src.inventory import ledger
from src.inventory.schemas import (
    SeatStatus, SeatView, SeatLayout, TicketCategoryView, EventAvailability
)
from src.models import EventTicketCategory
from src.pricing.engine import is_weekend, resolve_day_type, resolve_unit_price
from src.pricing.holidays import HolidayCalendar
from src.pricing.service import load_movie_rates, category_rate_card
from src.reservations.service import ReservationManager

class InventoryStrategy(ABC):
    """Common contract for seat-identity and remaining-count inventory"""

    kind: BookingKind

    @abstractmethod
    def reserve(self, target_id: int, lines, user_id: int) -> None:
        """Claim the requested inventory ahead of order creation"""

    @abstractmethod
    def assert_bookable(self, target_id: int, lines, user_id: int) -> None:
        """Re-check under row locks, inside the transaction that persists the booking"""

    @abstractmethod
    def release(self, target_id: int, lines, user_id: int) -> None:
        """Give back whatever reserve() claimed"""

class SeatInventory(InventoryStrategy):
    """Individually numbered theater seats, claimed through seat holds"""

    kind = BookingKind.THEATER

    def __init__(
        self,
        db: Session,
        reservations: Optional[ReservationManager] = None,
        now: Callable[[], datetime] = utcnow,
        holiday_calendar: Optional[HolidayCalendar] = None
    ):
        self.db = db
        self.now = now
        self.reservations = reservations or ReservationManager(db, now=now)
        self.holiday_calendar = holiday_calendar or HolidayCalendar()

    def availability(self, schedule_id: int, user_id: Optional[int] = None) -> SeatLayout:
        """Seat map with per-seat status for the requester.

        Guests (no user_id) see every live hold as held by someone else.
        """

        schedule = ledger.get_published_schedule(self.db, schedule_id)
        catalog = ledger.get_screen_seats(self.db, schedule)
        booked = ledger.booked_seat_numbers(self.db, schedule_id)
        holds = {hold.seat_number: hold for hold in self.reservations.live_holds(schedule_id)}

        day_type = resolve_day_type(
            schedule.show_date, self.holiday_calendar.is_holiday(schedule.show_date)
        )
        rates = load_movie_rates(self.db, schedule.movie_id)
        pricing = {
            category: resolve_unit_price(rate, day_type, is_weekend(schedule.show_date))[0]
            for category, rate in rates.items()
        }

        seats = []
        for seat in catalog.values():
            if seat.quota_type != "online":
                continue

            if seat.seat_number in booked:
                status = SeatStatus.BOOKED
            elif seat.seat_number in holds:
                if user_id is not None and holds[seat.seat_number].user_id == user_id:
                    status = SeatStatus.HELD_BY_ME
                else:
                    status = SeatStatus.HELD_BY_OTHER
            else:
                status = SeatStatus.AVAILABLE

            seats.append(SeatView(
                seat_number=seat.seat_number,
                row=seat.row,
                column=seat.column,
                category=seat.category,
                price=pricing.get(seat.category),
                status=status
            ))

        rows = sorted({seat.row for seat in seats})
        movie = schedule.movie
        screen = schedule.screen

        return SeatLayout(
            schedule_id=schedule.id,
            movie_title=movie.title,
            theater_id=movie.theater_id,
            theater_name=movie.theater.name,
            screen=screen.name,
            show_date=schedule.show_date,
            show_time=schedule.show_time,
            day_type=day_type,
            pricing=pricing,
            rows=rows,
            seats=seats,
            total_online_seats=len(seats),
            available_seats=len([s for s in seats if s.status == SeatStatus.AVAILABLE]),
            held_seats=len([s for s in seats if s.status in (SeatStatus.HELD_BY_ME, SeatStatus.HELD_BY_OTHER)]),
            booked_count=len(booked)
        )

    def reserve(self, schedule_id: int, seats: List[str], user_id: int) -> None:
        self.reservations.lock(schedule_id, seats, user_id)

    def assert_bookable(self, schedule_id: int, seats: List[str], user_id: int) -> None:
        # Locking the schedule row serializes booking inserts for the same show
        ledger.get_published_schedule(self.db, schedule_id, lock=True)
        booked = ledger.booked_seat_numbers(self.db, schedule_id)
        held_by_others = {
            hold.seat_number
            for hold in self.reservations.live_holds(schedule_id)
            if hold.user_id != user_id
        }

        unavailable = [seat for seat in seats if seat in booked or seat in held_by_others]
        if unavailable:
            raise SeatUnavailableError(unavailable)

    def release(self, schedule_id: int, seats: List[str], user_id: int) -> None:
        self.reservations.release(schedule_id, user_id, seats)

class CategoryInventory(InventoryStrategy):
    """Ticket-category allotments for live events, tracked as remaining counts.

    Pending bookings consume their quantity until they are confirmed or cancelled,
    so there is no separate hold table for categories.
    """

    kind = BookingKind.EVENT

    def __init__(
        self,
        db: Session,
        now: Callable[[], datetime] = utcnow,
        holiday_calendar: Optional[HolidayCalendar] = None
    ):
        self.db = db
        self.now = now
        self.holiday_calendar = holiday_calendar or HolidayCalendar()

    def remaining(self, event_id: int, categories: List[EventTicketCategory]) -> Dict[int, int]:
        sold = ledger.sold_quantities(self.db, event_id)
        return {
            category.id: category.total_quantity - sold.get(str(category.id), 0)
            for category in categories
        }

    def availability(self, event_id: int) -> EventAvailability:
        event = ledger.get_published_event(self.db, event_id)
        categories = ledger.get_ticket_categories(self.db, event_id)
        remaining = self.remaining(event_id, categories)

        event_date = event.start_date_time.date()
        day_type = resolve_day_type(event_date, self.holiday_calendar.is_holiday(event_date))

        tickets = []
        for category in categories:
            if remaining[category.id] <= 0:
                continue
            tickets.append(TicketCategoryView(
                id=category.id,
                name=category.name,
                price=resolve_unit_price(category_rate_card(category), day_type, is_weekend(event_date))[0],
                total_quantity=category.total_quantity,
                available_quantity=remaining[category.id],
                description=category.description
            ))

        return EventAvailability(
            event_id=event.id,
            event_name=event.name,
            venue_name=event.venue_name,
            city=event.city,
            date=event_date,
            time=event.start_date_time.time(),
            day_type=day_type,
            tickets=tickets
        )

    def _check(self, event_id: int, quantities: Dict[int, int], lock: bool) -> None:
        categories = ledger.get_ticket_categories(
            self.db, event_id, list(quantities.keys()), lock=lock
        )
        found = {category.id: category for category in categories}

        missing = [str(category_id) for category_id in quantities if category_id not in found]
        if missing:
            raise NotFoundError(f"Ticket ID {', '.join(missing)} not found")

        remaining = self.remaining(event_id, categories)
        shortages = [
            f"Only {max(0, remaining[category_id])} tickets available for {found[category_id].name}"
            for category_id, quantity in quantities.items()
            if quantity > remaining[category_id]
        ]
        if shortages:
            raise ConflictError("; ".join(shortages))

    def reserve(self, event_id: int, quantities: Dict[int, int], user_id: int) -> None:
        self._check(event_id, quantities, lock=False)

    def assert_bookable(self, event_id: int, quantities: Dict[int, int], user_id: int) -> None:
        self._check(event_id, quantities, lock=True)

    def release(self, event_id: int, quantities: Dict[int, int], user_id: int) -> None:
        # Cancelling the pending booking is what returns category quantity
        return None
