from typing import Callable, Dict, List, Optional
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from src.clock import utcnow
from src.config import settings
from src.exceptions import SeatUnavailableError, ValidationError
from src.inventory import ledger
from src.logger_config import logger
from src.models import SeatHold
from src.reservations.schemas import HoldSummary

class ReservationManager:
    """Issues, renews and releases seat holds.

    At most one live hold exists per (schedule, seat). A holder may extend their own
    hold but never overwrite another holder's live one; the unique constraint on
    seat_holds backs this up when two requests race.
    """

    def __init__(
        self,
        db: Session,
        now: Callable[[], datetime] = utcnow,
        ttl_minutes: int = settings.HOLD_TTL_MINUTES
    ):
        self.db = db
        self.now = now
        self.ttl = timedelta(minutes=ttl_minutes)

    def sweep(self) -> int:
        """Delete expired holds. The caller owns the commit."""
        removed = self.db.query(SeatHold).filter(
            SeatHold.expires_at <= self.now()
        ).delete()
        if removed:
            logger.info(f"Swept {removed} expired seat holds")
        return removed

    def live_holds(self, schedule_id: int) -> List[SeatHold]:
        return self.db.query(SeatHold).filter(
            SeatHold.schedule_id == schedule_id,
            SeatHold.expires_at > self.now()
        ).all()

    def lock(self, schedule_id: int, seats: List[str], user_id: int) -> HoldSummary:
        """Hold every requested seat for user_id, or none of them"""

        seats = list(dict.fromkeys(seats))
        if not seats:
            raise ValidationError("Schedule ID and seats are required")

        schedule = ledger.get_published_schedule(self.db, schedule_id)
        catalog = ledger.get_screen_seats(self.db, schedule)

        unknown = [seat for seat in seats if seat not in catalog]
        if unknown:
            raise ValidationError(f"Seats not found: {', '.join(unknown)}")

        now = self.now()
        expires_at = now + self.ttl

        try:
            self.sweep()

            booked = ledger.booked_seat_numbers(self.db, schedule_id)
            existing: Dict[str, SeatHold] = {
                hold.seat_number: hold
                for hold in self.db.query(SeatHold).filter(
                    SeatHold.schedule_id == schedule_id,
                    SeatHold.seat_number.in_(seats)
                ).with_for_update().all()
            }

            unavailable = []
            for seat in seats:
                hold = existing.get(seat)
                if catalog[seat].quota_type != "online" or seat in booked:
                    unavailable.append(seat)
                elif hold and hold.user_id != user_id and hold.expires_at > now:
                    unavailable.append(seat)

            if unavailable:
                raise SeatUnavailableError(unavailable)

            for seat in seats:
                hold = existing.get(seat)
                if hold:
                    hold.user_id = user_id
                    hold.expires_at = expires_at
                else:
                    self.db.add(SeatHold(
                        schedule_id=schedule_id,
                        seat_number=seat,
                        user_id=user_id,
                        created_at=now,
                        expires_at=expires_at
                    ))

            self.db.commit()

        except IntegrityError:
            self.db.rollback()
            logger.info(f"Lost hold race on schedule {schedule_id} for user {user_id}")
            raise SeatUnavailableError(seats, "Seats already selected by another user")
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Locked {len(seats)} seats on schedule {schedule_id} for user {user_id}")

        return HoldSummary(
            schedule_id=schedule_id,
            locked_seats=seats,
            expires_at=expires_at,
            expires_in_minutes=int(self.ttl.total_seconds() // 60)
        )

    def release(self, schedule_id: int, user_id: int, seats: Optional[List[str]] = None) -> int:
        """Delete the user's own holds, for the given seats or for the whole schedule"""

        query = self.db.query(SeatHold).filter(
            SeatHold.schedule_id == schedule_id,
            SeatHold.user_id == user_id
        )
        if seats:
            query = query.filter(SeatHold.seat_number.in_(seats))

        released = query.delete()
        self.db.commit()

        logger.info(f"Released {released} seat holds on schedule {schedule_id} for user {user_id}")
        return released
