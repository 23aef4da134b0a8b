from typing import Callable, Dict, List, Optional, Tuple
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Session

from src.bookings.schemas import ACTIVE_BOOKING_STATUSES, AddOnRequest
from src.clock import utcnow
from src.config import settings
from src.exceptions import ValidationError
from src.inventory import ledger
from src.logger_config import logger
from src.models import (
    Schedule, Event, MovieRate, AddOnItem, DiscountCode, EventTicketCategory, User, Booking
)
from src.pricing.engine import calculate_price
from src.pricing.holidays import HolidayCalendar
from src.pricing.schemas import (
    RateCard, TicketLine, AddOnLine, DiscountRule, DiscountType, PriceBreakdown
)

def load_movie_rates(db: Session, movie_id: int) -> Dict[str, RateCard]:
    """Rate table for a movie, keyed by seat category"""
    rates = db.query(MovieRate).filter(MovieRate.movie_id == movie_id).all()
    return {
        rate.category: RateCard(
            category=rate.category,
            base_price=rate.base_price,
            weekend_price=rate.weekend_price,
            holiday_price=rate.holiday_price
        )
        for rate in rates
    }

def category_rate_card(category: EventTicketCategory) -> RateCard:
    return RateCard(
        category=category.name,
        base_price=category.price,
        weekend_price=category.weekend_price,
        holiday_price=category.holiday_price
    )

class PricingService:
    """Loads rate tables, add-ons, discounts and loyalty balances for the pricing engine.

    Reads only. Nothing here mutates holds, bookings or balances; the settlement
    workflow applies the redeemed amounts itself.
    """

    def __init__(
        self,
        db: Session,
        now: Callable[[], datetime] = utcnow,
        holiday_calendar: Optional[HolidayCalendar] = None
    ):
        self.db = db
        self.now = now
        self.holiday_calendar = holiday_calendar or HolidayCalendar()

    def loyalty_balance(self, user_id: Optional[int]) -> Decimal:
        if user_id is None:
            return Decimal("0")
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            return Decimal("0")
        return Decimal(user.loyalty_points or 0)

    def resolve_discount(
        self,
        code: Optional[str],
        user_id: Optional[int],
        lock: bool = False
    ) -> Tuple[Optional[DiscountCode], Optional[DiscountRule]]:
        """Look up a discount code and check its validity window and usage limits.

        With lock=True the code row is read FOR UPDATE so that concurrent orders
        redeeming the same limited code are counted one after the other.
        """

        if not code:
            return None, None

        query = self.db.query(DiscountCode).filter(
            DiscountCode.code == code.strip(),
            DiscountCode.deleted_at.is_(None)
        )
        if lock:
            query = query.with_for_update()
        discount = query.first()

        if not discount or not discount.is_active:
            raise ValidationError("Invalid discount code")

        today = self.now().date()
        if today < discount.start_date or today > discount.end_date:
            raise ValidationError("Discount code has expired or is not yet active")

        if discount.total_usage_limit is not None or discount.limit_per_user is not None:
            redemptions = self.db.query(Booking).filter(
                Booking.discount_code_id == discount.id,
                Booking.status.in_([status.value for status in ACTIVE_BOOKING_STATUSES]),
                Booking.deleted_at.is_(None)
            )
            if discount.total_usage_limit is not None and redemptions.count() >= discount.total_usage_limit:
                raise ValidationError("Discount code usage limit reached")
            if (
                discount.limit_per_user is not None
                and user_id is not None
                and redemptions.filter(Booking.user_id == user_id).count() >= discount.limit_per_user
            ):
                raise ValidationError("You have already used this discount code")

        rule = DiscountRule(
            code=discount.code,
            discount_type=DiscountType(discount.discount_type),
            discount_value=discount.discount_value,
            max_discount_amount=discount.max_discount_amount,
            min_order_value=discount.min_order_value
        )
        return discount, rule

    def add_on_lines(self, theater_id: int, requested: Optional[List[AddOnRequest]]) -> List[AddOnLine]:
        """Catalog-valid add-ons of the theater; unknown or unavailable items are skipped"""

        if not requested:
            return []

        ids = [item.id for item in requested]
        catalog = {
            item.id: item
            for item in self.db.query(AddOnItem).filter(
                AddOnItem.id.in_(ids),
                AddOnItem.theater_id == theater_id,
                AddOnItem.is_active.is_(True),
                AddOnItem.in_stock.is_(True)
            ).all()
        }

        lines = []
        for item in requested:
            product = catalog.get(item.id)
            if not product:
                logger.debug(f"Skipping add-on {item.id}: not sold at theater {theater_id}")
                continue
            lines.append(AddOnLine(
                id=product.id,
                name=product.name,
                unit_price=product.price,
                quantity=item.quantity
            ))
        return lines

    def price_schedule(
        self,
        schedule: Schedule,
        seats: List[str],
        add_ons: Optional[List[AddOnRequest]] = None,
        discount_code: Optional[str] = None,
        use_loyalty_points: bool = False,
        user_id: Optional[int] = None,
        lock_discount: bool = False
    ) -> Tuple[PriceBreakdown, Optional[DiscountCode]]:
        catalog = ledger.get_screen_seats(self.db, schedule)
        unknown = [seat for seat in seats if seat not in catalog]
        if unknown:
            raise ValidationError(f"Seats not found: {', '.join(unknown)}")

        tickets = [
            TicketLine(
                id=seat,
                category=catalog[seat].category,
                rate_key=catalog[seat].category
            )
            for seat in seats
        ]

        discount, rule = self.resolve_discount(discount_code, user_id, lock=lock_discount)
        breakdown = calculate_price(
            show_date=schedule.show_date,
            tickets=tickets,
            rates=load_movie_rates(self.db, schedule.movie_id),
            add_ons=self.add_on_lines(schedule.movie.theater_id, add_ons),
            platform_fee=settings.PLATFORM_FEE,
            tax_rate=settings.TAX_RATE,
            discount_rule=rule,
            use_loyalty_points=use_loyalty_points,
            loyalty_balance=self.loyalty_balance(user_id),
            is_holiday=self.holiday_calendar.is_holiday(schedule.show_date),
            currency=settings.CURRENCY
        )
        return breakdown, discount

    def price_event(
        self,
        event: Event,
        quantities: Dict[int, int],
        discount_code: Optional[str] = None,
        use_loyalty_points: bool = False,
        user_id: Optional[int] = None,
        lock_discount: bool = False
    ) -> Tuple[PriceBreakdown, Optional[DiscountCode]]:
        categories = {
            category.id: category
            for category in ledger.get_ticket_categories(self.db, event.id, list(quantities.keys()))
        }
        missing = [str(category_id) for category_id in quantities if category_id not in categories]
        if missing:
            raise ValidationError(f"Ticket categories not found: {', '.join(missing)}")

        tickets = []
        rates = {}
        for category_id, quantity in quantities.items():
            category = categories[category_id]
            key = str(category.id)
            rates[key] = category_rate_card(category)
            tickets.append(TicketLine(
                id=key,
                category=category.name,
                rate_key=key,
                quantity=quantity
            ))

        event_date = event.start_date_time.date()
        discount, rule = self.resolve_discount(discount_code, user_id, lock=lock_discount)
        breakdown = calculate_price(
            show_date=event_date,
            tickets=tickets,
            rates=rates,
            platform_fee=settings.PLATFORM_FEE,
            tax_rate=settings.TAX_RATE,
            discount_rule=rule,
            use_loyalty_points=use_loyalty_points,
            loyalty_balance=self.loyalty_balance(user_id),
            is_holiday=self.holiday_calendar.is_holiday(event_date),
            currency=settings.CURRENCY
        )
        return breakdown, discount

    def quote_schedule(self, schedule_id: int, seats: List[str], **options) -> PriceBreakdown:
        schedule = ledger.get_published_schedule(self.db, schedule_id)
        breakdown, _ = self.price_schedule(schedule, list(dict.fromkeys(seats)), **options)
        return breakdown

    def quote_event(self, event_id: int, quantities: Dict[int, int], **options) -> PriceBreakdown:
        event = ledger.get_published_event(self.db, event_id)
        breakdown, _ = self.price_event(event, quantities, **options)
        return breakdown
