from typing import Callable, List, Optional, Union, Dict
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import secrets

from src.bookings.schemas import (
    BookingStatus, TransactionStatus, BookingKind, TheaterOrderRequest, EventOrderRequest,
    PaymentVerificationRequest, PaymentFailureRequest, TestPaymentRequest, SnapshotItem,
    PaymentSnapshot, OrderCreated, TestPaymentCredentials, BookingConfirmation,
    PaymentFailureResult, StaleCleanupResult, BookingDetails
)
from src.bookings.ticket_service import TicketService
from src.clock import utcnow
from src.config import settings
from src.exceptions import (
    AppError, ConflictError, NotFoundError, PaymentVerificationError, InternalError
)
from src.inventory import ledger
from src.inventory.service import InventoryStrategy, SeatInventory, CategoryInventory
from src.logger_config import logger
from src.models import Booking, BookingSequence, PaymentTransaction, User
from src.payments.gateway import PaymentGateway, to_minor_units, generate_receipt_id
from src.pricing.holidays import HolidayCalendar
from src.pricing.schemas import PriceBreakdown
from src.pricing.service import PricingService
from src.reservations.service import ReservationManager

BOOKING_NUMBER_ATTEMPTS = 3

class BookingService:
    """Order and settlement workflow for theater seats and event tickets.

    create order -> pending booking + gateway order -> signature-verified
    confirmation, with stale pending bookings cancelled after the hold TTL.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        tickets: Optional[TicketService] = None,
        now: Callable[[], datetime] = utcnow,
        holiday_calendar: Optional[HolidayCalendar] = None
    ):
        self.db = db
        self.gateway = gateway
        self.tickets = tickets or TicketService()
        self.now = now
        self.reservations = ReservationManager(db, now=now)
        self.pricing = PricingService(db, now=now, holiday_calendar=holiday_calendar)
        self.seat_inventory = SeatInventory(db, self.reservations, now, holiday_calendar)
        self.category_inventory = CategoryInventory(db, now, holiday_calendar)

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------
    def create_theater_order(self, request: TheaterOrderRequest, user_id: int) -> OrderCreated:
        """Hold the seats, price them and open a gateway order for a pending booking"""

        self.cancel_stale()

        schedule = ledger.get_published_schedule(self.db, request.schedule_id)
        seats = request.seats

        # Re-acquires or extends the hold even when the client locked already
        self.seat_inventory.reserve(schedule.id, seats, user_id)

        breakdown, discount = self.pricing.price_schedule(
            schedule,
            seats,
            add_ons=request.add_ons,
            discount_code=request.discount_code,
            use_loyalty_points=request.use_loyalty_points,
            user_id=user_id
        )

        movie = schedule.movie
        snapshot = PaymentSnapshot(
            kind=BookingKind.THEATER,
            title=movie.title,
            venue=movie.theater.name,
            screen=schedule.screen.name,
            show_date=schedule.show_date,
            show_time=schedule.show_time,
            items=_snapshot_items(breakdown),
            add_ons=breakdown.add_ons,
            breakdown=breakdown,
            discount_code_id=discount.id if discount and breakdown.discount_applied else None
        )

        return self._place_order(
            inventory=self.seat_inventory,
            target_id=schedule.id,
            lines=seats,
            snapshot=snapshot,
            user_id=user_id
        )

    def create_event_order(self, request: EventOrderRequest, user_id: int) -> OrderCreated:
        """Check remaining category counts, price the tickets and open a gateway order"""

        self.cancel_stale()

        event = ledger.get_published_event(self.db, request.event_id)
        quantities = request.quantities

        self.category_inventory.reserve(event.id, quantities, user_id)

        breakdown, discount = self.pricing.price_event(
            event,
            quantities,
            discount_code=request.discount_code,
            use_loyalty_points=request.use_loyalty_points,
            user_id=user_id
        )

        snapshot = PaymentSnapshot(
            kind=BookingKind.EVENT,
            title=event.name,
            venue=event.venue_name,
            show_date=event.start_date_time.date(),
            show_time=event.start_date_time.time(),
            items=_snapshot_items(breakdown),
            breakdown=breakdown,
            discount_code_id=discount.id if discount and breakdown.discount_applied else None
        )

        return self._place_order(
            inventory=self.category_inventory,
            target_id=event.id,
            lines=quantities,
            snapshot=snapshot,
            user_id=user_id
        )

    def _place_order(
        self,
        inventory: InventoryStrategy,
        target_id: int,
        lines: Union[List[str], Dict[int, int]],
        snapshot: PaymentSnapshot,
        user_id: int
    ) -> OrderCreated:
        breakdown = snapshot.breakdown
        booking_number = self._next_booking_number()
        receipt_id = generate_receipt_id(user_id, self.now())
        amount_minor = to_minor_units(breakdown.total)

        # Nothing is persisted if this raises
        gateway_order = self.gateway.create_order(
            amount_minor,
            receipt_id,
            notes={"booking_number": booking_number, "user_id": str(user_id)}
        )

        now = self.now()
        try:
            inventory.assert_bookable(target_id, lines, user_id)
            if snapshot.discount_code_id is not None:
                # Usage limits are counted again while holding the code's row lock
                self.pricing.resolve_discount(breakdown.discount_code, user_id, lock=True)

            booking = Booking(
                booking_number=booking_number,
                kind=snapshot.kind.value,
                user_id=user_id,
                schedule_id=target_id if snapshot.kind == BookingKind.THEATER else None,
                event_id=target_id if snapshot.kind == BookingKind.EVENT else None,
                items=[item.model_dump(mode="json") for item in snapshot.items],
                add_ons=[item.model_dump(mode="json") for item in snapshot.add_ons],
                quantity=sum(item.quantity for item in snapshot.items),
                total_amount=breakdown.total,
                status=BookingStatus.PENDING.value,
                discount_code_id=snapshot.discount_code_id,
                payment_information={
                    "gateway_order_id": gateway_order.id,
                    "receipt_id": receipt_id,
                    "amount_minor": amount_minor,
                    "currency": gateway_order.currency
                },
                created_at=now,
                updated_at=now
            )
            self.db.add(booking)
            self.db.flush()

            transaction = PaymentTransaction(
                user_id=user_id,
                booking_id=booking.id,
                gateway_order_id=gateway_order.id,
                amount=breakdown.total,
                currency=gateway_order.currency,
                status=TransactionStatus.PENDING.value,
                payment_details=snapshot.model_dump(mode="json"),
                created_at=now,
                updated_at=now
            )
            self.db.add(transaction)
            self.db.commit()

        except AppError:
            self.db.rollback()
            logger.warning(
                f"Gateway order {gateway_order.id} left unreferenced for reconciliation "
                f"(booking {booking_number} not persisted)"
            )
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to persist booking {booking_number}; gateway order {gateway_order.id} "
                f"left unreferenced for reconciliation: {e}"
            )
            raise InternalError("Failed to create booking")

        logger.info(
            f"Created {snapshot.kind.value} booking {booking_number} for user {user_id} "
            f"(order {gateway_order.id}, total {breakdown.total})"
        )

        return OrderCreated(
            booking_id=booking.id,
            booking_number=booking_number,
            order_id=gateway_order.id,
            amount=breakdown.total,
            amount_minor=amount_minor,
            currency=gateway_order.currency,
            key_id=self.gateway.key_id,
            test_mode=self.gateway.test_mode,
            expires_at=now + timedelta(minutes=settings.HOLD_TTL_MINUTES),
            breakdown=breakdown
        )

    def _next_booking_number(self) -> str:
        """BK + YYYYMMDD + 3-digit daily sequence, from a row-locked per-day counter"""

        today = self.now().date()
        for attempt in range(1, BOOKING_NUMBER_ATTEMPTS + 1):
            try:
                sequence = self.db.query(BookingSequence).filter(
                    BookingSequence.sequence_date == today
                ).with_for_update().first()
                if sequence is None:
                    sequence = BookingSequence(sequence_date=today, last_value=0)
                    self.db.add(sequence)
                sequence.last_value += 1
                value = sequence.last_value
                self.db.commit()
                return f"BK{today.strftime('%Y%m%d')}{value:03d}"
            except IntegrityError:
                # Another request created today's counter first
                self.db.rollback()
                logger.warning(f"Booking sequence race for {today}, attempt {attempt}")

        raise InternalError("Could not allocate a booking number")

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------
    def verify_payment(self, request: PaymentVerificationRequest, user_id: int) -> BookingConfirmation:
        """Confirm the booking behind a gateway order, exactly once"""

        order_id = request.razorpay_order_id
        payment_id = request.razorpay_payment_id

        if not self.gateway.verify_signature(order_id, payment_id, request.razorpay_signature):
            self._record_invalid_signature(order_id, user_id)
            raise PaymentVerificationError()

        try:
            transaction = self._get_transaction(order_id, user_id, lock=True)

            if transaction.status == TransactionStatus.SUCCESS.value:
                raise ConflictError("Payment already verified")

            booking = self.db.query(Booking).filter(
                Booking.id == transaction.booking_id
            ).with_for_update().first()
            if not booking:
                raise NotFoundError("Booking not found")

            now = self.now()
            if booking.status == BookingStatus.CANCELLED.value:
                self._fail_captured_payment(
                    transaction, booking, payment_id, "Booking expired before payment was verified"
                )
                raise ConflictError("Booking has expired")

            snapshot = PaymentSnapshot.model_validate(transaction.payment_details)
            breakdown = snapshot.breakdown
            loyalty_used = breakdown.loyalty_points_used

            if loyalty_used > 0:
                user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
                if not user or Decimal(user.loyalty_points or 0) < loyalty_used:
                    self._fail_captured_payment(
                        transaction, booking, payment_id, "Insufficient loyalty points at verification"
                    )
                    raise ConflictError("Insufficient loyalty points")
                user.loyalty_points = Decimal(user.loyalty_points) - loyalty_used
                user.updated_at = now

            booking.status = BookingStatus.CONFIRMED.value
            booking.payment_information = {
                **(booking.payment_information or {}),
                "gateway_payment_id": payment_id,
                "discount_code": breakdown.discount_code,
                "discount": str(breakdown.discount),
                "loyalty_points_used": str(loyalty_used),
                "verified_at": now.isoformat()
            }
            booking.updated_at = now

            transaction.status = TransactionStatus.SUCCESS.value
            transaction.gateway_payment_id = payment_id
            transaction.gateway_signature = request.razorpay_signature
            transaction.error_description = None
            transaction.payment_details = {
                **transaction.payment_details,
                "gateway_payment_id": payment_id,
                "verified_at": now.isoformat()
            }
            transaction.updated_at = now

            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Payment verification for order {order_id} rolled back: {e}")
            raise InternalError("Payment verification failed")

        logger.info(f"Booking {booking.booking_number} confirmed with payment {payment_id}")

        self._release_holds(booking, snapshot, user_id)
        qr_code_url = self._render_ticket(booking, snapshot)

        return BookingConfirmation(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            status=BookingStatus.CONFIRMED,
            payment_id=payment_id,
            amount=booking.total_amount,
            loyalty_points_used=loyalty_used,
            qr_code_url=qr_code_url
        )

    def _fail_captured_payment(self, transaction: PaymentTransaction, booking: Booking,
                               payment_id: str, reason: str):
        """Persist a captured payment that cannot confirm its booking, for refund"""

        now = self.now()
        transaction.status = TransactionStatus.FAILED.value
        transaction.gateway_payment_id = payment_id
        transaction.error_description = reason
        transaction.updated_at = now
        if booking.status == BookingStatus.PENDING.value:
            booking.status = BookingStatus.CANCELLED.value
            booking.updated_at = now
        self.db.commit()

        logger.warning(
            f"Payment {payment_id} captured for booking {booking.booking_number} "
            f"but not applied ({reason}); needs refund reconciliation"
        )

    def mark_payment_failed(self, request: PaymentFailureRequest, user_id: int) -> PaymentFailureResult:
        """Record a failed payment and cancel its pending booking"""

        try:
            transaction = self._get_transaction(request.razorpay_order_id, user_id, lock=True)
            if transaction.status == TransactionStatus.SUCCESS.value:
                raise ConflictError("Payment already verified")

            now = self.now()
            transaction.status = TransactionStatus.FAILED.value
            transaction.error_description = request.reason or "Payment failed"
            transaction.updated_at = now

            booking = transaction.booking
            if booking.status == BookingStatus.PENDING.value:
                booking.status = BookingStatus.CANCELLED.value
                booking.updated_at = now

            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Payment failure report for order {request.razorpay_order_id} rolled back: {e}")
            raise InternalError("Could not record payment failure")

        logger.info(
            f"Payment for order {request.razorpay_order_id} failed; "
            f"booking {booking.booking_number} status {booking.status}"
        )

        snapshot = PaymentSnapshot.model_validate(transaction.payment_details)
        self._release_holds(booking, snapshot, user_id)

        return PaymentFailureResult(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            booking_status=BookingStatus(booking.status),
            transaction_status=TransactionStatus.FAILED
        )

    def simulate_payment(self, request: TestPaymentRequest, user_id: int) -> TestPaymentCredentials:
        """Test mode only: payment id plus a correctly signed signature for the order"""

        if not settings.PAYMENT_TEST_MODE:
            raise NotFoundError("Not found")

        transaction = self._get_transaction(request.razorpay_order_id, user_id)
        payment_id = f"pay_test_{secrets.token_hex(7)}"

        return TestPaymentCredentials(
            razorpay_order_id=transaction.gateway_order_id,
            razorpay_payment_id=payment_id,
            razorpay_signature=self.gateway.sign(transaction.gateway_order_id, payment_id)
        )

    def cancel_stale(self) -> StaleCleanupResult:
        """Cancel pending bookings older than the hold TTL and sweep expired holds"""

        now = self.now()
        cutoff = now - timedelta(minutes=settings.HOLD_TTL_MINUTES)

        try:
            stale = self.db.query(Booking).filter(
                Booking.status == BookingStatus.PENDING.value,
                Booking.created_at < cutoff,
                Booking.deleted_at.is_(None)
            ).with_for_update().all()

            for booking in stale:
                booking.status = BookingStatus.CANCELLED.value
                booking.updated_at = now

            swept = self.reservations.sweep()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if stale:
            logger.info(
                f"Cancelled {len(stale)} stale pending bookings: "
                f"{', '.join(booking.booking_number for booking in stale)}"
            )

        return StaleCleanupResult(cancelled_bookings=len(stale), swept_holds=swept)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_booking(self, booking_id: int, user_id: int) -> BookingDetails:
        booking = self.db.query(Booking).filter(
            Booking.id == booking_id,
            Booking.user_id == user_id,
            Booking.deleted_at.is_(None)
        ).first()
        if not booking:
            raise NotFoundError("Booking not found")

        transaction = booking.transaction
        snapshot = None
        if transaction and transaction.payment_details:
            snapshot = PaymentSnapshot.model_validate(transaction.payment_details)

        return BookingDetails(
            id=booking.id,
            booking_number=booking.booking_number,
            kind=BookingKind(booking.kind),
            status=BookingStatus(booking.status),
            schedule_id=booking.schedule_id,
            event_id=booking.event_id,
            title=snapshot.title if snapshot else None,
            venue=snapshot.venue if snapshot else None,
            show_date=snapshot.show_date if snapshot else None,
            show_time=snapshot.show_time if snapshot else None,
            items=[SnapshotItem.model_validate(item) for item in booking.items or []],
            add_ons=snapshot.add_ons if snapshot else [],
            quantity=booking.quantity,
            total_amount=booking.total_amount,
            breakdown=snapshot.breakdown if snapshot else None,
            transaction_status=TransactionStatus(transaction.status) if transaction else None,
            qr_code_url=booking.qr_code_url,
            created_at=booking.created_at
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _get_transaction(self, order_id: str, user_id: int, lock: bool = False) -> PaymentTransaction:
        query = self.db.query(PaymentTransaction).filter(
            PaymentTransaction.gateway_order_id == order_id,
            PaymentTransaction.user_id == user_id
        )
        if lock:
            query = query.with_for_update()
        transaction = query.first()
        if not transaction:
            raise NotFoundError("Transaction not found")
        return transaction

    def _record_invalid_signature(self, order_id: str, user_id: int) -> None:
        """Mark the requester's own transaction failed; the booking is left pending"""
        transaction = self.db.query(PaymentTransaction).filter(
            PaymentTransaction.gateway_order_id == order_id,
            PaymentTransaction.user_id == user_id
        ).with_for_update().first()

        if transaction and transaction.status != TransactionStatus.SUCCESS.value:
            transaction.status = TransactionStatus.FAILED.value
            transaction.error_description = "Invalid payment signature"
            transaction.updated_at = self.now()
            self.db.commit()
        else:
            self.db.rollback()

        logger.warning(f"Invalid payment signature for order {order_id} from user {user_id}")

    def _release_holds(self, booking: Booking, snapshot: PaymentSnapshot, user_id: int) -> None:
        if booking.kind != BookingKind.THEATER.value:
            return
        try:
            self.seat_inventory.release(
                booking.schedule_id, [item.id for item in snapshot.items], user_id
            )
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Could not release holds for booking {booking.booking_number}: {e}")

    def _render_ticket(self, booking: Booking, snapshot: PaymentSnapshot) -> Optional[str]:
        try:
            booking.qr_code_url = self.tickets.render(booking, snapshot)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Ticket artifact for booking {booking.booking_number} not generated: {e}")
            return None
        return booking.qr_code_url

def _snapshot_items(breakdown: PriceBreakdown) -> List[SnapshotItem]:
    return [
        SnapshotItem(
            id=ticket.id,
            category=ticket.category,
            unit_price=ticket.unit_price,
            quantity=ticket.quantity,
            total=ticket.total
        )
        for ticket in breakdown.tickets
    ]
