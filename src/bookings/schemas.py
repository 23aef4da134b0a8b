from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict
from datetime import datetime, date, time
from decimal import Decimal
from enum import Enum, IntEnum

from src.pricing.schemas import PriceBreakdown, PricedAddOn
from src.reservations.schemas import MAX_SEATS_PER_REQUEST, _validate_seat_list

class BookingStatus(IntEnum):
    """Booking status codes as stored on the bookings table"""
    PENDING = 0
    CONFIRMED = 1
    CANCELLED = 2
    COMPLETED = 3

# Statuses whose seats / ticket quantities count against inventory
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.COMPLETED,
)

class TransactionStatus(str, Enum):
    """Payment transaction status enumeration"""
    CREATED = "created"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"

class BookingKind(str, Enum):
    THEATER = "theater"
    EVENT = "event"

# Order Requests
class AddOnRequest(BaseModel):
    """Food & beverage item to add to a theater order"""
    id: int
    quantity: int = Field(1, ge=1, le=20)

class TheaterOrderRequest(BaseModel):
    """Request to quote or order seats for a schedule"""
    schedule_id: int
    seats: List[str] = Field(..., min_length=1, max_length=MAX_SEATS_PER_REQUEST)
    add_ons: List[AddOnRequest] = []
    discount_code: Optional[str] = None
    use_loyalty_points: bool = False

    @validator('seats')
    def validate_seats(cls, v):
        return _validate_seat_list(v)

    @validator('discount_code')
    def normalize_discount_code(cls, v):
        if v is not None:
            v = v.strip()
        return v or None

class EventTicketRequest(BaseModel):
    id: int
    quantity: int = Field(..., ge=1, le=MAX_SEATS_PER_REQUEST)

class EventOrderRequest(BaseModel):
    """Request to quote or order ticket categories for a live event"""
    event_id: int
    tickets: List[EventTicketRequest] = Field(..., min_length=1)
    discount_code: Optional[str] = None
    use_loyalty_points: bool = False

    @validator('tickets')
    def validate_tickets(cls, v):
        ids = [ticket.id for ticket in v]
        if len(set(ids)) != len(ids):
            raise ValueError('Each ticket category may appear only once')
        return v

    @validator('discount_code')
    def normalize_discount_code(cls, v):
        if v is not None:
            v = v.strip()
        return v or None

    @property
    def quantities(self) -> Dict[int, int]:
        return {ticket.id: ticket.quantity for ticket in self.tickets}

# Payment Requests
class PaymentVerificationRequest(BaseModel):
    """Payment proof returned by the gateway checkout"""
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)

class PaymentFailureRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)

class TestPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)

# Snapshots stored in JSON columns
class SnapshotItem(BaseModel):
    """Seat or ticket category captured at order time"""
    id: str
    category: str
    unit_price: Decimal
    quantity: int = 1
    total: Decimal

class PaymentSnapshot(BaseModel):
    """Everything verification and confirmation need, frozen when the order is created"""
    kind: BookingKind
    title: str
    venue: Optional[str] = None
    screen: Optional[str] = None
    show_date: date
    show_time: time
    items: List[SnapshotItem]
    add_ons: List[PricedAddOn] = []
    breakdown: PriceBreakdown
    discount_code_id: Optional[int] = None

# Responses
class OrderCreated(BaseModel):
    """Gateway order plus the pending booking it pays for"""
    booking_id: int
    booking_number: str
    order_id: str
    amount: Decimal
    amount_minor: int
    currency: str
    key_id: str
    test_mode: bool = False
    expires_at: datetime
    breakdown: PriceBreakdown

class TestPaymentCredentials(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

class BookingConfirmation(BaseModel):
    booking_id: int
    booking_number: str
    status: BookingStatus
    payment_id: str
    amount: Decimal
    loyalty_points_used: Decimal
    qr_code_url: Optional[str] = None

class PaymentFailureResult(BaseModel):
    booking_id: int
    booking_number: str
    booking_status: BookingStatus
    transaction_status: TransactionStatus

class StaleCleanupResult(BaseModel):
    cancelled_bookings: int
    swept_holds: int

class BookingDetails(BaseModel):
    """Booking as shown to its owner"""
    id: int
    booking_number: str
    kind: BookingKind
    status: BookingStatus
    schedule_id: Optional[int] = None
    event_id: Optional[int] = None
    title: Optional[str] = None
    venue: Optional[str] = None
    show_date: Optional[date] = None
    show_time: Optional[time] = None
    items: List[SnapshotItem]
    add_ons: List[PricedAddOn] = []
    quantity: int
    total_amount: Decimal
    breakdown: Optional[PriceBreakdown] = None
    transaction_status: Optional[TransactionStatus] = None
    qr_code_url: Optional[str] = None
    created_at: datetime
