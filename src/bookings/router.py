from fastapi import APIRouter, Depends
from datetime import datetime
from typing import Callable
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user_id
from src.bookings.booking_service import BookingService
from src.bookings.dependencies import get_booking_service
from src.bookings.schemas import (
    TheaterOrderRequest, EventOrderRequest, PaymentVerificationRequest, PaymentFailureRequest,
    TestPaymentRequest, OrderCreated, TestPaymentCredentials, BookingConfirmation,
    PaymentFailureResult, StaleCleanupResult, BookingDetails
)
from src.clock import get_clock
from src.database import get_db
from src.pricing.schemas import PriceBreakdown
from src.pricing.service import PricingService

router = APIRouter()
events_router = APIRouter()

# Theater Bookings
@router.post("/quote", response_model=PriceBreakdown)
def quote_theater_order(
    request: TheaterOrderRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    now: Callable[[], datetime] = Depends(get_clock)
):
    """Price breakdown for seats and add-ons; nothing is held or persisted"""

    pricing = PricingService(db, now=now)
    return pricing.quote_schedule(
        request.schedule_id,
        request.seats,
        add_ons=request.add_ons,
        discount_code=request.discount_code,
        use_loyalty_points=request.use_loyalty_points,
        user_id=user_id
    )

@router.post("/orders", response_model=OrderCreated)
def create_theater_order(
    request: TheaterOrderRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Create a gateway order and a pending booking for the selected seats"""
    return service.create_theater_order(request, user_id)

# Payments
@router.post("/verify-payment", response_model=BookingConfirmation)
def verify_payment(
    request: PaymentVerificationRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Verify the gateway signature and confirm the booking"""
    return service.verify_payment(request, user_id)

@router.post("/payment-failed", response_model=PaymentFailureResult)
def payment_failed(
    request: PaymentFailureRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Report a failed or abandoned payment; the pending booking is cancelled"""
    return service.mark_payment_failed(request, user_id)

@router.post("/test-payment", response_model=TestPaymentCredentials)
def test_payment(
    request: TestPaymentRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Signed payment proof for an order; only available in payment test mode"""

    return service.simulate_payment(request, user_id)

# Maintenance
@router.post("/maintenance/cancel-stale", response_model=StaleCleanupResult)
def cancel_stale_bookings(
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Cancel pending bookings past the hold TTL and sweep expired holds"""
    return service.cancel_stale()

@router.get("/{booking_id}", response_model=BookingDetails)
def get_booking(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Booking details for its owner"""
    return service.get_booking(booking_id, user_id)

# Event Bookings
@events_router.post("/quote", response_model=PriceBreakdown)
def quote_event_order(
    request: EventOrderRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    now: Callable[[], datetime] = Depends(get_clock)
):
    """Price breakdown for event ticket categories"""

    pricing = PricingService(db, now=now)
    return pricing.quote_event(
        request.event_id,
        request.quantities,
        discount_code=request.discount_code,
        use_loyalty_points=request.use_loyalty_points,
        user_id=user_id
    )

@events_router.post("/orders", response_model=OrderCreated)
def create_event_order(
    request: EventOrderRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Create a gateway order and a pending booking for event tickets"""
    return service.create_event_order(request, user_id)
