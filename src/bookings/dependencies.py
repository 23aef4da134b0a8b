from datetime import datetime
from typing import Callable
from fastapi import Depends
from sqlalchemy.orm import Session

from src.bookings.booking_service import BookingService
from src.clock import get_clock
from src.database import get_db
from src.payments.gateway import PaymentGateway, get_payment_gateway

def get_booking_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    now: Callable[[], datetime] = Depends(get_clock)
) -> BookingService:
    return BookingService(db, gateway, now=now)
