from fastapi import APIRouter, Depends
from typing import Optional

from src.auth.dependencies import get_optional_user_id
from src.bookings.booking_service import BookingService
from src.bookings.dependencies import get_booking_service
from src.inventory.schemas import SeatLayout, EventAvailability

router = APIRouter()

@router.get("/schedules/{schedule_id}/seats", response_model=SeatLayout)
def get_seat_layout(
    schedule_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Online seat map with availability as seen by the requester"""

    # Expired holds and stale pending bookings must not show as taken
    service.cancel_stale()
    return service.seat_inventory.availability(schedule_id, user_id)

@router.get("/events/{event_id}/tickets", response_model=EventAvailability)
def get_event_tickets(
    event_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Ticket categories that still have tickets left"""

    service.cancel_stale()
    return service.category_inventory.availability(event_id)
