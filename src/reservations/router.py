from fastapi import APIRouter, Depends

from src.auth.dependencies import get_current_user_id
from src.bookings.booking_service import BookingService
from src.bookings.dependencies import get_booking_service
from src.reservations.schemas import SeatLockRequest, SeatUnlockRequest, HoldSummary, ReleaseSummary

router = APIRouter()

@router.post("/schedules/{schedule_id}/locks", response_model=HoldSummary)
def lock_seats(
    schedule_id: int,
    request: SeatLockRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Hold seats for the current user for the hold TTL; all or nothing"""

    # Seats of abandoned pending bookings go back on sale first
    service.cancel_stale()
    return service.reservations.lock(schedule_id, request.seats, user_id)

@router.post("/schedules/{schedule_id}/unlock", response_model=ReleaseSummary)
def unlock_seats(
    schedule_id: int,
    request: SeatUnlockRequest,
    user_id: int = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Release the current user's holds on a schedule"""
    released = service.reservations.release(schedule_id, user_id, request.seats)
    return ReleaseSummary(schedule_id=schedule_id, released_count=released)
