from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime

MAX_SEATS_PER_REQUEST = 10

def _validate_seat_list(seats: List[str]) -> List[str]:
    cleaned = [seat.strip() for seat in seats]
    if any(not seat for seat in cleaned):
        raise ValueError('Seat numbers must not be empty')
    if len(set(cleaned)) != len(cleaned):
        raise ValueError('Duplicate seat numbers are not allowed')
    return cleaned

class SeatLockRequest(BaseModel):
    """Seats to hold for the current user"""
    seats: List[str] = Field(..., min_length=1, max_length=MAX_SEATS_PER_REQUEST)

    @validator('seats')
    def validate_seats(cls, v):
        return _validate_seat_list(v)

class SeatUnlockRequest(BaseModel):
    """Seats to release; omit to release every seat the user holds on the schedule"""
    seats: Optional[List[str]] = None

class HoldSummary(BaseModel):
    schedule_id: int
    locked_seats: List[str]
    expires_at: datetime
    expires_in_minutes: int

class ReleaseSummary(BaseModel):
    schedule_id: int
    released_count: int
