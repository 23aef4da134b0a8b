from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import date, time
from decimal import Decimal
from enum import Enum

from src.pricing.schemas import PriceTier

class SeatStatus(str, Enum):
    """Seat status as seen by the requesting customer"""
    AVAILABLE = "available"
    HELD_BY_ME = "held_by_me"
    HELD_BY_OTHER = "held_by_other"
    BOOKED = "booked"

class SeatView(BaseModel):
    seat_number: str
    row: str
    column: int
    category: str
    price: Optional[Decimal] = None
    status: SeatStatus

class SeatLayout(BaseModel):
    """Online seat map for a schedule with per-seat availability"""
    schedule_id: int
    movie_title: str
    theater_id: int
    theater_name: str
    screen: str
    show_date: date
    show_time: time
    day_type: PriceTier
    pricing: Dict[str, Decimal]
    rows: List[str]
    seats: List[SeatView]
    total_online_seats: int
    available_seats: int
    held_seats: int
    booked_count: int

class TicketCategoryView(BaseModel):
    id: int
    name: str
    price: Decimal
    total_quantity: int
    available_quantity: int
    description: Optional[str] = None

class EventAvailability(BaseModel):
    """Purchasable ticket categories for an event; sold-out categories are omitted"""
    event_id: int
    event_name: str
    venue_name: Optional[str] = None
    city: Optional[str] = None
    date: date
    time: time
    day_type: PriceTier
    tickets: List[TicketCategoryView]
