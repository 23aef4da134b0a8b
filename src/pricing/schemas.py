from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from enum import Enum

class PriceTier(str, Enum):
    """Calendar rule applied to a rate card"""
    BASE = "base"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"

class RateCard(BaseModel):
    """Price points for one seat category or ticket category"""
    category: str
    base_price: Decimal
    weekend_price: Optional[Decimal] = None
    holiday_price: Optional[Decimal] = None

class TicketLine(BaseModel):
    """A seat or ticket-category line to be priced"""
    id: str
    category: str
    rate_key: str
    quantity: int = Field(1, ge=1)

class AddOnLine(BaseModel):
    """A catalog-valid add-on item with its current price"""
    id: int
    name: str
    unit_price: Decimal
    quantity: int = Field(..., ge=1)

class DiscountRule(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_order_value: Optional[Decimal] = None

class PricedTicket(BaseModel):
    id: str
    category: str
    quantity: int
    unit_price: Decimal
    price_tier: PriceTier
    total: Decimal

class PricedAddOn(BaseModel):
    id: int
    name: str
    quantity: int
    unit_price: Decimal
    total: Decimal

class PriceBreakdown(BaseModel):
    """Complete, reproducible price computation for an order"""
    day_type: PriceTier
    tickets: List[PricedTicket]
    add_ons: List[PricedAddOn] = []
    ticket_price: Decimal
    add_on_price: Decimal
    platform_fee: Decimal
    subtotal: Decimal
    discount_code: Optional[str] = None
    discount_applied: bool = False
    discount: Decimal
    loyalty_points_used: Decimal
    taxable_amount: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    currency: str = "INR"
