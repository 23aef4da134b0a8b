"""
Pure price calculation.

Everything here is deterministic: the same inputs always give the same
PriceBreakdown. Nothing is read from or written to the database; callers load the
rate table, discount rule and loyalty balance and apply the redeemed amount
themselves during settlement.
"""

from typing import Dict, List, Optional
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from src.exceptions import ValidationError
from src.pricing.schemas import (
    PriceTier, DiscountType, RateCard, TicketLine, AddOnLine, DiscountRule,
    PricedTicket, PricedAddOn, PriceBreakdown
)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

def money(amount: Decimal) -> Decimal:
    """Round a currency amount to 2 decimals, half up"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)

def is_weekend(day: date) -> bool:
    return day.weekday() >= 5

def resolve_day_type(day: date, is_holiday: bool = False) -> PriceTier:
    if is_holiday:
        return PriceTier.HOLIDAY
    if is_weekend(day):
        return PriceTier.WEEKEND
    return PriceTier.BASE

def resolve_unit_price(rate: RateCard, day_type: PriceTier, weekend: bool = False):
    """Pick the price point for a rate card; holiday beats weekend beats base.

    A tier without a configured price falls through to the next one. A holiday
    only falls back to the weekend price when it is also a Saturday or Sunday.
    """
    if day_type == PriceTier.HOLIDAY and rate.holiday_price is not None:
        return Decimal(rate.holiday_price), PriceTier.HOLIDAY
    if (day_type == PriceTier.WEEKEND or weekend) and rate.weekend_price is not None:
        return Decimal(rate.weekend_price), PriceTier.WEEKEND
    return Decimal(rate.base_price), PriceTier.BASE

def calculate_discount(rule: DiscountRule, subtotal: Decimal) -> Optional[Decimal]:
    """Discount for a subtotal, or None when the order is below the minimum value"""
    if rule.min_order_value is not None and subtotal < Decimal(rule.min_order_value):
        return None

    if rule.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * Decimal(rule.discount_value) / HUNDRED
        if rule.max_discount_amount is not None:
            discount = min(discount, Decimal(rule.max_discount_amount))
    else:
        discount = Decimal(rule.discount_value)

    return money(min(discount, subtotal))

def calculate_price(
    show_date: date,
    tickets: List[TicketLine],
    rates: Dict[str, RateCard],
    add_ons: Optional[List[AddOnLine]] = None,
    platform_fee: Decimal = Decimal("18.00"),
    tax_rate: Decimal = Decimal("0.18"),
    discount_rule: Optional[DiscountRule] = None,
    use_loyalty_points: bool = False,
    loyalty_balance: Decimal = ZERO,
    is_holiday: bool = False,
    currency: str = "INR"
) -> PriceBreakdown:
    """Compute the full price breakdown for an order"""

    if not tickets:
        raise ValidationError("At least one seat or ticket is required")

    day_type = resolve_day_type(show_date, is_holiday)

    # 1. Seats / tickets
    priced_tickets = []
    ticket_price = ZERO
    for line in tickets:
        rate = rates.get(line.rate_key)
        if rate is None:
            raise ValidationError(f"No price configured for category {line.category}")

        unit_price, tier = resolve_unit_price(rate, day_type, is_weekend(show_date))
        line_total = unit_price * line.quantity
        ticket_price += line_total
        priced_tickets.append(PricedTicket(
            id=line.id,
            category=line.category,
            quantity=line.quantity,
            unit_price=unit_price,
            price_tier=tier,
            total=line_total
        ))

    # 2. Add-ons
    priced_add_ons = []
    add_on_price = ZERO
    for item in add_ons or []:
        item_total = Decimal(item.unit_price) * item.quantity
        add_on_price += item_total
        priced_add_ons.append(PricedAddOn(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            unit_price=Decimal(item.unit_price),
            total=item_total
        ))

    # 3. Platform fee
    platform_fee = Decimal(platform_fee)
    subtotal = ticket_price + add_on_price + platform_fee

    # 4. Discount code
    discount = ZERO
    discount_applied = False
    if discount_rule is not None:
        computed = calculate_discount(discount_rule, subtotal)
        if computed is not None:
            discount = computed
            discount_applied = True

    # 5. Loyalty points never push the total below zero
    loyalty_points_used = ZERO
    loyalty_balance = Decimal(loyalty_balance or 0)
    if use_loyalty_points and loyalty_balance > 0:
        loyalty_points_used = min(loyalty_balance, subtotal - discount)

    # 6-7. Tax and total
    taxable_amount = subtotal - discount - loyalty_points_used
    tax = money(taxable_amount * Decimal(tax_rate))
    total = money(taxable_amount + tax)

    return PriceBreakdown(
        day_type=day_type,
        tickets=priced_tickets,
        add_ons=priced_add_ons,
        ticket_price=ticket_price,
        add_on_price=add_on_price,
        platform_fee=platform_fee,
        subtotal=subtotal,
        discount_code=discount_rule.code if discount_rule else None,
        discount_applied=discount_applied,
        discount=discount,
        loyalty_points_used=loyalty_points_used,
        taxable_amount=taxable_amount,
        tax_rate=Decimal(tax_rate),
        tax=tax,
        total=total,
        currency=currency
    )
