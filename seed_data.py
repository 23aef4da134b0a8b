#!/usr/bin/env python3

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session
from src.database import Base, SessionLocal, engine
from src.models import (
    User, Theater, Screen, ScreenSeat, Movie, MovieRate, Schedule, AddOnItem,
    Event, EventTicketCategory, DiscountCode
)

SEAT_ROWS = {
    "A": "Premium",
    "B": "Premium",
    "C": "Executive",
    "D": "Executive",
    "E": "Normal",
}
SEATS_PER_ROW = 10

def populate(db: Session, today: date) -> dict:
    """Add the demo catalog and return how many rows of each kind were created"""

    now = datetime.combine(today, time(9, 0))

    # 1. Customer with loyalty points
    user = User(
        name="Demo Customer",
        email="demo@showtime.local",
        phone="9000000000",
        loyalty_points=Decimal("150.00"),
        created_at=now,
        updated_at=now
    )
    db.add(user)

    # 2. Theater, screen and seat catalog
    theater = Theater(name="Showtime Cinemas", address="12 MG Road", city="Bengaluru")
    db.add(theater)
    db.flush()

    screen = Screen(theater_id=theater.id, name="Audi 1")
    db.add(screen)
    db.flush()

    seats = []
    for row, category in SEAT_ROWS.items():
        for column in range(1, SEATS_PER_ROW + 1):
            seats.append(ScreenSeat(
                screen_id=screen.id,
                seat_number=f"{row}{column}",
                row=row,
                column=column,
                category=category,
                # Last two seats of row E are sold at the box office only
                quota_type="counter" if row == "E" and column > SEATS_PER_ROW - 2 else "online"
            ))
    db.add_all(seats)

    # 3. Movie, rate table and a week of schedules
    movie = Movie(theater_id=theater.id, title="The Long Night")
    db.add(movie)
    db.flush()

    rates = [
        MovieRate(movie_id=movie.id, category="Premium", base_price=Decimal("350.00"),
                  weekend_price=Decimal("420.00"), holiday_price=Decimal("450.00")),
        MovieRate(movie_id=movie.id, category="Executive", base_price=Decimal("250.00"),
                  weekend_price=Decimal("300.00")),
        MovieRate(movie_id=movie.id, category="Normal", base_price=Decimal("200.00")),
    ]
    db.add_all(rates)

    schedules = []
    for offset in range(7):
        for show_time in (time(13, 30), time(19, 0)):
            schedules.append(Schedule(
                movie_id=movie.id,
                screen_id=screen.id,
                show_date=today + timedelta(days=offset),
                show_time=show_time,
                status="1"
            ))
    db.add_all(schedules)

    # 4. Food & beverage
    add_ons = [
        AddOnItem(theater_id=theater.id, name="Salted Popcorn (L)", price=Decimal("180.00")),
        AddOnItem(theater_id=theater.id, name="Cold Coffee", price=Decimal("140.00")),
        AddOnItem(theater_id=theater.id, name="Nachos", price=Decimal("160.00"), in_stock=False),
    ]
    db.add_all(add_ons)

    # 5. Live event with ticket categories
    event = Event(
        name="Indie Nights Live",
        venue_name="Palace Grounds",
        city="Bengaluru",
        address="Jayamahal Road",
        start_date_time=datetime.combine(today + timedelta(days=10), time(18, 30)),
        status="1"
    )
    db.add(event)
    db.flush()

    categories = [
        EventTicketCategory(event_id=event.id, name="General", price=Decimal("799.00"),
                            total_quantity=500, description="Standing area"),
        EventTicketCategory(event_id=event.id, name="Fan Pit", price=Decimal("1499.00"),
                            weekend_price=Decimal("1699.00"), total_quantity=150),
        EventTicketCategory(event_id=event.id, name="VIP Lounge", price=Decimal("3999.00"),
                            total_quantity=40, description="Seated lounge with food counter"),
    ]
    db.add_all(categories)

    # 6. Discount codes
    discounts = [
        DiscountCode(code="WELCOME10", title="10% off, up to 100", discount_type="percentage",
                     discount_value=Decimal("10"), max_discount_amount=Decimal("100"),
                     min_order_value=Decimal("300"), start_date=today,
                     end_date=today + timedelta(days=90), limit_per_user=1),
        DiscountCode(code="FLAT50", title="Flat 50 off", discount_type="flat",
                     discount_value=Decimal("50"), start_date=today,
                     end_date=today + timedelta(days=30), total_usage_limit=1000),
    ]
    db.add_all(discounts)

    return {
        "users": 1,
        "seats": len(seats),
        "rates": len(rates),
        "schedules": len(schedules),
        "add_ons": len(add_ons),
        "ticket_categories": len(categories),
        "discount_codes": len(discounts),
    }

def create_seed_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        print("🚀 Creating seed data for Showtime Ticketing...")
        created = populate(db, date.today())
        db.commit()

        print("✅ Successfully created seed data!")
        print("Created:")
        for name, count in created.items():
            print(f"  - {count} {name.replace('_', ' ')}")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
