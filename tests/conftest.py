"""Pytest configuration and shared fixtures."""

import os
import tempfile

# Must be set before src.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_secret"
os.environ["PAYMENT_TEST_MODE"] = "false"
os.environ["STATIC_DIR"] = tempfile.mkdtemp(prefix="showtime-static-")

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from types import SimpleNamespace
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.auth.utils import create_access_token
from src.bookings.booking_service import BookingService
from src.bookings.ticket_service import TicketService
from src.clock import get_clock
from src.database import Base, get_db
from src.main import app
from src.models import (
    User, Theater, Screen, ScreenSeat, Movie, MovieRate, Schedule, AddOnItem,
    Event, EventTicketCategory, DiscountCode
)
from src.payments.gateway import GatewayOrder, PaymentGateway, compute_signature, get_payment_gateway
from src.reservations.service import ReservationManager

# Wednesday, so base prices apply
SHOW_DATE = date(2025, 1, 15)
START = datetime(2025, 1, 15, 10, 0, 0)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Settable clock; call it like utcnow()"""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeGateway(PaymentGateway):
    """Offline gateway with real HMAC signatures"""

    key_id = "rzp_test_key"

    def __init__(self, secret: str = "test_secret") -> None:
        self.secret = secret
        self.orders = []
        self.fail_with: Optional[Exception] = None

    def create_order(self, amount_minor: int, receipt_id: str, notes: Optional[Dict[str, str]] = None) -> GatewayOrder:
        if self.fail_with is not None:
            raise self.fail_with
        order = GatewayOrder(
            id=f"order_{len(self.orders) + 1:04d}",
            amount=amount_minor,
            currency="INR",
            receipt=receipt_id
        )
        self.orders.append(order)
        return order

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(self.secret, order_id, payment_id)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def tickets(tmp_path) -> TicketService:
    return TicketService(static_dir=str(tmp_path), static_url="/static")


@pytest.fixture
def reservations(db, clock) -> ReservationManager:
    return ReservationManager(db, now=clock)


@pytest.fixture
def booking_service(db, gateway, tickets, clock) -> BookingService:
    return BookingService(db, gateway, tickets=tickets, now=clock)


@pytest.fixture
def client(db, gateway, clock):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user_id: int) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def catalog(db) -> SimpleNamespace:
    """Two customers, one theater show and one live event"""

    alice = User(name="Alice", email="alice@example.com", loyalty_points=Decimal("100.00"),
                 created_at=START, updated_at=START)
    bob = User(name="Bob", email="bob@example.com", loyalty_points=Decimal("0"),
               created_at=START, updated_at=START)
    db.add_all([alice, bob])

    theater = Theater(name="Showtime Cinemas", city="Bengaluru")
    other_theater = Theater(name="Other Cinemas", city="Mysuru")
    db.add_all([theater, other_theater])
    db.flush()

    screen = Screen(theater_id=theater.id, name="Audi 1")
    db.add(screen)
    db.flush()

    seats = [
        ScreenSeat(screen_id=screen.id, seat_number=f"A{n}", row="A", column=n, category="Normal")
        for n in range(1, 5)
    ] + [
        ScreenSeat(screen_id=screen.id, seat_number=f"B{n}", row="B", column=n, category="Premium")
        for n in range(1, 3)
    ] + [
        ScreenSeat(screen_id=screen.id, seat_number="C1", row="C", column=1, category="Normal",
                   quota_type="counter")
    ]
    db.add_all(seats)

    movie = Movie(theater_id=theater.id, title="The Long Night")
    db.add(movie)
    db.flush()

    db.add_all([
        MovieRate(movie_id=movie.id, category="Normal", base_price=Decimal("200.00"),
                  weekend_price=Decimal("250.00"), holiday_price=Decimal("300.00")),
        MovieRate(movie_id=movie.id, category="Premium", base_price=Decimal("350.00")),
    ])

    schedule = Schedule(movie_id=movie.id, screen_id=screen.id, show_date=SHOW_DATE,
                        show_time=time(19, 0), status="1")
    draft_schedule = Schedule(movie_id=movie.id, screen_id=screen.id, show_date=SHOW_DATE,
                              show_time=time(22, 0), status="0")
    db.add_all([schedule, draft_schedule])

    popcorn = AddOnItem(theater_id=theater.id, name="Popcorn", price=Decimal("150.00"))
    nachos = AddOnItem(theater_id=theater.id, name="Nachos", price=Decimal("120.00"), in_stock=False)
    elsewhere = AddOnItem(theater_id=other_theater.id, name="Samosa", price=Decimal("60.00"))
    db.add_all([popcorn, nachos, elsewhere])

    # Friday evening
    event = Event(name="Indie Nights Live", venue_name="Palace Grounds", city="Bengaluru",
                  start_date_time=datetime(2025, 1, 17, 19, 0), status="1")
    db.add(event)
    db.flush()

    general = EventTicketCategory(event_id=event.id, name="General", price=Decimal("500.00"),
                                  total_quantity=3)
    vip = EventTicketCategory(event_id=event.id, name="VIP", price=Decimal("1500.00"),
                              total_quantity=1)
    db.add_all([general, vip])

    db.add_all([
        DiscountCode(code="SAVE10", discount_type="percentage", discount_value=Decimal("10"),
                     max_discount_amount=Decimal("30"), min_order_value=Decimal("300"),
                     start_date=date(2025, 1, 1), end_date=date(2025, 12, 31), is_active=True),
        DiscountCode(code="FLAT50", discount_type="flat", discount_value=Decimal("50"),
                     start_date=date(2025, 1, 1), end_date=date(2025, 12, 31), is_active=True),
        DiscountCode(code="OLD", discount_type="flat", discount_value=Decimal("50"),
                     start_date=date(2024, 1, 1), end_date=date(2024, 12, 31), is_active=True),
        DiscountCode(code="PAUSED", discount_type="flat", discount_value=Decimal("50"),
                     start_date=date(2025, 1, 1), end_date=date(2025, 12, 31), is_active=False),
        DiscountCode(code="ONCE", discount_type="flat", discount_value=Decimal("20"),
                     start_date=date(2025, 1, 1), end_date=date(2025, 12, 31), is_active=True,
                     limit_per_user=1),
    ])
    db.commit()

    return SimpleNamespace(
        alice=alice.id,
        bob=bob.id,
        theater=theater.id,
        schedule=schedule.id,
        draft_schedule=draft_schedule.id,
        popcorn=popcorn.id,
        nachos=nachos.id,
        samosa=elsewhere.id,
        event=event.id,
        general=general.id,
        vip=vip.id,
    )
