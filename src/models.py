from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Date, Time, Text, ForeignKey,
    Numeric, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from src.database import Base

# SQLite only autoincrements INTEGER primary keys
PrimaryKey = BigInteger().with_variant(Integer, "sqlite")

# ================================
# Customers
# ================================
class User(Base):
    __tablename__ = "users"

    id = Column(PrimaryKey, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20))
    loyalty_points = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    # Relationships
    bookings = relationship("Booking", back_populates="user")

# ================================
# Theaters, Screens & Seat Catalog
# ================================
class Theater(Base):
    __tablename__ = "theaters"

    id = Column(PrimaryKey, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    city = Column(String(100))

    # Relationships
    screens = relationship("Screen", back_populates="theater")
    movies = relationship("Movie", back_populates="theater")
    add_on_items = relationship("AddOnItem", back_populates="theater")

class Screen(Base):
    __tablename__ = "screens"

    id = Column(PrimaryKey, primary_key=True, index=True)
    theater_id = Column(BigInteger, ForeignKey("theaters.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    # Relationships
    theater = relationship("Theater", back_populates="screens")
    seats = relationship("ScreenSeat", back_populates="screen")
    schedules = relationship("Schedule", back_populates="screen")

class ScreenSeat(Base):
    __tablename__ = "screen_seats"
    __table_args__ = (
        UniqueConstraint("screen_id", "seat_number", name="uq_screen_seat"),
    )

    id = Column(PrimaryKey, primary_key=True, index=True)
    screen_id = Column(BigInteger, ForeignKey("screens.id"), nullable=False, index=True)
    seat_number = Column(String(20), nullable=False)
    row = Column(String(5), nullable=False)
    column = Column(Integer, nullable=False)
    category = Column(String(50), nullable=False)
    quota_type = Column(String(20), nullable=False, default="online")

    # Relationships
    screen = relationship("Screen", back_populates="seats")

# ================================
# Movies, Rate Tables & Schedules
# ================================
class Movie(Base):
    __tablename__ = "movies"

    id = Column(PrimaryKey, primary_key=True, index=True)
    theater_id = Column(BigInteger, ForeignKey("theaters.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)

    # Relationships
    theater = relationship("Theater", back_populates="movies")
    rates = relationship("MovieRate", back_populates="movie")
    schedules = relationship("Schedule", back_populates="movie")

class MovieRate(Base):
    __tablename__ = "movie_rates"
    __table_args__ = (
        UniqueConstraint("movie_id", "category", name="uq_movie_rate_category"),
    )

    id = Column(PrimaryKey, primary_key=True, index=True)
    movie_id = Column(BigInteger, ForeignKey("movies.id"), nullable=False, index=True)
    category = Column(String(50), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    weekend_price = Column(Numeric(10, 2))
    holiday_price = Column(Numeric(10, 2))

    # Relationships
    movie = relationship("Movie", back_populates="rates")

class Schedule(Base):
    __tablename__ = "schedules"

    id = Column(PrimaryKey, primary_key=True, index=True)
    movie_id = Column(BigInteger, ForeignKey("movies.id"), nullable=False, index=True)
    screen_id = Column(BigInteger, ForeignKey("screens.id"), nullable=False, index=True)
    show_date = Column(Date, nullable=False, index=True)
    show_time = Column(Time, nullable=False)
    status = Column(String(1), nullable=False, default="1")
    deleted_at = Column(DateTime)

    # Relationships
    movie = relationship("Movie", back_populates="schedules")
    screen = relationship("Screen", back_populates="schedules")

class AddOnItem(Base):
    __tablename__ = "add_on_items"

    id = Column(PrimaryKey, primary_key=True, index=True)
    theater_id = Column(BigInteger, ForeignKey("theaters.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    in_stock = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)

    # Relationships
    theater = relationship("Theater", back_populates="add_on_items")

# ================================
# Live Events & Ticket Categories
# ================================
class Event(Base):
    __tablename__ = "events"

    id = Column(PrimaryKey, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    venue_name = Column(String(255))
    city = Column(String(100))
    address = Column(Text)
    start_date_time = Column(DateTime, nullable=False)
    status = Column(String(1), nullable=False, default="1")
    deleted_at = Column(DateTime)

    # Relationships
    ticket_categories = relationship("EventTicketCategory", back_populates="event")

class EventTicketCategory(Base):
    __tablename__ = "event_ticket_categories"

    id = Column(PrimaryKey, primary_key=True, index=True)
    event_id = Column(BigInteger, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    weekend_price = Column(Numeric(10, 2))
    holiday_price = Column(Numeric(10, 2))
    total_quantity = Column(Integer, nullable=False)
    description = Column(Text)
    status = Column(String(1), nullable=False, default="1")
    deleted_at = Column(DateTime)

    # Relationships
    event = relationship("Event", back_populates="ticket_categories")

# ================================
# Discount Codes
# ================================
class DiscountCode(Base):
    __tablename__ = "discount_codes"

    id = Column(PrimaryKey, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    title = Column(String(255))
    discount_type = Column(String(20), nullable=False)  # percentage | flat
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2))
    min_order_value = Column(Numeric(10, 2))
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, default=True)
    total_usage_limit = Column(Integer)
    limit_per_user = Column(Integer)
    deleted_at = Column(DateTime)

# ================================
# Seat Holds, Bookings & Payments
# ================================
class SeatHold(Base):
    __tablename__ = "seat_holds"
    __table_args__ = (
        UniqueConstraint("schedule_id", "seat_number", name="uq_seat_hold"),
        Index("ix_seat_holds_expires_at", "expires_at"),
    )

    id = Column(PrimaryKey, primary_key=True, index=True)
    schedule_id = Column(BigInteger, ForeignKey("schedules.id"), nullable=False, index=True)
    seat_number = Column(String(20), nullable=False)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)

class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_status_created", "status", "created_at"),
    )

    id = Column(PrimaryKey, primary_key=True, index=True)
    booking_number = Column(String(20), unique=True, nullable=False, index=True)
    kind = Column(String(10), nullable=False)  # theater | event
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = Column(BigInteger, ForeignKey("schedules.id"), index=True)
    event_id = Column(BigInteger, ForeignKey("events.id"), index=True)
    items = Column(JSON, nullable=False, default=list)
    add_ons = Column(JSON, nullable=False, default=list)
    quantity = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Integer, nullable=False, default=0, index=True)
    discount_code_id = Column(BigInteger, ForeignKey("discount_codes.id"), index=True)
    payment_information = Column(JSON, default=dict)
    qr_code_url = Column(String(500))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime)

    # Relationships
    user = relationship("User", back_populates="bookings")
    transaction = relationship("PaymentTransaction", back_populates="booking", uselist=False)

class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"
    __table_args__ = (
        Index("ix_payment_user_status", "user_id", "status"),
    )

    id = Column(PrimaryKey, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(BigInteger, ForeignKey("bookings.id"), unique=True, nullable=False)
    gateway_order_id = Column(String(255), unique=True, nullable=False, index=True)
    gateway_payment_id = Column(String(255), index=True)
    gateway_signature = Column(String(255))
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    status = Column(String(20), nullable=False, default="created", index=True)
    payment_details = Column(JSON, nullable=False, default=dict)
    error_description = Column(Text)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    # Relationships
    booking = relationship("Booking", back_populates="transaction")

class BookingSequence(Base):
    __tablename__ = "booking_sequences"

    sequence_date = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
