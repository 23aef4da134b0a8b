from typing import Optional
import os
import qrcode
from qrcode import constants
from PIL import Image

from src.bookings.schemas import BookingKind, PaymentSnapshot
from src.config import settings
from src.logger_config import logger
from src.models import Booking

class TicketService:
    """Renders the scannable ticket artifact for a confirmed booking"""

    def __init__(
        self,
        static_dir: Optional[str] = None,
        static_url: Optional[str] = None,
        qr_size: int = 300
    ):
        self.static_dir = static_dir or settings.STATIC_DIR
        self.static_url = (static_url or settings.STATIC_URL).rstrip("/")
        self.qr_code_dir = os.path.join(self.static_dir, "qr_codes")
        self.qr_size = qr_size

    def build_payload(self, booking: Booking, snapshot: PaymentSnapshot) -> str:
        """Pipe-delimited payload: number|id|title|seats or items|date|time"""
        items = ",".join(
            item.id if snapshot.kind == BookingKind.THEATER else f"{item.category}x{item.quantity}"
            for item in snapshot.items
        )
        return "|".join([
            booking.booking_number,
            str(booking.id),
            snapshot.title,
            items,
            snapshot.show_date.strftime("%Y-%m-%d"),
            snapshot.show_time.strftime("%H:%M")
        ])

    def render(self, booking: Booking, snapshot: PaymentSnapshot) -> str:
        """Write the QR code PNG and return its public URL"""

        qr = qrcode.QRCode(
            version=1,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(self.build_payload(booking, snapshot))
        qr.make(fit=True)

        qr_image = qr.make_image(fill_color="black", back_color="white")
        qr_image = qr_image.resize((self.qr_size, self.qr_size), Image.LANCZOS)

        os.makedirs(self.qr_code_dir, exist_ok=True)
        filename = f"{booking.booking_number}.png"
        qr_image.save(os.path.join(self.qr_code_dir, filename))

        logger.info(f"Rendered ticket QR for booking {booking.booking_number}")
        return f"{self.static_url}/qr_codes/{filename}"
