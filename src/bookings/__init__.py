"""
Booking & Settlement Module

Order creation, payment verification and stale-booking cleanup for theater seats
and live event tickets.

Key Components:
- booking_service.py: order/settlement workflow and booking-number allocation
- ticket_service.py: QR ticket artifact rendering
- router.py: FastAPI endpoints for quotes, orders and payments
- schemas.py: request, response and JSON snapshot models
"""
