"""
Seat Reservation Module

Time-boxed holds on individual seats while a customer completes checkout.

- service.py: ReservationManager (lock, release, sweep) with all-or-nothing locking
- router.py: FastAPI endpoints to lock and unlock seats on a schedule
- schemas.py: Pydantic request/response models

A hold lives for HOLD_TTL_MINUTES. There is no background timer: expired holds are
swept at the start of every lock, availability and order-creation call.
"""
