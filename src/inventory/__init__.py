"""
Inventory Ledger Module

Answers "what can still be sold" for both inventory shapes:

- theater schedules: individually numbered seats; a seat is booked once any pending,
  confirmed or completed booking references it, and held while a live SeatHold exists
- live events: ticket categories with a finite allotment; remaining quantity is the
  allotment minus the quantities on active bookings

Key Components:
- ledger.py: read queries over schedules, seat catalog, categories and active bookings
- service.py: InventoryStrategy with SeatInventory and CategoryInventory implementations
- router.py: seat map and ticket category endpoints
- schemas.py: Pydantic response models
"""
