"""
Pricing module for show and event tickets.

engine.py holds the pure price calculation, service.py loads its inputs from the
database.
"""
