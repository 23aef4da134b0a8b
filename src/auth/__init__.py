"""
Bearer-token identity for the booking API.
"""
