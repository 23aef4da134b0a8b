"""
Payment gateway integration: order creation and signature verification.
"""
