from datetime import datetime, timezone

def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the stored columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def get_clock():
    """FastAPI dependency returning the clock used by the booking core"""
    return utcnow
