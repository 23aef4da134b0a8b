from typing import Optional
from datetime import datetime, timedelta, timezone
import jwt

from src.config import settings
from src.exceptions import AuthenticationError

def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a bearer token carrying the user_id claim"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    token_data = {"user_id": user_id, "exp": expire}
    return jwt.encode(token_data, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_user_id(token: str) -> int:
    """Return the user_id claim of a valid token or raise AuthenticationError"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("user_id")
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid or expired token")
