from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from src.auth.utils import decode_user_id
from src.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)

def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> int:
    """Requester identity from the bearer token; credentials are issued elsewhere"""
    if credentials is None:
        raise AuthenticationError()
    return decode_user_id(credentials.credentials)

def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[int]:
    """Like get_current_user_id, but guests get None instead of a 401"""
    if credentials is None:
        return None
    return decode_user_id(credentials.credentials)
