"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    FastAPI dependency resolving the caller identity.
    
    Checks:
    1. A bearer token is present
    2. The token signature and expiry are valid
    3. The token carries a subject and a role
    4. The token has not been revoked
    
    Returns:
        Decoded token payload with ``user_id`` mirrored from ``sub``
        
    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    token = credentials.credentials
    
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")
    
    user_id = payload.get("sub")
    if not user_id or not payload.get("role"):
        raise _unauthorized("Invalid token payload")
    
    if await is_token_revoked(token):
        raise _unauthorized("Token has been revoked")
    
    payload["user_id"] = str(user_id)
    return payload
