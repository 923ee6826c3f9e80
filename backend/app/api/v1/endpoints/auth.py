"""
Session API Endpoints.

Tokens are minted by the marketplace auth service; callers can revoke
their own token here so it stops working before it expires.
"""

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials

from backend.app.core.dependencies import get_current_user, security
from backend.app.core.exceptions import UnknownError
from backend.app.core.token_revocation import revoke_token
from backend.app.schemas.common import ApiResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: dict = Depends(get_current_user)
):
    """
    Revoke the bearer token of the current request.
    
    Raises:
        UnknownError: the revocation list could not be written
    """
    if not await revoke_token(credentials.credentials, current_user["user_id"]):
        raise UnknownError(details={"operation": "revoke_token"})
    
    return ApiResponse(data={"revoked": True})
