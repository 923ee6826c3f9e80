"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting ledger endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError

# Roles allowed to operate on any driver's ledger
LEDGER_OPERATOR_ROLES = [UserRole.ADMIN, UserRole.RESTAURANT]


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.post("/ledger/entry")
        async def create_entry(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...
    
    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            user_role = UserRole(current_user.get("role"))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )
        
        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        
        return current_user
    
    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """Dependency for admin-only endpoints."""
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    
    return current_user


def caller_restaurant_id(current_user: dict) -> Optional[str]:
    """Restaurant a RESTAURANT caller acts for: its restaurant_id claim, else its subject."""
    if current_user.get("role") != UserRole.RESTAURANT.value:
        return None
    return str(current_user.get("restaurant_id") or current_user.get("user_id"))


def can_access_driver_ledger(driver_id: str, current_user: dict) -> bool:
    """
    Check whether the caller may read a driver's ledger.
    
    Admins and restaurants see every driver; a driver sees only itself.
    Restaurants are further pinned to their own rows by restaurant_scope.
    """
    role = current_user.get("role")
    if role in {r.value for r in LEDGER_OPERATOR_ROLES}:
        return True
    if role == UserRole.DRIVER.value:
        return current_user.get("user_id") == driver_id
    return False


class DriverLedgerGuard:
    """
    Ownership guard for driver-scoped ledger data.
    
    Usage:
        ledger_guard.enforce(driver_id, current_user)
        restaurant_id = ledger_guard.restaurant_scope(requested_id, current_user)
    """
    
    def enforce(self, driver_id: str, current_user: dict, resource_name: str = "ledger"):
        """Raise 403 unless the caller may read this driver's data."""
        if not can_access_driver_ledger(driver_id, current_user):
            raise InsufficientPermissionsError(
                message=f"Access denied. You do not have permission to access this {resource_name}.",
                details={"driver_id": driver_id}
            )

    def restaurant_scope(self, requested: Optional[str], current_user: dict) -> Optional[str]:
        """
        Restaurant filter to apply for this caller.
        
        Restaurants always get their own id and may not ask for another one.
        Other roles get whatever they asked for (None means every restaurant).
        """
        own = caller_restaurant_id(current_user)
        if own is None:
            return requested
        if requested is not None and requested != own:
            raise InsufficientPermissionsError(
                message="Access denied. Restaurants may only access their own ledgers.",
                details={"restaurant_id": requested}
            )
        return own

    def enforce_restaurant_row(self, restaurant_id: Optional[str], current_user: dict, resource_name: str = "ledger"):
        """Raise 403 when a restaurant caller touches a row outside its own ledger."""
        own = caller_restaurant_id(current_user)
        if own is not None and restaurant_id != own:
            raise InsufficientPermissionsError(
                message=f"Access denied. You do not have permission to access this {resource_name}.",
                details={"restaurant_id": restaurant_id}
            )


ledger_guard = DriverLedgerGuard()
