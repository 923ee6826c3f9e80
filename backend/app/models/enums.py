"""
User roles enumeration.

Roles carried in the caller's token.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: Platform operator, full ledger access
        RESTAURANT: Confirms driver payouts, records fees and earnings
        DRIVER: Reads its own ledger only
        CUSTOMER: No ledger access
    """
    ADMIN = "admin"
    RESTAURANT = "restaurant"
    DRIVER = "driver"
    CUSTOMER = "customer"
