"""
Ledger enumerations.
"""

import enum


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration."""
    EARNING = "earning"  # Delivery fee, tip (positive)
    FEE = "fee"  # Platform or service fee (negative)
    SETTLEMENT = "settlement"  # Historical payout marker
    DEBT = "debt"  # Advances owed by the driver (negative)


# Types that carry an obligation and count towards pending settlement
ECONOMIC_ENTRY_TYPES = frozenset({
    LedgerEntryType.EARNING,
    LedgerEntryType.FEE,
    LedgerEntryType.DEBT,
})


class SummaryPeriod(str, enum.Enum):
    """Reporting window for cross-driver summaries."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"
