from chitjar.models.bid import Bid
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.models.user import User

__all__ = [
    "Bid",
    "MonthlyEntry",
    "Fund",
    "User",
]
