from .base import Base
from .entitlement import Tier, UserEntitlement
from .error_code import ErrorCode
from .scan import Preferences, Scan
from .state_entry import StateEntry

__all__ = [
    "Base",
    "ErrorCode",
    "Preferences",
    "Scan",
    "StateEntry",
    "Tier",
    "UserEntitlement",
]
