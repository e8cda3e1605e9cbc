"""
Identifier Generation

Monotonic, collision-free prefixed identifiers (ACC001, C001, TX001, ...)
and format checks for identifiers arriving from the CLI layer.
"""

import re
from typing import Dict, Iterable

from .errors import InvalidIdentifier

ACCOUNT_PREFIX = "ACC"
CUSTOMER_PREFIX = "C"
PROFILE_PREFIX = "P"
TRANSACTION_PREFIX = "TX"
TRANSFER_PREFIX = "XFER"

ACCOUNT_ID_PATTERN = re.compile(r"^ACC\d{3,}$")
CUSTOMER_ID_PATTERN = re.compile(r"^C\d{3,}$")
PROFILE_ID_PATTERN = re.compile(r"^P\d{3,}$")


class IdGenerator:
    """
    Sequential id source, one counter per prefix.
    
    Counters only move forward, so ids of deleted entities are never reissued.
    """
    
    def __init__(self, width: int = 3):
        self.width = width
        self._counters: Dict[str, int] = {}
    
    def next_id(self, prefix: str) -> str:
        """Return the next id for a prefix, e.g. next_id("ACC") -> "ACC001" """
        value = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = value
        return f"{prefix}{value:0{self.width}d}"
    
    def observe(self, prefix: str, existing_ids: Iterable[str]) -> None:
        """Advance a counter past ids that were issued elsewhere"""
        highest = self._counters.get(prefix, 0)
        for existing in existing_ids:
            suffix = existing[len(prefix):]
            if existing.startswith(prefix) and suffix.isdigit():
                highest = max(highest, int(suffix))
        self._counters[prefix] = highest
    
    def peek(self, prefix: str) -> int:
        """Last issued number for a prefix (0 if none)"""
        return self._counters.get(prefix, 0)


def is_valid_account_id(value: str) -> bool:
    return bool(value) and ACCOUNT_ID_PATTERN.match(value) is not None


def is_valid_customer_id(value: str) -> bool:
    return bool(value) and CUSTOMER_ID_PATTERN.match(value) is not None


def is_valid_profile_id(value: str) -> bool:
    return bool(value) and PROFILE_ID_PATTERN.match(value) is not None


def require_account_id(value: str) -> str:
    """Raise InvalidIdentifier unless value looks like ACC###"""
    if not isinstance(value, str) or not is_valid_account_id(value):
        raise InvalidIdentifier(f"Invalid account id: {value!r} (expected ACC###)")
    return value


def require_customer_id(value: str) -> str:
    """Raise InvalidIdentifier unless value looks like C###"""
    if not isinstance(value, str) or not is_valid_customer_id(value):
        raise InvalidIdentifier(f"Invalid customer id: {value!r} (expected C###)")
    return value
