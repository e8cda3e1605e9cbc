"""
History and Ordering Views

Read-only presentations of ledger data: the most-recent-first view used for
transaction history and the audit trail, and the stable account orderings used
by account listings. Nothing here mutates its input.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Sequence, TypeVar, TYPE_CHECKING

from .errors import InvalidIdentifier

if TYPE_CHECKING:
    from .accounts import Account

T = TypeVar("T")


def as_recency_ordered_view(entries: Sequence[T]) -> List[T]:
    """
    Return a new list holding entries last-appended first.

    The source sequence is left intact, so repeated calls on an unchanged
    ledger give identical results.
    """
    return list(reversed(entries))


class SortKey(Enum):
    """Supported account orderings"""
    NAME = "name"        # Owner display name, case-insensitive, ascending
    BALANCE = "balance"  # Balance, descending

    @classmethod
    def parse(cls, value) -> "SortKey":
        """Accept a SortKey or its name/value in any case"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for key in cls:
                if value.strip().lower() in (key.value, key.name.lower()):
                    return key
        raise InvalidIdentifier(f"Unknown sort key: {value!r} (expected name or balance)")


def _owner_name(account: "Account") -> str:
    return account.owner.name.casefold()


def _negated_balance(account: "Account") -> Decimal:
    return -account.balance


def sort_accounts(accounts: Sequence["Account"], by) -> List["Account"]:
    """
    Return accounts in a new list ordered by owner name or by balance.

    Ties keep their original relative order.
    """
    key = SortKey.parse(by)
    if key is SortKey.NAME:
        return sorted(accounts, key=_owner_name)
    return sorted(accounts, key=_negated_balance)
