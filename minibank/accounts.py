"""
Account Management Module

Polymorphic deposit accounts and their lifecycle. Every account owns its
balance and an append-only list of ledger entries; the balance only ever
changes through deposit() and withdraw(). Savings and checking accounts differ
solely in how much may be withdrawn and in what they report about themselves.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from typing import ClassVar, Dict, List, Optional, Tuple, Type, TYPE_CHECKING
from enum import Enum

from .money import (
    AmountLike, ZERO, format_amount, non_negative_amount, positive_amount, round_cents,
    to_amount
)
from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .identifiers import IdGenerator, ACCOUNT_PREFIX
from .history import SortKey, sort_accounts
from .config import BankConfig, get_config
from .errors import (
    AccountNotFound, InputError, InvalidAccountKind, InvalidAmount,
    InvalidIdentifier, NonZeroBalance, NullEntry
)
from .logging_config import get_logger, log_action

if TYPE_CHECKING:
    from .customers import Customer
    from .transactions import Transaction


class AccountKind(Enum):
    """Deposit account products"""
    SAVINGS = "savings"
    CHECKING = "checking"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value) -> "AccountKind":
        """Accept an AccountKind or its name in any case ("SAVINGS", "checking")"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidAccountKind(
            f"Invalid account type: {value!r} (must be either SAVINGS or CHECKING)"
        )


class Account(ABC):
    """
    Base deposit account

    Subclasses declare their `kind`, the funds available for withdrawal and the
    extra fields shown by get_details(). Declaring a kind registers the class
    for AccountManager.create_account().
    """

    kind: ClassVar[AccountKind]
    _registry: ClassVar[Dict[AccountKind, Type["Account"]]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        kind = cls.__dict__.get("kind")
        if kind is not None:
            Account._registry[kind] = cls

    @classmethod
    def for_kind(cls, kind) -> Type["Account"]:
        """Concrete account class for a kind"""
        return Account._registry[AccountKind.parse(kind)]

    def __init__(self, account_id: str, owner: "Customer", opening_balance: AmountLike = ZERO):
        if owner is None:
            raise InputError("Account owner is required")
        self._id = account_id
        self._owner = owner
        self._balance = non_negative_amount(opening_balance)
        self._transactions: List["Transaction"] = []
        self.created_at = datetime.now(timezone.utc)

    @classmethod
    @abstractmethod
    def open(cls, account_id: str, owner: "Customer", opening_balance: AmountLike,
             config: BankConfig, **options) -> "Account":
        """Build an account, filling product defaults from configuration"""

    @property
    def id(self) -> str:
        return self._id

    @property
    def owner(self) -> "Customer":
        return self._owner

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def transactions(self) -> Tuple["Transaction", ...]:
        """Ledger entries in the order they were appended"""
        return tuple(self._transactions)

    @property
    @abstractmethod
    def available_funds(self) -> Decimal:
        """Largest amount withdraw() will currently accept"""

    def deposit(self, amount: AmountLike) -> None:
        """
        Credit the account

        Raises:
            InvalidAmount: If amount is not strictly positive
        """
        amount = positive_amount(amount)
        self._balance += amount

    def withdraw(self, amount: AmountLike) -> bool:
        """
        Debit the account if funds allow

        Returns:
            True if the balance was debited, False if funds were insufficient

        Raises:
            InvalidAmount: If amount is not strictly positive
        """
        amount = positive_amount(amount)
        if amount > self.available_funds:
            return False
        self._balance -= amount
        return True

    def add_transaction(self, entry: Optional["Transaction"]) -> None:
        """Append a ledger entry; entries are never reordered or removed"""
        if entry is None:
            raise NullEntry("Transaction cannot be null")
        if entry.account_id != self._id:
            raise InvalidIdentifier(
                f"Transaction {entry.id} belongs to {entry.account_id}, not {self._id}"
            )
        self._transactions.append(entry)

    def get_details(self) -> str:
        """Human-readable summary of the account"""
        fields = [
            f"{self.kind.label} Account {self._id}",
            f"Owner: {self._owner.name} ({self._owner.id})",
            f"Balance: {format_amount(self._balance)}",
        ]
        fields.extend(self._detail_fields())
        fields.append(f"Transactions: {len(self._transactions)}")
        return " | ".join(fields)

    @abstractmethod
    def _detail_fields(self) -> List[str]:
        """Kind-specific fields for get_details()"""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._id} owner={self._owner.id} balance={self._balance}>"


class SavingsAccount(Account):
    """Savings account: the balance never goes below zero"""

    kind = AccountKind.SAVINGS

    def __init__(self, account_id: str, owner: "Customer",
                 opening_balance: AmountLike = ZERO,
                 interest_rate: AmountLike = Decimal("0.03")):
        super().__init__(account_id, owner, opening_balance)
        try:
            rate = Decimal(str(interest_rate))
        except InvalidOperation:
            raise InvalidAmount(f"Invalid interest rate: {interest_rate!r}")
        if not rate.is_finite() or rate < 0 or rate > 1:
            raise InvalidAmount(f"Interest rate must be between 0 and 1, got {interest_rate}")
        self._interest_rate = rate

    @classmethod
    def open(cls, account_id, owner, opening_balance, config, interest_rate=None, **options):
        if interest_rate is None:
            interest_rate = Decimal(config.default_savings_interest_rate)
        return cls(account_id, owner, opening_balance, interest_rate=interest_rate)

    @property
    def interest_rate(self) -> Decimal:
        return self._interest_rate

    @property
    def available_funds(self) -> Decimal:
        return self._balance

    def calculate_interest(self) -> Decimal:
        """Flat-rate interest on the current balance, rounded to cents"""
        if self._balance <= 0:
            return ZERO
        return round_cents(self._balance * self._interest_rate)

    def apply_interest(self) -> Decimal:
        """
        Credit one flat-rate interest payment through deposit()

        Returns:
            Amount credited (zero if nothing was credited)
        """
        interest = self.calculate_interest()
        if interest > 0:
            self.deposit(interest)
            return interest
        return ZERO

    def _detail_fields(self) -> List[str]:
        return [f"Interest Rate: {self._interest_rate * 100:.2f}%"]


class CheckingAccount(Account):
    """Checking account: the balance may go negative down to the overdraft limit"""

    kind = AccountKind.CHECKING

    def __init__(self, account_id: str, owner: "Customer",
                 opening_balance: AmountLike = ZERO,
                 overdraft_limit: AmountLike = Decimal("500.00")):
        super().__init__(account_id, owner, opening_balance)
        self._overdraft_limit = non_negative_amount(overdraft_limit)

    @classmethod
    def open(cls, account_id, owner, opening_balance, config, overdraft_limit=None, **options):
        if overdraft_limit is None:
            overdraft_limit = config.default_overdraft_limit
        return cls(account_id, owner, opening_balance, overdraft_limit=overdraft_limit)

    @property
    def overdraft_limit(self) -> Decimal:
        return self._overdraft_limit

    @overdraft_limit.setter
    def overdraft_limit(self, value: AmountLike) -> None:
        self._overdraft_limit = non_negative_amount(value)

    @property
    def available_funds(self) -> Decimal:
        return self._balance + self._overdraft_limit

    def _detail_fields(self) -> List[str]:
        return [
            f"Overdraft Limit: {format_amount(self._overdraft_limit)}",
            f"Available Credit: {format_amount(self.available_funds)}",
        ]


class AccountManager:
    """
    Manages account lifecycle and listing order
    """

    def __init__(
        self,
        storage: StorageInterface,
        id_generator: IdGenerator,
        audit_trail: AuditTrail,
        config: Optional[BankConfig] = None
    ):
        self.storage = storage
        self.id_generator = id_generator
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.table_name = "accounts"
        self.logger = get_logger("minibank.accounts")

    def create_account(
        self,
        kind,
        owner: "Customer",
        opening_balance: AmountLike = ZERO,
        **options
    ) -> Account:
        """
        Open a new account for a customer

        Args:
            kind: AccountKind or "SAVINGS"/"CHECKING"
            owner: Customer who will own the account
            opening_balance: Non-negative initial balance
            **options: interest_rate (savings) or overdraft_limit (checking)

        Returns:
            Created Account linked to its owner
        """
        account_cls = Account.for_kind(kind)
        if owner is None:
            raise InputError("Account owner is required")
        non_negative_amount(opening_balance)

        account = account_cls.open(
            self.id_generator.next_id(ACCOUNT_PREFIX), owner, opening_balance,
            self.config, **options
        )
        self.storage.save(self.table_name, account.id, account)
        owner.add_account(account)

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account.id,
            details=account.get_details(),
            metadata={
                "kind": account.kind.value,
                "customer_id": owner.id,
                "opening_balance": account.balance
            }
        )
        log_action(
            self.logger, "info", f"Account created: {account.id}",
            action="create_account", resource=f"account:{account.id}",
            extra={"kind": account.kind.value, "customer_id": owner.id}
        )
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        """Get account by ID"""
        return self.storage.load(self.table_name, account_id)

    def require_account(self, account_id: str) -> Account:
        """Get account by ID or raise AccountNotFound"""
        account = self.get_account(account_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return account

    def list_accounts(self) -> List[Account]:
        """All accounts in listing order"""
        return self.storage.load_all(self.table_name)

    def get_customer_accounts(self, customer_id: str) -> List[Account]:
        return [a for a in self.list_accounts() if a.owner.id == customer_id]

    def savings_accounts(self) -> List[SavingsAccount]:
        return [a for a in self.list_accounts() if a.kind is AccountKind.SAVINGS]

    def delete_account(self, account_id: str) -> Account:
        """
        Remove an account from the system

        Raises:
            AccountNotFound: Unknown account id
            NonZeroBalance: Balance is not exactly zero
        """
        account = self.require_account(account_id)
        if account.balance != 0:
            raise NonZeroBalance(
                f"Cannot delete account {account_id} with non-zero balance: "
                f"{format_amount(account.balance)}"
            )

        self.storage.delete(self.table_name, account_id)
        account.owner.remove_account(account_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            details=f"Account {account_id} deleted (owner {account.owner.id})"
        )
        self.logger.info("Account deleted: %s", account_id)
        return account

    def update_overdraft_limit(self, account_id: str, new_limit: AmountLike) -> CheckingAccount:
        """Change a checking account's overdraft limit"""
        account = self.require_account(account_id)
        if account.kind is not AccountKind.CHECKING:
            raise InvalidAccountKind(
                f"Account {account_id} is not a checking account. "
                "Only checking accounts have overdraft limits."
            )

        old_limit = account.overdraft_limit
        account.overdraft_limit = to_amount(new_limit)

        self.audit_trail.log_event(
            event_type=AuditEventType.OVERDRAFT_LIMIT_CHANGED,
            entity_type="account",
            entity_id=account_id,
            details=f"Overdraft limit for {account_id} changed to {format_amount(account.overdraft_limit)}",
            metadata={"old_limit": old_limit, "new_limit": account.overdraft_limit}
        )
        return account

    def sort_accounts(self, by) -> List[Account]:
        """
        Reorder the account listing by owner name or balance

        Returns:
            Accounts in their new listing order
        """
        key = SortKey.parse(by)
        ordered = sort_accounts(self.list_accounts(), key)
        self.storage.reorder(self.table_name, [a.id for a in ordered])

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNTS_SORTED,
            entity_type="account",
            entity_id="*",
            details=f"Sorted {len(ordered)} accounts by {key.value}"
        )
        return ordered
