"""
Transaction Processing Module

Ledger entries and the processor that moves money. Every deposit, withdrawal
and transfer is authorized first, then mutates the account through its own
methods and appends an immutable entry to the affected ledgers. Failed
withdrawals are recorded; invalid input is not.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from enum import Enum

from .money import AmountLike, format_amount, positive_amount
from .audit import AuditTrail, AuditEventType
from .accounts import Account, AccountKind, AccountManager
from .identifiers import IdGenerator, TRANSACTION_PREFIX, TRANSFER_PREFIX, require_account_id
from .rbac import AccessControl, Permission, Principal
from .errors import (
    AccessDenied, AccountNotFound, InsufficientFunds, InvalidAmount, SameAccount
)
from .logging_config import get_logger, log_action


class TransactionType(Enum):
    """Types of ledger entries"""
    DEPOSIT = "deposit"      # Money deposited into an account
    WITHDRAW = "withdraw"    # Money withdrawn from an account
    TRANSFER = "transfer"    # Money transferred between accounts


class TransactionStatus(Enum):
    """Outcome recorded on a ledger entry"""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Transaction:
    """
    Immutable record of one money movement on one account's ledger

    A transfer produces two entries, one per account, sharing correlation_id.
    """
    id: str
    transaction_type: TransactionType
    amount: Decimal
    status: TransactionStatus
    account_id: str                      # Ledger this entry belongs to
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    correlation_id: Optional[str] = None
    description: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not isinstance(self.amount, Decimal) or self.amount <= 0:
            raise InvalidAmount("Transaction amount must be positive")

    @property
    def is_completed(self) -> bool:
        return self.status is TransactionStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status is TransactionStatus.FAILED

    @property
    def is_debit(self) -> bool:
        """True when this entry took money out of its account"""
        if self.transaction_type is TransactionType.WITHDRAW:
            return True
        return (self.transaction_type is TransactionType.TRANSFER
                and self.from_account_id == self.account_id)


@dataclass(frozen=True)
class InterestResult:
    """Outcome of applying interest to one savings account"""
    account_id: str
    old_balance: Decimal
    new_balance: Decimal
    interest: Decimal


class TransactionProcessor:
    """
    Orchestrates deposits, withdrawals, transfers and interest postings
    """

    def __init__(
        self,
        account_manager: AccountManager,
        access_control: AccessControl,
        id_generator: IdGenerator,
        audit_trail: AuditTrail
    ):
        self.account_manager = account_manager
        self.access_control = access_control
        self.id_generator = id_generator
        self.audit_trail = audit_trail
        self.logger = get_logger("minibank.transactions")

    def deposit(self, actor: Principal, account_id: str, amount: AmountLike) -> Transaction:
        """
        Deposit into an account

        Returns:
            The COMPLETED ledger entry

        Raises:
            AccountNotFound, AccessDenied, InvalidAmount
        """
        account = self._resolve(actor, account_id)
        self._authorize(actor, Permission.DEPOSIT_MONEY, account.id)

        account.deposit(amount)
        entry = self._record(
            account, TransactionType.DEPOSIT, amount, TransactionStatus.COMPLETED,
            to_account_id=account.id, description="Deposit"
        )
        self._log_posted(actor, entry)
        return entry

    def withdraw(self, actor: Principal, account_id: str, amount: AmountLike) -> Transaction:
        """
        Withdraw from an account

        Insufficient funds is recorded as a FAILED entry on the account before
        InsufficientFunds is raised; the entry is available as `error.entry`.

        Returns:
            The COMPLETED ledger entry

        Raises:
            AccountNotFound, AccessDenied, InvalidAmount, InsufficientFunds
        """
        account = self._resolve(actor, account_id)
        self._authorize(actor, Permission.WITHDRAW_MONEY, account.id)

        if account.withdraw(amount):
            entry = self._record(
                account, TransactionType.WITHDRAW, amount, TransactionStatus.COMPLETED,
                from_account_id=account.id, description="Withdrawal"
            )
            self._log_posted(actor, entry)
            return entry

        entry = self._record(
            account, TransactionType.WITHDRAW, amount, TransactionStatus.FAILED,
            from_account_id=account.id, description="Withdrawal - insufficient funds"
        )
        self.audit_trail.log_event(
            event_type=AuditEventType.TRANSACTION_FAILED,
            entity_type="transaction",
            entity_id=entry.id,
            details=f"Withdrawal of {format_amount(entry.amount)} from {account.id} failed: insufficient funds",
            username=actor.username,
            role=actor.role.value,
            metadata={"account_id": account.id, "amount": entry.amount}
        )
        log_action(
            self.logger, "warning", f"Withdrawal failed: insufficient funds in {account.id}",
            user_id=actor.username, action="withdraw", resource=f"account:{account.id}",
            extra={"transaction_id": entry.id, "amount": str(entry.amount)}
        )
        raise InsufficientFunds(
            f"Insufficient funds in {account.id}: requested {format_amount(entry.amount)}, "
            f"available {format_amount(account.available_funds)}",
            entry=entry
        )

    def transfer(self, actor: Principal, from_account_id: str, to_account_id: str,
                 amount: AmountLike) -> Tuple[Transaction, Transaction]:
        """
        Move money between two accounts

        Only the source account is access-checked; anyone may receive a
        transfer. If the source cannot cover the amount nothing is recorded on
        either side. The deposit is only attempted after the withdrawal has
        succeeded, and cannot fail once the amount has been validated.

        Returns:
            (debit entry on the source, credit entry on the destination)

        Raises:
            SameAccount, AccountNotFound, AccessDenied, InvalidAmount, InsufficientFunds
        """
        if from_account_id == to_account_id:
            raise SameAccount("Cannot transfer to the same account")
        amount = positive_amount(amount)

        source = self._resolve(actor, from_account_id)
        destination = self._resolve(actor, to_account_id)
        self._authorize(actor, Permission.TRANSFER_MONEY, source.id)

        if not source.withdraw(amount):
            log_action(
                self.logger, "warning", f"Transfer failed: insufficient funds in {source.id}",
                user_id=actor.username, action="transfer", resource=f"account:{source.id}",
                extra={"to_account": destination.id, "amount": str(amount)}
            )
            raise InsufficientFunds(
                f"Transfer failed: insufficient funds in {source.id}"
            )
        destination.deposit(amount)

        correlation_id = self.id_generator.next_id(TRANSFER_PREFIX)
        description = f"Transfer {source.id} -> {destination.id}"
        debit = self._record(
            source, TransactionType.TRANSFER, amount, TransactionStatus.COMPLETED,
            from_account_id=source.id, to_account_id=destination.id,
            correlation_id=correlation_id, description=description
        )
        credit = self._record(
            destination, TransactionType.TRANSFER, amount, TransactionStatus.COMPLETED,
            from_account_id=source.id, to_account_id=destination.id,
            correlation_id=correlation_id, description=description
        )
        self._log_posted(actor, debit)
        self._log_posted(actor, credit)
        return debit, credit

    def apply_interest(self, actor: Principal) -> List[InterestResult]:
        """
        Apply one flat-rate interest payment to every savings account

        Each non-zero credit is recorded as a COMPLETED deposit entry.
        """
        self._authorize(actor, Permission.APPLY_INTEREST)

        results = []
        for account in self.account_manager.list_accounts():
            if account.kind is not AccountKind.SAVINGS:
                continue
            old_balance = account.balance
            interest = account.apply_interest()
            if interest > 0:
                entry = self._record(
                    account, TransactionType.DEPOSIT, interest, TransactionStatus.COMPLETED,
                    to_account_id=account.id, description="Interest"
                )
                self._log_posted(actor, entry)
            results.append(InterestResult(
                account_id=account.id,
                old_balance=old_balance,
                new_balance=account.balance,
                interest=interest
            ))

        self.audit_trail.log_event(
            event_type=AuditEventType.INTEREST_APPLIED,
            entity_type="account",
            entity_id="*",
            details=f"Interest applied to {len(results)} savings account(s)",
            username=actor.username,
            role=actor.role.value,
            metadata={"total": sum((r.interest for r in results), Decimal("0.00"))}
        )
        return results

    def _resolve(self, actor: Principal, account_id: str) -> Account:
        """Look up an account, logging misses"""
        require_account_id(account_id)
        account = self.account_manager.get_account(account_id)
        if account is None:
            log_action(
                self.logger, "warning", f"Account not found: {account_id}",
                user_id=actor.username if actor else None,
                action="resolve_account", resource=f"account:{account_id}"
            )
            raise AccountNotFound(f"Account {account_id} not found")
        return account

    def _authorize(self, actor: Principal, permission: Permission,
                   account_id: Optional[str] = None) -> None:
        """Run both access predicates; denials are logged and audited"""
        try:
            self.access_control.authorize(actor, permission, account_id)
        except AccessDenied as e:
            username = actor.username if actor else None
            log_action(
                self.logger, "warning", str(e),
                user_id=username, action=permission.value,
                resource=f"account:{account_id}" if account_id else None
            )
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCESS_DENIED,
                entity_type="account",
                entity_id=account_id or "*",
                details=f"Attempted to {permission.value} on {account_id or 'system'}",
                username=username,
                role=actor.role.value if actor else None
            )
            raise

    def _record(self, account: Account, transaction_type: TransactionType,
                amount: AmountLike, status: TransactionStatus, **fields) -> Transaction:
        """Build an entry for one account's ledger and append it"""
        entry = Transaction(
            id=self.id_generator.next_id(TRANSACTION_PREFIX),
            transaction_type=transaction_type,
            amount=positive_amount(amount),
            status=status,
            account_id=account.id,
            **fields
        )
        account.add_transaction(entry)
        return entry

    def _log_posted(self, actor: Principal, entry: Transaction) -> None:
        self.audit_trail.log_event(
            event_type=AuditEventType.TRANSACTION_POSTED,
            entity_type="transaction",
            entity_id=entry.id,
            details=(
                f"{entry.transaction_type.value.capitalize()} of {format_amount(entry.amount)} "
                f"on {entry.account_id}"
            ),
            username=actor.username,
            role=actor.role.value,
            metadata={
                "account_id": entry.account_id,
                "amount": entry.amount,
                "correlation_id": entry.correlation_id
            }
        )
        log_action(
            self.logger, "info", f"Transaction posted: {entry.transaction_type.value}",
            user_id=actor.username, action=entry.transaction_type.value,
            resource=f"transaction:{entry.id}",
            extra={"account_id": entry.account_id, "amount": str(entry.amount)}
        )
