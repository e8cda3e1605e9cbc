"""
Banking System Facade

Wires the ledger components together and exposes the operations the menu
layer calls. The facade owns the session (who is logged in) and resolves the
current actor for every money-moving call.
"""

from typing import List, Optional, Tuple

from .config import BankConfig, get_config
from .storage import InMemoryStorage, StorageInterface
from .audit import AuditEvent, AuditEventType, AuditTrail
from .identifiers import IdGenerator
from .accounts import Account, AccountManager
from .customers import Customer, CustomerManager, CustomerProfile
from .rbac import AccessControl, Permission, Principal, PrincipalRegistry
from .transactions import InterestResult, Transaction, TransactionProcessor
from .history import as_recency_ordered_view
from .money import AmountLike, ZERO
from .errors import AccessDenied, CustomerNotFound
from .logging_config import get_logger, log_action


class BankingSystem:
    """In-memory banking ledger with all components initialized"""

    def __init__(self, config: Optional[BankConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        self.storage = storage or InMemoryStorage()
        self.ids = IdGenerator(width=self.config.id_width)

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.account_manager = AccountManager(self.storage, self.ids, self.audit_trail, self.config)
        self.customer_manager = CustomerManager(
            self.storage, self.ids, self.audit_trail, self.account_manager
        )
        self.access_control = AccessControl(self.account_manager)
        self.principals = PrincipalRegistry(self.storage, self.audit_trail, self.config)
        self.transaction_processor = TransactionProcessor(
            self.account_manager, self.access_control, self.ids, self.audit_trail
        )

        self.current_user: Optional[Principal] = None
        self.logger = get_logger("minibank.bank")

    # Session

    def login(self, username: str, credential: str) -> Principal:
        """Authenticate and make the principal the current actor"""
        self.current_user = self.principals.authenticate(username, credential)
        return self.current_user

    def logout(self) -> None:
        if self.current_user is not None:
            self.log_action("LOGOUT", "User logged out", AuditEventType.LOGOUT)
            self.current_user = None

    def register_user(self, principal: Principal) -> Principal:
        registered_by = self.current_user.username if self.current_user else None
        return self.principals.register(principal, registered_by=registered_by)

    def change_password(self, old_credential: str, new_credential: str) -> Principal:
        """Swap the current principal for one holding the new credential"""
        actor = self._require(Permission.CHANGE_PASSWORD)
        self.current_user = self.principals.change_password(
            actor.username, old_credential, new_credential
        )
        return self.current_user

    def has_permission(self, permission: Permission) -> bool:
        return self.access_control.has_capability(self.current_user, permission)

    def can_access(self, account_id: str) -> bool:
        """Ownership predicate for the current actor, used to pre-filter listings"""
        return self.access_control.can_access(self.current_user, account_id)

    # Customers

    def create_customer(self, name: str) -> Customer:
        self._require(Permission.CREATE_CUSTOMER)
        return self.customer_manager.create_customer(name)

    def onboard_customer(self, name: str) -> Tuple[Customer, Principal, str]:
        """
        Create a customer together with a login linked to it

        Returns:
            (customer, principal, temporary password)
        """
        customer = self.create_customer(name)
        username = self.principals.generate_username(name)
        temporary = self.principals.generate_temporary_password(username)
        principal = self.register_user(Principal.customer(username, temporary, customer.id))
        return customer, principal, temporary

    def delete_customer(self, customer_id: str) -> Customer:
        """Delete a customer, its accounts and its linked login"""
        self._require(Permission.DELETE_CUSTOMER)
        customer = self.customer_manager.delete_customer(customer_id)
        self.principals.remove_for_customer(customer_id)
        return customer

    def create_or_update_profile(self, customer_id: str, address: str, phone: str,
                                 email: str, profile_id: Optional[str] = None,
                                 allow_replace: bool = False) -> CustomerProfile:
        permission = (Permission.UPDATE_PROFILE_INFORMATION if allow_replace
                      else Permission.CREATE_CUSTOMER_PROFILE)
        self._require(permission)
        return self.customer_manager.create_or_update_profile(
            customer_id, address, phone, email,
            profile_id=profile_id, allow_replace=allow_replace
        )

    def list_customers(self) -> List[Customer]:
        self._require(Permission.VIEW_ALL_CUSTOMERS)
        return self.customer_manager.list_customers()

    # Accounts

    def create_account(self, kind, owner, opening_balance: AmountLike = ZERO,
                       **options) -> Account:
        """
        Open an account

        Args:
            kind: AccountKind or "SAVINGS"/"CHECKING"
            owner: Customer or customer id
            opening_balance: Non-negative initial balance
        """
        self._require(Permission.CREATE_ACCOUNT)
        customer_id = owner if isinstance(owner, str) else owner.id
        customer = self.customer_manager.require_customer(customer_id)
        if not isinstance(owner, str) and customer is not owner:
            raise CustomerNotFound(f"Customer {customer_id} is no longer registered")
        return self.account_manager.create_account(kind, customer, opening_balance, **options)

    def delete_account(self, account_id: str) -> Account:
        self._require(Permission.DELETE_ACCOUNT)
        return self.account_manager.delete_account(account_id)

    def update_overdraft_limit(self, account_id: str, new_limit: AmountLike) -> Account:
        self._require(Permission.UPDATE_OVERDRAFT_LIMIT)
        return self.account_manager.update_overdraft_limit(account_id, new_limit)

    def get_account(self, account_id: str) -> Account:
        """Account lookup for the current actor (ownership enforced)"""
        self._require(Permission.VIEW_ACCOUNT_DETAILS, account_id)
        return self.account_manager.require_account(account_id)

    def visible_accounts(self) -> List[Account]:
        """Accounts the current actor may act on, in listing order"""
        return [a for a in self.account_manager.list_accounts() if self.can_access(a.id)]

    def sort_accounts(self, by) -> List[Account]:
        self._require(Permission.SORT_ACCOUNTS)
        return self.account_manager.sort_accounts(by)

    # Money movement

    def deposit(self, account_id: str, amount: AmountLike) -> Transaction:
        return self.transaction_processor.deposit(self.current_user, account_id, amount)

    def withdraw(self, account_id: str, amount: AmountLike) -> Transaction:
        return self.transaction_processor.withdraw(self.current_user, account_id, amount)

    def transfer(self, from_account_id: str, to_account_id: str,
                 amount: AmountLike) -> Tuple[Transaction, Transaction]:
        return self.transaction_processor.transfer(
            self.current_user, from_account_id, to_account_id, amount
        )

    def apply_interest(self) -> List[InterestResult]:
        return self.transaction_processor.apply_interest(self.current_user)

    def get_history(self, account_id: str) -> List[Transaction]:
        """An account's ledger, most recent first"""
        self._require(Permission.VIEW_TRANSACTION_HISTORY, account_id)
        account = self.account_manager.require_account(account_id)
        return as_recency_ordered_view(account.transactions)

    # Audit

    def log_action(self, action: str, details: str,
                   event_type: AuditEventType = AuditEventType.USER_ACTION) -> Optional[AuditEvent]:
        """Record an operator action for the current user (ignored when logged out)"""
        if self.current_user is None:
            return None
        log_action(self.logger, "info", details,
                   user_id=self.current_user.username, action=action)
        return self.audit_trail.log_event(
            event_type=event_type,
            entity_type="user",
            entity_id=self.current_user.username,
            details=f"{action}: {details}",
            username=self.current_user.username,
            role=self.current_user.role.value
        )

    def audit_trail_view(self, limit: Optional[int] = None) -> List[AuditEvent]:
        """Audit events, most recent first"""
        self._require(Permission.VIEW_AUDIT_TRAIL)
        return self.audit_trail.recent(limit)

    def _require(self, permission: Permission, account_id: Optional[str] = None) -> Principal:
        """Authorize the current actor, auditing denials"""
        try:
            self.access_control.authorize(self.current_user, permission, account_id)
        except AccessDenied as e:
            self.log_action("ACCESS_DENIED", str(e), AuditEventType.ACCESS_DENIED)
            raise
        return self.current_user
