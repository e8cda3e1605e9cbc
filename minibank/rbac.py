"""
Role-Based Access Control (RBAC) Module

Principals (operators), their role permissions and the two access predicates
guarding every operation: has_capability() checks the role, can_access()
checks row-level ownership of an account. Administrators are unrestricted, so
the ownership predicate is trivially true for them.
"""

import secrets
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, List, Optional, TYPE_CHECKING

from .audit import AuditEventType, AuditTrail
from .config import BankConfig, get_config
from .errors import (
    AccessDenied, AuthenticationFailed, AuthenticationLocked, DuplicateUsername,
    InputError, InvalidCredential, PrincipalNotFound
)
from .identifiers import require_customer_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface

if TYPE_CHECKING:
    from .accounts import AccountManager


class Role(Enum):
    """Operator roles"""
    ADMIN = "admin"        # Unrestricted
    CUSTOMER = "customer"  # Restricted to one customer's accounts


class Permission(Enum):
    """System permissions"""
    # Customer permissions
    CREATE_CUSTOMER = "create_customer"
    VIEW_CUSTOMER_DETAILS = "view_customer_details"
    VIEW_ALL_CUSTOMERS = "view_all_customers"
    DELETE_CUSTOMER = "delete_customer"
    CREATE_CUSTOMER_PROFILE = "create_customer_profile"
    UPDATE_PROFILE_INFORMATION = "update_profile_information"

    # Account permissions
    CREATE_ACCOUNT = "create_account"
    VIEW_ACCOUNT_DETAILS = "view_account_details"
    VIEW_ALL_ACCOUNTS = "view_all_accounts"
    DELETE_ACCOUNT = "delete_account"
    UPDATE_OVERDRAFT_LIMIT = "update_overdraft_limit"
    SORT_ACCOUNTS = "sort_accounts"
    APPLY_INTEREST = "apply_interest"

    # Transaction permissions
    DEPOSIT_MONEY = "deposit_money"
    WITHDRAW_MONEY = "withdraw_money"
    TRANSFER_MONEY = "transfer_money"
    VIEW_TRANSACTION_HISTORY = "view_transaction_history"

    # Admin permissions
    VIEW_AUDIT_TRAIL = "view_audit_trail"
    CHANGE_PASSWORD = "change_password"


ROLE_PERMISSIONS = {
    Role.ADMIN: frozenset(Permission),
    Role.CUSTOMER: frozenset({
        Permission.VIEW_ACCOUNT_DETAILS,
        Permission.DEPOSIT_MONEY,
        Permission.WITHDRAW_MONEY,
        Permission.TRANSFER_MONEY,
        Permission.VIEW_TRANSACTION_HISTORY,
        Permission.CHANGE_PASSWORD,
    }),
}

UNRESTRICTED_ROLES = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class Principal:
    """
    Logged-in operator

    Immutable: changing a credential produces a new Principal which replaces
    the old one in the registry, leaving existing references unchanged.
    """
    username: str
    credential: str = field(repr=False)
    role: Role = Role.CUSTOMER
    linked_customer_id: Optional[str] = None
    password_change_required: bool = False

    def __post_init__(self):
        if not self.username or not self.username.strip():
            raise InputError("Username cannot be empty")
        if self.role is Role.CUSTOMER:
            require_customer_id(self.linked_customer_id)
        elif self.linked_customer_id is not None:
            raise InputError("Unrestricted principals are not linked to a customer")

    @classmethod
    def admin(cls, username: str, credential: str) -> "Principal":
        return cls(username=username, credential=credential, role=Role.ADMIN)

    @classmethod
    def customer(cls, username: str, credential: str, customer_id: str,
                 password_change_required: bool = True) -> "Principal":
        return cls(
            username=username,
            credential=credential,
            role=Role.CUSTOMER,
            linked_customer_id=customer_id,
            password_change_required=password_change_required
        )

    @property
    def is_restricted(self) -> bool:
        return self.role not in UNRESTRICTED_ROLES

    @property
    def permissions(self) -> FrozenSet[Permission]:
        return ROLE_PERMISSIONS[self.role]

    def authenticate(self, credential: str) -> bool:
        return secrets.compare_digest(self.credential.encode(), (credential or "").encode())

    def with_credential(self, credential: str) -> "Principal":
        """Copy of this principal holding a new credential"""
        return replace(self, credential=credential, password_change_required=False)


class AccessControl:
    """
    Stateless access predicates evaluated against the current account table
    """

    def __init__(self, account_manager: "AccountManager"):
        self.account_manager = account_manager

    def has_capability(self, actor: Optional[Principal], permission: Permission) -> bool:
        """Role-level check"""
        if actor is None:
            return False
        return permission in actor.permissions

    def can_access(self, actor: Optional[Principal], account_id: str) -> bool:
        """
        Row-level check: may this actor act on this account?

        Unrestricted actors may act on any account. A restricted actor may act
        only on an existing account owned by its linked customer.
        """
        if actor is None:
            return False
        if not actor.is_restricted:
            return True
        account = self.account_manager.get_account(account_id)
        if account is None:
            return False
        return account.owner.id == actor.linked_customer_id

    def authorize(self, actor: Optional[Principal], permission: Permission,
                  account_id: Optional[str] = None) -> None:
        """
        Raise AccessDenied unless both predicates pass

        The ownership predicate is only consulted when an account is involved.
        """
        if not self.has_capability(actor, permission):
            who = actor.username if actor else "anonymous"
            raise AccessDenied(f"{who} is not permitted to {permission.value}")
        if account_id is not None and not self.can_access(actor, account_id):
            raise AccessDenied(
                f"Access denied. {actor.username} can only act on their own accounts "
                f"(attempted {account_id})"
            )


class PrincipalRegistry:
    """
    Registry of operators with authentication and credential changes
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail,
                 config: Optional[BankConfig] = None):
        self.storage = storage
        self.audit = audit_trail
        self.config = config or get_config()
        self.table_name = "principals"
        self.failed_login_attempts = 0
        self.logger = get_logger("minibank.rbac")

    def register(self, principal: Principal, registered_by: Optional[str] = None) -> Principal:
        """Add a principal; usernames are unique"""
        if self.storage.exists(self.table_name, principal.username):
            raise DuplicateUsername(f"Username already exists: {principal.username}")
        self.storage.save(self.table_name, principal.username, principal)

        self.audit.log_event(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=principal.username,
            details=f"Registered by: {registered_by or 'SYSTEM'}",
            username=principal.username,
            role=principal.role.value
        )
        return principal

    def get(self, username: str) -> Optional[Principal]:
        return self.storage.load(self.table_name, username)

    def require(self, username: str) -> Principal:
        principal = self.get(username)
        if principal is None:
            raise PrincipalNotFound(f"User {username} not found")
        return principal

    def list_principals(self) -> List[Principal]:
        return self.storage.load_all(self.table_name)

    def find_by_customer(self, customer_id: str) -> Optional[Principal]:
        matches = self.storage.find(self.table_name, {"linked_customer_id": customer_id})
        return matches[0] if matches else None

    def authenticate(self, username: str, credential: str) -> Principal:
        """
        Check a username/credential pair

        The error never says which half was wrong. After max_login_attempts
        consecutive failures every attempt is refused until reset_login_attempts().
        """
        max_attempts = self.config.max_login_attempts
        if self.failed_login_attempts >= max_attempts:
            raise AuthenticationLocked("Too many failed login attempts")

        principal = self.get(username)
        if principal is None or not principal.authenticate(credential):
            self.failed_login_attempts += 1
            self.audit.log_event(
                event_type=AuditEventType.LOGIN_FAILED,
                entity_type="user",
                entity_id=username or "",
                details=f"Failed attempt {self.failed_login_attempts}/{max_attempts}"
            )
            log_action(
                self.logger, "warning", "Login failed",
                action="login", resource=f"user:{username}",
                extra={"attempt": self.failed_login_attempts}
            )
            if self.failed_login_attempts >= max_attempts:
                raise AuthenticationLocked("Too many failed login attempts")
            raise AuthenticationFailed("Invalid username or password")

        self.failed_login_attempts = 0
        self.audit.log_event(
            event_type=AuditEventType.LOGIN_SUCCESS,
            entity_type="user",
            entity_id=principal.username,
            details="User logged in successfully",
            username=principal.username,
            role=principal.role.value
        )
        return principal

    def reset_login_attempts(self) -> None:
        self.failed_login_attempts = 0

    def change_password(self, username: str, old_credential: str, new_credential: str) -> Principal:
        """
        Replace a principal with a copy holding a new credential

        Returns:
            The new Principal now stored in the registry
        """
        current = self.require(username)
        if not current.authenticate(old_credential):
            raise AuthenticationFailed("Current password is incorrect")

        min_length = self.config.min_password_length
        if not new_credential:
            raise InvalidCredential("New password cannot be empty")
        if len(new_credential) < min_length:
            raise InvalidCredential(f"New password must be at least {min_length} characters")
        if new_credential == old_credential:
            raise InvalidCredential("New password must differ from the current one")

        updated = current.with_credential(new_credential)
        self.storage.save(self.table_name, username, updated)

        self.audit.log_event(
            event_type=AuditEventType.PASSWORD_CHANGED,
            entity_type="user",
            entity_id=username,
            details="User successfully changed their password",
            username=username,
            role=updated.role.value
        )
        return updated

    def remove_for_customer(self, customer_id: str) -> Optional[Principal]:
        """Delete the principal linked to a customer, if any"""
        principal = self.find_by_customer(customer_id)
        if principal is None:
            return None
        self.storage.delete(self.table_name, principal.username)
        self.audit.log_event(
            event_type=AuditEventType.USER_DELETED,
            entity_type="user",
            entity_id=principal.username,
            details=f"User account deleted (customer {customer_id} removed)",
            username=principal.username,
            role=principal.role.value
        )
        return principal

    def generate_username(self, full_name: str) -> Optional[str]:
        """Lowercase, whitespace-to-underscore username, suffixed to be unique"""
        if not full_name or not full_name.strip():
            return None
        original = "_".join(full_name.lower().split())
        username = original
        counter = 1
        while self.storage.exists(self.table_name, username):
            username = f"{original}{counter}"
            counter += 1
        return username

    def generate_temporary_password(self, username: str) -> Optional[str]:
        """First two characters of the username followed by four random digits"""
        if not username:
            return None
        return f"{username[:2]}{1000 + secrets.randbelow(9000)}"
