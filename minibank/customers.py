"""
Customer Management Module

Manages customers, their one-to-one contact profiles and the customer side of
account ownership. A customer's account list and each account's owner
reference are kept mutually consistent.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, TYPE_CHECKING
import re

from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .identifiers import IdGenerator, CUSTOMER_PREFIX, PROFILE_PREFIX, is_valid_profile_id
from .errors import (
    CustomerNotFound, InputError, InvalidProfile, NonZeroBalance, ProfileExists
)
from .logging_config import get_logger

if TYPE_CHECKING:
    from .accounts import Account, AccountManager


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?[\d\s().-]+$')
MIN_PHONE_DIGITS = 10


@dataclass(eq=False)
class CustomerProfile:
    """
    Contact details for a customer (one-to-one with Customer)
    """
    id: str
    address: str
    phone: str
    email: str
    customer: Optional["Customer"] = field(default=None, repr=False)

    def __post_init__(self):
        if not is_valid_profile_id(self.id):
            raise InvalidProfile(f"Invalid profile id: {self.id!r} (expected P###)")

        if not self.address or not self.address.strip():
            raise InvalidProfile("Address cannot be empty")
        self.address = self.address.strip()

        digits = sum(ch.isdigit() for ch in self.phone or "")
        if not self.phone or not PHONE_PATTERN.match(self.phone) or digits < MIN_PHONE_DIGITS:
            raise InvalidProfile(f"Phone number must contain at least {MIN_PHONE_DIGITS} digits")

        if not self.email or not EMAIL_PATTERN.match(self.email):
            raise InvalidProfile("Invalid email format")


@dataclass(eq=False)
class Customer:
    """
    Bank customer owning zero or more accounts and at most one profile
    """
    id: str
    name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    profile: Optional[CustomerProfile] = field(default=None, init=False, repr=False)
    _accounts: List["Account"] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise InvalidProfile("Customer name cannot be empty")
        self.name = self.name.strip()

    @property
    def accounts(self) -> Tuple["Account", ...]:
        """Owned accounts in opening order"""
        return tuple(self._accounts)

    def add_account(self, account: "Account") -> None:
        """Link an account this customer owns"""
        if account.owner is not self:
            raise InputError(
                f"Account {account.id} is owned by {account.owner.id}, not {self.id}"
            )
        if account not in self._accounts:
            self._accounts.append(account)

    def remove_account(self, account_id: str) -> bool:
        """Unlink an account; returns False if it was not linked"""
        for i, account in enumerate(self._accounts):
            if account.id == account_id:
                del self._accounts[i]
                return True
        return False

    def set_profile(self, profile: CustomerProfile) -> None:
        """Attach a profile, detaching any previous one"""
        if self.profile is not None and self.profile is not profile:
            self.profile.customer = None
        profile.customer = self
        self.profile = profile


class CustomerManager:
    """
    Manages customer lifecycle and profiles
    """

    def __init__(
        self,
        storage: StorageInterface,
        id_generator: IdGenerator,
        audit_trail: AuditTrail,
        account_manager: "AccountManager"
    ):
        self.storage = storage
        self.id_generator = id_generator
        self.audit_trail = audit_trail
        self.account_manager = account_manager
        self.table_name = "customers"
        self.logger = get_logger("minibank.customers")

    def create_customer(self, name: str) -> Customer:
        """
        Create a new customer

        Args:
            name: Display name (must not be blank)

        Returns:
            Created Customer with a generated C### id
        """
        if not name or not name.strip():
            raise InvalidProfile("Customer name cannot be empty")

        customer = Customer(id=self.id_generator.next_id(CUSTOMER_PREFIX), name=name)
        self.storage.save(self.table_name, customer.id, customer)

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_CREATED,
            entity_type="customer",
            entity_id=customer.id,
            details=f"Customer {customer.id} created: {customer.name}",
            metadata={"name": customer.name}
        )
        self.logger.info("Customer created: %s", customer.id)
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        return self.storage.load(self.table_name, customer_id)

    def require_customer(self, customer_id: str) -> Customer:
        """Get customer by ID or raise CustomerNotFound"""
        customer = self.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFound(f"Customer {customer_id} not found")
        return customer

    def list_customers(self) -> List[Customer]:
        return self.storage.load_all(self.table_name)

    def delete_customer(self, customer_id: str) -> Customer:
        """
        Delete a customer and every account it owns.

        All balances are checked before anything is removed, so a refusal
        leaves the customer and all its accounts untouched.

        Raises:
            CustomerNotFound: Unknown customer id
            NonZeroBalance: Any owned account still holds a balance
        """
        customer = self.require_customer(customer_id)

        funded = [a for a in customer.accounts if a.balance != 0]
        if funded:
            ids = ", ".join(a.id for a in funded)
            raise NonZeroBalance(
                f"Customer {customer_id} still has funded accounts: {ids}"
            )

        for account in customer.accounts:
            self.account_manager.delete_account(account.id)

        if customer.profile is not None:
            customer.profile.customer = None
        self.storage.delete(self.table_name, customer_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_DELETED,
            entity_type="customer",
            entity_id=customer_id,
            details=f"Customer {customer_id} deleted"
        )
        self.logger.info("Customer deleted: %s", customer_id)
        return customer

    def create_or_update_profile(
        self,
        customer_id: str,
        address: str,
        phone: str,
        email: str,
        profile_id: Optional[str] = None,
        allow_replace: bool = False
    ) -> CustomerProfile:
        """
        Create a profile for a customer, or replace the existing one

        Args:
            customer_id: Owner of the profile
            address: Mailing address
            phone: Phone number with at least 10 digits
            email: Email address
            profile_id: Explicit P### id (generated if not provided)
            allow_replace: Permit replacing an existing profile

        Returns:
            The attached CustomerProfile
        """
        customer = self.require_customer(customer_id)
        existing = customer.profile

        if existing is not None and not allow_replace:
            raise ProfileExists(f"Customer {customer_id} already has a profile")

        if profile_id is None:
            profile_id = existing.id if existing else self.id_generator.next_id(PROFILE_PREFIX)
        else:
            owner = self._find_profile_owner(profile_id)
            if owner is not None and owner is not customer:
                raise InvalidProfile(f"Profile ID already exists: {profile_id}")

        profile = CustomerProfile(id=profile_id, address=address, phone=phone, email=email)
        customer.set_profile(profile)
        self.id_generator.observe(PROFILE_PREFIX, [profile.id])

        self.audit_trail.log_event(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="customer",
            entity_id=customer_id,
            details=f"Profile {profile.id} {'replaced' if existing else 'created'} for {customer_id}",
            metadata={"profile_id": profile.id}
        )
        return profile

    def _find_profile_owner(self, profile_id: str) -> Optional[Customer]:
        for customer in self.list_customers():
            if customer.profile is not None and customer.profile.id == profile_id:
                return customer
        return None
