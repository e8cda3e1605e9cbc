"""
Test suite for RBAC module

Tests role permissions, the capability and ownership predicates, the
principal registry, authentication lockout and credential changes.
"""

import pytest
from decimal import Decimal

from minibank.config import BankConfig
from minibank.storage import InMemoryStorage
from minibank.audit import AuditTrail, AuditEventType
from minibank.identifiers import IdGenerator
from minibank.customers import Customer
from minibank.accounts import AccountManager
from minibank.rbac import (
    AccessControl, Permission, Principal, PrincipalRegistry, Role, ROLE_PERMISSIONS
)
from minibank.errors import (
    AccessDenied, AuthenticationFailed, AuthenticationLocked, DuplicateUsername,
    InputError, InvalidCredential, InvalidIdentifier, PrincipalNotFound
)


@pytest.fixture
def storage():
    """Create in-memory storage for tests"""
    return InMemoryStorage()


@pytest.fixture
def audit(storage):
    """Create audit trail for tests"""
    return AuditTrail(storage)


@pytest.fixture
def account_manager(storage, audit):
    return AccountManager(storage, IdGenerator(), audit, BankConfig())


@pytest.fixture
def access_control(account_manager):
    return AccessControl(account_manager)


@pytest.fixture
def registry(storage, audit):
    """Create principal registry for tests"""
    return PrincipalRegistry(storage, audit, BankConfig(max_login_attempts=3, min_password_length=4))


@pytest.fixture
def accounts(account_manager):
    alice = Customer(id="C001", name="Alice")
    bob = Customer(id="C002", name="Bob")
    return {
        "alice": account_manager.create_account("SAVINGS", alice, Decimal("10")),
        "bob": account_manager.create_account("CHECKING", bob, Decimal("10")),
    }


class TestRolePermissions:
    """Test the role to permission mapping"""

    def test_admin_has_every_permission(self):
        """Test admin has every permission"""
        assert ROLE_PERMISSIONS[Role.ADMIN] == frozenset(Permission)

    def test_customer_permissions_are_limited(self):
        """Test customer permissions are limited"""
        perms = ROLE_PERMISSIONS[Role.CUSTOMER]
        assert Permission.DEPOSIT_MONEY in perms
        assert Permission.VIEW_TRANSACTION_HISTORY in perms
        assert Permission.CREATE_CUSTOMER not in perms
        assert Permission.APPLY_INTEREST not in perms
        assert Permission.VIEW_AUDIT_TRAIL not in perms


class TestPrincipal:
    """Test principal construction and credentials"""

    def test_customer_principal_requires_linked_customer(self):
        """Test customer principal requires linked customer"""
        with pytest.raises(InvalidIdentifier):
            Principal(username="alice", credential="pw", role=Role.CUSTOMER)

    def test_admin_principal_cannot_be_linked(self):
        """Test admin principal cannot be linked"""
        with pytest.raises(InputError):
            Principal(username="root", credential="pw", role=Role.ADMIN,
                      linked_customer_id="C001")

    def test_blank_username_rejected(self):
        """Test blank username rejected"""
        with pytest.raises(InputError):
            Principal.admin("  ", "pw")

    def test_restriction_follows_role(self):
        """Test restriction follows role"""
        assert not Principal.admin("admin", "pw").is_restricted
        assert Principal.customer("alice", "pw", "C001").is_restricted

    def test_authenticate(self):
        """Test credential check against the stored credential"""
        principal = Principal.admin("admin", "secret")
        assert principal.authenticate("secret")
        assert not principal.authenticate("Secret")
        assert not principal.authenticate(None)

    def test_credential_hidden_from_repr(self):
        """Test credential hidden from repr"""
        assert "secret" not in repr(Principal.admin("admin", "secret"))

    def test_with_credential_returns_new_principal(self):
        """Test with credential returns new principal"""
        original = Principal.customer("alice", "old1", "C001")
        updated = original.with_credential("new1")

        assert updated is not original
        assert updated.authenticate("new1")
        assert original.authenticate("old1")
        assert not updated.password_change_required
        assert original.password_change_required


class TestAccessControl:
    """Test the capability and ownership predicates"""

    def test_no_actor_has_nothing(self, access_control, accounts):
        """Test no actor has nothing"""
        assert not access_control.has_capability(None, Permission.DEPOSIT_MONEY)
        assert not access_control.can_access(None, accounts["alice"].id)

    def test_admin_can_access_any_account(self, access_control, accounts):
        """Test admin can access any account"""
        admin = Principal.admin("admin", "pw")
        assert access_control.can_access(admin, accounts["alice"].id)
        assert access_control.can_access(admin, accounts["bob"].id)
        assert access_control.can_access(admin, "ACC999")

    def test_customer_can_access_only_own_accounts(self, access_control, accounts):
        """Test customer can access only own accounts"""
        alice = Principal.customer("alice", "pw", "C001")
        assert access_control.can_access(alice, accounts["alice"].id)
        assert not access_control.can_access(alice, accounts["bob"].id)
        assert not access_control.can_access(alice, "ACC999")

    def test_authorize_checks_capability(self, access_control):
        """Test authorize checks capability"""
        alice = Principal.customer("alice", "pw", "C001")
        with pytest.raises(AccessDenied, match="not permitted"):
            access_control.authorize(alice, Permission.CREATE_ACCOUNT)

    def test_authorize_checks_ownership(self, access_control, accounts):
        """Test authorize checks ownership"""
        alice = Principal.customer("alice", "pw", "C001")
        access_control.authorize(alice, Permission.WITHDRAW_MONEY, accounts["alice"].id)
        with pytest.raises(AccessDenied, match="their own accounts"):
            access_control.authorize(alice, Permission.WITHDRAW_MONEY, accounts["bob"].id)

    def test_predicates_follow_ownership_changes(self, access_control, account_manager, accounts):
        """Test predicates follow ownership changes"""
        alice = Principal.customer("alice", "pw", "C001")
        assert access_control.can_access(alice, accounts["alice"].id)

        accounts["alice"].withdraw(Decimal("10"))
        account_manager.delete_account(accounts["alice"].id)
        assert not access_control.can_access(alice, accounts["alice"].id)


class TestPrincipalRegistry:
    """Test registration, authentication and password changes"""

    def test_register_and_lookup(self, registry):
        """Test register and lookup"""
        principal = registry.register(Principal.admin("admin", "admin123"))
        assert registry.get("admin") is principal
        assert registry.require("admin") is principal
        assert registry.list_principals() == [principal]

    def test_register_duplicate_username(self, registry):
        """Test register duplicate username"""
        registry.register(Principal.admin("admin", "a"))
        with pytest.raises(DuplicateUsername):
            registry.register(Principal.admin("admin", "b"))

    def test_require_unknown_user(self, registry):
        """Test require unknown user"""
        with pytest.raises(PrincipalNotFound):
            registry.require("ghost")

    def test_registration_is_audited(self, registry, audit):
        """Test registration is audited"""
        registry.register(Principal.admin("admin", "a"), registered_by="root")
        events = audit.get_events_by_type(AuditEventType.USER_REGISTERED)
        assert len(events) == 1
        assert events[0].details == "Registered by: root"

    def test_authenticate_success(self, registry, audit):
        """Test successful login"""
        registry.register(Principal.admin("admin", "admin123"))
        principal = registry.authenticate("admin", "admin123")
        assert principal.username == "admin"
        assert len(audit.get_events_by_type(AuditEventType.LOGIN_SUCCESS)) == 1

    def test_authenticate_does_not_reveal_which_part_failed(self, registry):
        """Test authenticate does not reveal which part failed"""
        registry.register(Principal.admin("admin", "admin123"))
        with pytest.raises(AuthenticationFailed) as wrong_password:
            registry.authenticate("admin", "nope")
        registry.reset_login_attempts()
        with pytest.raises(AuthenticationFailed) as wrong_user:
            registry.authenticate("nobody", "admin123")
        assert str(wrong_password.value) == str(wrong_user.value)

    def test_lockout_after_max_attempts(self, registry):
        """Test lockout after max attempts"""
        registry.register(Principal.admin("admin", "admin123"))
        for _ in range(2):
            with pytest.raises(AuthenticationFailed):
                registry.authenticate("admin", "bad")
        with pytest.raises(AuthenticationLocked):
            registry.authenticate("admin", "bad")

        # Correct credentials are refused while locked
        with pytest.raises(AuthenticationLocked):
            registry.authenticate("admin", "admin123")

        registry.reset_login_attempts()
        assert registry.authenticate("admin", "admin123").username == "admin"

    def test_success_resets_failure_count(self, registry):
        """Test success resets failure count"""
        registry.register(Principal.admin("admin", "admin123"))
        for _ in range(2):
            with pytest.raises(AuthenticationFailed):
                registry.authenticate("admin", "bad")
        registry.authenticate("admin", "admin123")
        assert registry.failed_login_attempts == 0

    def test_change_password_swaps_principal(self, registry, audit):
        """Test change password swaps principal"""
        original = registry.register(Principal.customer("alice", "al1234", "C001"))
        updated = registry.change_password("alice", "al1234", "newpass")

        assert updated is not original
        assert registry.get("alice") is updated
        assert updated.authenticate("newpass")
        assert original.authenticate("al1234")
        assert registry.authenticate("alice", "newpass") is updated
        assert len(audit.get_events_by_type(AuditEventType.PASSWORD_CHANGED)) == 1

    def test_change_password_requires_current_password(self, registry):
        """Test change password requires current password"""
        registry.register(Principal.customer("alice", "al1234", "C001"))
        with pytest.raises(AuthenticationFailed):
            registry.change_password("alice", "wrong", "newpass")

    @pytest.mark.parametrize("new_password", ["", "abc", "al1234"])
    def test_change_password_rules(self, registry, new_password):
        """Test change password rules"""
        original = registry.register(Principal.customer("alice", "al1234", "C001"))
        with pytest.raises(InvalidCredential):
            registry.change_password("alice", "al1234", new_password)
        assert registry.get("alice") is original

    def test_find_and_remove_for_customer(self, registry, audit):
        """Test find and remove for customer"""
        principal = registry.register(Principal.customer("alice", "al1234", "C001"))
        assert registry.find_by_customer("C001") is principal

        assert registry.remove_for_customer("C001") is principal
        assert registry.get("alice") is None
        assert registry.remove_for_customer("C001") is None
        assert len(audit.get_events_by_type(AuditEventType.USER_DELETED)) == 1

    def test_generate_username(self, registry):
        """Test generate username"""
        assert registry.generate_username("Alice  Smith") == "alice_smith"
        registry.register(Principal.customer("alice_smith", "pw", "C001"))
        assert registry.generate_username("Alice Smith") == "alice_smith1"
        assert registry.generate_username("   ") is None

    def test_generate_temporary_password(self, registry):
        """Test generate temporary password"""
        password = registry.generate_temporary_password("alice_smith")
        assert password.startswith("al")
        assert len(password) == 6
        assert 1000 <= int(password[2:]) <= 9999
        assert registry.generate_temporary_password("") is None
