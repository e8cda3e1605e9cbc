"""
Banking Error Taxonomy

Domain-specific exceptions for the ledger core. Input errors derive from
ValueError and lookup failures from LookupError so callers can still catch
the built-in types.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .transactions import Transaction


class BankingError(Exception):
    """Base class for all ledger errors"""


# Input errors: surfaced immediately, never recorded in a ledger

class InputError(BankingError, ValueError):
    """Caller supplied invalid input"""


class InvalidAmount(InputError):
    """Amount is not a strictly positive decimal (or negative where zero is allowed)"""


class SameAccount(InputError):
    """Transfer source and destination are the same account"""


class InvalidIdentifier(InputError):
    """Identifier does not match its expected format"""


class NullEntry(InputError):
    """A ledger entry was required but none was given"""


class InvalidAccountKind(InputError):
    """Unknown account kind, or operation not supported by this kind"""


class InvalidProfile(InputError):
    """Customer or profile field failed validation"""


class InvalidCredential(InputError):
    """New credential does not satisfy the password rules"""


class DuplicateUsername(InputError):
    """Username is already registered"""


# Authorization errors

class AuthorizationError(BankingError):
    """Actor is not allowed to perform the operation"""


class AccessDenied(AuthorizationError):
    """Capability or ownership check failed"""


class AuthenticationFailed(AuthorizationError):
    """Username/credential pair did not match"""


class AuthenticationLocked(AuthorizationError):
    """Too many consecutive failed login attempts"""


# Business rule violations

class BusinessRuleViolation(BankingError):
    """Operation is well-formed but violates a business rule"""


class InsufficientFunds(BusinessRuleViolation):
    """Withdrawal exceeds the funds available under the account's rule"""

    def __init__(self, message: str, entry: Optional["Transaction"] = None):
        super().__init__(message)
        self.entry = entry


class NonZeroBalance(BusinessRuleViolation):
    """Account (or customer) cannot be removed while holding a balance"""


class ProfileExists(BusinessRuleViolation):
    """Customer already has a profile and replacement was not requested"""


# Lookup failures

class NotFound(BankingError, LookupError):
    """Referenced entity does not exist"""


class AccountNotFound(NotFound):
    """Unknown account id"""


class CustomerNotFound(NotFound):
    """Unknown customer id"""


class PrincipalNotFound(NotFound):
    """Unknown username"""
