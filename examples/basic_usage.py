#!/usr/bin/env python3
"""
Example: Walking through the ledger as an administrator and a customer

Creates customers and accounts, moves money (including a failed withdrawal
and an overdraft), applies interest and prints histories and the audit trail.
"""

import os
import sys
from decimal import Decimal

# Add the minibank package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from minibank.config import get_config
from minibank.logging_config import setup_logging
from minibank.bank import BankingSystem
from minibank.rbac import Principal
from minibank.money import format_amount
from minibank.errors import AccessDenied, InsufficientFunds


def main():
    print("🏦 Mini Bank - Ledger Walkthrough")
    print("=" * 60)

    # 1. Configuration and logging
    print("\n1. 🔧 Configuration Setup")
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    print(f"   Savings interest rate: {config.default_savings_interest_rate}")
    print(f"   Default overdraft limit: {config.default_overdraft_limit}")

    bank = BankingSystem(config=config)
    bank.register_user(Principal.admin("admin", "admin123"))
    bank.login("admin", "admin123")

    # 2. Customers and accounts
    print("\n2. 👥 Customers and Accounts")
    alice, alice_user, temporary = bank.onboard_customer("Alice Smith")
    bob = bank.create_customer("Bob Jones")
    bank.create_or_update_profile(alice.id, "1 Main St", "555-123-4567", "alice@example.com")
    print(f"   {alice.id} {alice.name} (login: {alice_user.username} / {temporary})")
    print(f"   {bob.id} {bob.name}")

    savings = bank.create_account("SAVINGS", alice, Decimal("1000.00"))
    checking = bank.create_account("CHECKING", bob, Decimal("100.00"), overdraft_limit=Decimal("50.00"))
    for account in (savings, checking):
        print(f"   {account.get_details()}")

    # 3. Money movement
    print("\n3. 💰 Money Movement")
    bank.deposit(savings.id, Decimal("250.00"))
    bank.withdraw(checking.id, Decimal("130.00"))
    print(f"   {checking.id} overdrawn to {format_amount(checking.balance)}")
    try:
        bank.withdraw(checking.id, Decimal("25.00"))
    except InsufficientFunds as e:
        print(f"   Refused: {e}")
    debit, credit = bank.transfer(savings.id, checking.id, Decimal("30.00"))
    print(f"   Transfer {debit.correlation_id}: {format_amount(debit.amount)}")

    # 4. Interest
    print("\n4. 📈 Interest")
    for result in bank.apply_interest():
        print(f"   {result.account_id}: {format_amount(result.old_balance)} -> "
              f"{format_amount(result.new_balance)} (+{format_amount(result.interest)})")

    # 5. Customer session
    print("\n5. 🔒 Customer Session")
    bank.logout()
    bank.login(alice_user.username, temporary)
    bank.change_password(temporary, "alice-new-pass")
    print(f"   Visible accounts: {[a.id for a in bank.visible_accounts()]}")
    try:
        bank.withdraw(checking.id, Decimal("1.00"))
    except AccessDenied as e:
        print(f"   Denied: {e}")

    print(f"\n   History for {savings.id} (most recent first):")
    for entry in bank.get_history(savings.id):
        print(f"   {entry.id} {entry.transaction_type.value:<8} "
              f"{entry.status.value:<9} {format_amount(entry.amount)}")

    # 6. Audit trail
    print("\n6. 📋 Audit Trail")
    bank.logout()
    bank.login("admin", "admin123")
    for event in bank.audit_trail_view(limit=10):
        print(f"   {event.to_line()}")
    integrity = bank.audit_trail.verify_integrity()
    print(f"   Chain valid: {integrity['valid']} ({integrity['total_events']} events)")


if __name__ == "__main__":
    main()
