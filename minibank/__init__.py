"""
Mini Banking Ledger

An in-memory banking core with polymorphic savings and checking accounts,
an append-only transaction ledger, and layered access control.
"""

__version__ = "1.0.0"
