"""
Money Mates - Source Package

A shared savings tracker for exactly two people: both log contributions
to one ledger, save toward shared goals, and hold each other to a
recurring bi-monthly savings target.

DESIGN PRINCIPLES:
1. Derived numbers are recomputed, never stored
2. Shortfalls are frozen when a period closes
3. Two clients, one shared document store, no direct communication
4. Fail early, fail visibly
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Money Mates Team"
