"""
subledger - recurring-billing subscription ledger.

Tracks provider plans, subscriber enrollment and recurring payments. Funds
only move for an explicit, still-active subscription, and every state change
is an atomic, all-or-nothing transition.
"""

__version__ = "0.1.0"


def get_version() -> str:
    """Get package version."""
    return __version__
