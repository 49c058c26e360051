"""
Referral commission and milestone reward engine.

Walks a user's sponsor chain to pay badge-gated multi-level commissions
and pays one-time VIP milestone rewards.
"""

__version__ = "1.0.0"
