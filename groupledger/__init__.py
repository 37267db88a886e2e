"""
GroupLedger - Source Package

Personal and shared-group expense tracking. The core is the settlement
engine: it turns a group's expenses into net balances and a short list
of transfers that settle them.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Bad records are skipped and reported, never fatal
3. No ambient user: every operation names its group and actor
4. Storage layer is swappable
"""

__version__ = "1.0.0"
