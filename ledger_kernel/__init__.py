"""
Ledger Kernel - cost-accurate bookkeeping core.

A double-entry ledger with inventory cost layers:
- Balanced postings with cached account balances
- Single lock date for closed history
- Reverse & Replay corrections (no hard deletes of financial history)
- FIFO / weighted-average / standard costing over inventory layers
- Exact depletion restoration through a per-consumption ledger
"""

__version__ = "0.1.0"
