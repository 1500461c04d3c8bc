"""
Ledger Engine - Source Package

Multi-currency income/expense ledger core for small teams: owner-scoped
category trees, transactions posted in CNY/USD/JPY and converted to CNY at
a per-day rate, batch import/export and monthly reporting.

DESIGN PRINCIPLES:
1. Money is Decimal, end to end
2. Fail early, fail visibly (typed error kinds)
3. No silent corrections, no invented exchange rates
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Engine Team"
