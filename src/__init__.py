"""
DinDin - Source Package

Backend of a household finance app: accounts, categories, transactions,
investments and goals of one household, with derived metrics, document
import and a self-verifying backup.

DESIGN PRINCIPLES:
1. Metrics are pure functions over fetched records
2. Every record belongs to one owner; nobody sees anyone else's data
3. Destructive operations need explicit confirmation
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "DinDin Team"
