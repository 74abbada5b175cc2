"""
Finance Tracker - Source Package

A personal finance tracker whose core is the receipt ingestion pipeline:
upload → persisted record → extraction → status reconciliation → display.

DESIGN PRINCIPLES:
1. Fail early, fail visibly
2. Every status change is a guarded state transition
3. The caller's identity is passed explicitly, never held globally
4. Storage and extraction backends are swappable
5. Every step must be auditable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
