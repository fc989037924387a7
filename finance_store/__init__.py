"""
Finance Store - Source Package

Document store and aggregation engine behind a personal-finance tracker.
Card transactions, bank transactions and trips live in one JSON document
held in remote blob storage.

DESIGN PRINCIPLES:
1. One document, read and written as a unit
2. Aggregates are derived on every read, never stored
3. Failures come back as error strings, never as crashes
4. Concurrent writers are detected, not silently merged
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Store Team"
