"""Repositories: one per document collection, plus referential integrity."""

from finance_store.repositories.bank_items import BankItemRepository
from finance_store.repositories.base import BaseRepository, TransactionRepository
from finance_store.repositories.card_items import CardItemRepository
from finance_store.repositories.integrity import ReferentialIntegrityManager
from finance_store.repositories.trips import TripRepository, generate_trip_id

__all__ = [
    "BankItemRepository",
    "BaseRepository",
    "CardItemRepository",
    "ReferentialIntegrityManager",
    "TransactionRepository",
    "TripRepository",
    "generate_trip_id",
]
