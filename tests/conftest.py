"""
Shared fixtures.

Every test runs against InMemoryBlobStore; no test talks to Google Cloud
Storage.
"""

import json

import pytest

from finance_store.repositories import (
    BankItemRepository,
    CardItemRepository,
    ReferentialIntegrityManager,
    TripRepository,
)
from finance_store.services.currency import CurrencyConverter
from finance_store.services.storage import ConcurrencyMode, DocumentStore, InMemoryBlobStore


DOCUMENT_NAME = "db.json"

RATES = {"NIS": 1.0, "USD": 3.5, "EUR": 4.0, "IDR": 0.0002}


def make_document(card_items=None, bank_items=None, trips=None, **extra) -> str:
    document = {
        "cardItems": card_items or {},
        "bankItems": bank_items or {},
        "trips": trips or {},
    }
    document.update(extra)
    return json.dumps(document)


def card(item_id, date, amount, category="", currency="NIS", **fields) -> dict:
    record = {
        "id": item_id,
        "Date": date,
        "Name": f"Merchant {item_id}",
        "Amount": amount,
        "Category": category,
        "Currency": currency,
    }
    record.update(fields)
    return record


def bank(item_id, date, amount, category="", **fields) -> dict:
    record = card(item_id, date, amount, category=category, Bank=True)
    record.update(fields)
    return record


@pytest.fixture
def converter() -> CurrencyConverter:
    return CurrencyConverter(rates=RATES, base_currency="NIS")


@pytest.fixture
def seed() -> dict:
    """A small document spanning three months."""
    return {
        "card_items": {
            "c1": card("c1", "2024-03-05T10:00:00", -50, "Groceries"),
            "c2": card("c2", "2024-03-20T18:30:00", -20, "Restaurants", currency="$"),
            "c3": card("c3", "2024-02-11T09:00:00", -100, "Groceries"),
            "c4": card("c4", "2024-01-02T12:00:00", -10, "Transport", currency="EUR"),
        },
        "bank_items": {
            "b1": bank("b1", "2024-03-01T00:00:00", 5000, "Salary"),
            "b2": bank("b2", "2024-03-15T00:00:00", -1200, "Rent"),
            "b3": bank("b3", "2024-02-01T00:00:00", 5000, "Salary"),
        },
        "trips": {},
    }


@pytest.fixture
def blob_store(seed) -> InMemoryBlobStore:
    return InMemoryBlobStore({DOCUMENT_NAME: make_document(**seed)})


@pytest.fixture
def store(blob_store) -> DocumentStore:
    return DocumentStore(blob_store, document_name=DOCUMENT_NAME)


@pytest.fixture
def legacy_store(blob_store) -> DocumentStore:
    return DocumentStore(
        blob_store,
        document_name=DOCUMENT_NAME,
        concurrency_mode=ConcurrencyMode.LEGACY,
    )


@pytest.fixture
def card_repo(store, converter) -> CardItemRepository:
    return CardItemRepository(store, converter=converter)


@pytest.fixture
def bank_repo(store) -> BankItemRepository:
    return BankItemRepository(store)


@pytest.fixture
def trip_repo(store, converter) -> TripRepository:
    return TripRepository(store, integrity=ReferentialIntegrityManager(), converter=converter)


def stored(blob_store: InMemoryBlobStore) -> dict:
    """The raw JSON currently in the blob store."""
    return json.loads(blob_store.peek(DOCUMENT_NAME))
