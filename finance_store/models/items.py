"""
Core Data Models for Finance Store

These models define the schema of the persisted document and of every
record inside it. They are designed to:
1. Keep the stored field names exactly (Date, Amount, tripId, ...)
2. Round-trip any existing document without losing unknown fields
3. Never invent fields that were not supplied
4. Carry the backend version of the document they were read from

DESIGN DECISION: Python attribute names are snake_case and the stored names
are pydantic aliases. Records are dumped with exclude_unset/exclude_none so a
record written back looks exactly like the record read, and clearing an
optional field (tripId) removes it from storage.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    model_validator,
)


RECORD_CONFIG = ConfigDict(
    populate_by_name=True,
    extra="allow",
)


def _parse_iso_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date/timestamp, returning None when it can't be parsed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def utc_now_iso() -> str:
    """Current UTC time as an ISO timestamp with millisecond precision."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def dump_record(record: BaseModel) -> dict[str, Any]:
    """Serialize a record the way it is stored in the document."""
    return record.model_dump(
        mode="json",
        by_alias=True,
        exclude_unset=True,
        exclude_none=True,
    )


def _drop_nulls(cls: type[BaseModel], data: Any) -> Any:
    """
    Drop explicit nulls for fields that are not Optional.

    Older documents hold records like {"Category": null}. Such a field is
    treated as absent: it reads as its default and is left out on dump.
    """
    if not isinstance(data, dict):
        return data
    cleaned = dict(data)
    for name, field in cls.model_fields.items():
        if field.default is None:
            continue
        for key in {name, field.alias or name}:
            if key in cleaned and cleaned[key] is None:
                del cleaned[key]
    return cleaned


# =============================================================================
# TRANSACTIONS
# =============================================================================

class ItemDetails(BaseModel):
    """Merchant details attached to a card transaction."""
    model_config = RECORD_CONFIG

    address: Optional[str] = Field(default=None, alias="Address")
    phone: Optional[str] = Field(default=None, alias="Phone")


class TransactionItem(BaseModel):
    """
    Fields shared by card and bank transactions.

    Amount is signed: negative values are expenses, positive are income.
    An empty Category means "uncategorized".
    """
    model_config = RECORD_CONFIG

    id: str = Field(
        default="",
        description="Collection-scoped unique ID (equals the map key)"
    )
    date: str = Field(
        default="",
        alias="Date",
        description="ISO timestamp of the transaction"
    )
    name: str = Field(
        default="",
        alias="Name",
        description="Merchant or counterparty name as imported"
    )
    display_name: Optional[str] = Field(
        default=None,
        alias="DisplayName",
        description="User-chosen display name"
    )
    amount: float = Field(
        default=0.0,
        alias="Amount",
        description="Signed amount in the transaction currency"
    )
    category: str = Field(
        default="",
        alias="Category",
        description="Free-text category, empty when uncategorized"
    )
    currency: str = Field(
        default="NIS",
        alias="Currency",
        description="ISO-like code or recognized symbol"
    )
    pending_transaction: bool = Field(
        default=False,
        alias="PendingTransaction",
        description="Provisional transaction not yet settled"
    )

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _drop_nulls(cls, data)

    @property
    def label(self) -> str:
        """Name shown to the user."""
        return self.display_name or self.name


class CardItem(TransactionItem):
    """
    A credit card transaction.

    tripId is a weak reference: the card item names a trip but the trip
    neither owns nor lists its card items.
    """

    trip_id: Optional[str] = Field(
        default=None,
        alias="tripId",
        description="ID of the trip this transaction is assigned to"
    )
    comments: Optional[list[str]] = Field(default=None, alias="Comments")
    card: Optional[bool] = Field(default=None, alias="Card")
    raw_amount: Optional[float] = Field(default=None, alias="RawAmount")
    charge_date: Optional[str] = Field(default=None, alias="ChargeDate")
    transaction_type: Optional[str] = Field(default=None, alias="TransactionType")
    is_recurring_transaction: Optional[bool] = Field(default=None, alias="IsRecurringTransaction")
    is_abroad_transaction: Optional[bool] = Field(default=None, alias="IsAbroadTransaction")
    details: Optional[ItemDetails] = Field(default=None, alias="Details")
    version: Optional[Union[str, int]] = Field(
        default=None,
        description="Import version tag"
    )

    @property
    def has_version(self) -> bool:
        return self.version is not None and str(self.version) != ""


class BankItem(TransactionItem):
    """A bank account transaction, flagged with Bank: true."""

    balance: Optional[float] = Field(
        default=None,
        alias="Balance",
        description="Running account balance after this transaction"
    )
    raw_date: Optional[str] = Field(
        default=None,
        alias="RawDate",
        description="Date string exactly as it appeared in the bank export"
    )
    bank: bool = Field(
        default=False,
        alias="Bank",
        description="Marks the record as a bank transaction"
    )
    description: Optional[str] = Field(default=None, alias="Description")
    kind: Optional[str] = Field(default=None, alias="type")


# =============================================================================
# TRIPS
# =============================================================================

class Trip(BaseModel):
    """
    A trip that card transactions can be assigned to.

    createdAt/updatedAt are assigned by the store; clients cannot set them.
    """
    model_config = RECORD_CONFIG

    id: str = ""
    name: str = ""
    location: Optional[str] = None
    start_date: Optional[str] = Field(
        default=None,
        alias="startDate",
        description="Inclusive ISO start date"
    )
    end_date: Optional[str] = Field(
        default=None,
        alias="endDate",
        description="Inclusive ISO end date"
    )
    notes: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _drop_nulls(cls, data)


def _check_trip_dates(start_date: Optional[str], end_date: Optional[str]) -> None:
    start = _parse_iso_date(start_date)
    end = _parse_iso_date(end_date)
    if start and end and end.date() < start.date():
        raise ValueError("Trip end date cannot be before start date")


class TripDraft(BaseModel):
    """Client input for creating a trip."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Trip name"
    )
    location: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_dates(self) -> 'TripDraft':
        _check_trip_dates(self.start_date, self.end_date)
        return self


class TripPatch(BaseModel):
    """
    Client input for updating a trip.

    Only the fields actually supplied are merged onto the stored trip.
    Server-owned timestamps are not accepted.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str = ""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    notes: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Supplied fields keyed by attribute name, id excluded. A trip always keeps a name."""
        changes = self.model_dump(exclude_unset=True, exclude={"id"})
        if changes.get("name", "") is None:
            del changes["name"]
        return changes


# =============================================================================
# THE DOCUMENT
# =============================================================================

COLLECTION_ALIASES = ("cardItems", "bankItems", "trips")


class Document(BaseModel):
    """
    The single persisted unit.

    Every map key equals the id of its value. Keys other than the three
    collections and lastUpdate are preserved untouched.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    card_items: dict[str, CardItem] = Field(default_factory=dict, alias="cardItems")
    bank_items: dict[str, BankItem] = Field(default_factory=dict, alias="bankItems")
    trips: dict[str, Trip] = Field(default_factory=dict)
    last_update: Optional[str] = Field(default=None, alias="lastUpdate")

    # Backend generation this document was read from (0 = not stored yet)
    _version: Optional[int] = PrivateAttr(default=None)

    @property
    def version(self) -> Optional[int]:
        return self._version

    def with_version(self, version: Optional[int]) -> 'Document':
        self._version = version
        return self

    def to_storage_dict(self) -> dict[str, Any]:
        """Build the JSON object written to the backend."""
        data: dict[str, Any] = {
            "cardItems": {key: dump_record(item) for key, item in self.card_items.items()},
            "bankItems": {key: dump_record(item) for key, item in self.bank_items.items()},
            "trips": {key: dump_record(trip) for key, trip in self.trips.items()},
        }
        if self.last_update is not None:
            data["lastUpdate"] = self.last_update
        for key, value in (self.model_extra or {}).items():
            data.setdefault(key, value)
        return data


class DocumentUpdate(BaseModel):
    """
    Top-level collections to replace on save.

    A collection left as None is taken from the current stored document.
    """

    card_items: Optional[dict[str, CardItem]] = None
    bank_items: Optional[dict[str, BankItem]] = None
    trips: Optional[dict[str, Trip]] = None

    def touched_collections(self) -> list[str]:
        return [name for name in ("card_items", "bank_items", "trips") if getattr(self, name) is not None]
