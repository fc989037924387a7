"""
Data Models Package

This package contains all Pydantic models used in the Finance Store.
The persisted document and every request/response conform to these schemas.
"""

from finance_store.models.items import (
    BankItem,
    CardItem,
    Document,
    DocumentUpdate,
    ItemDetails,
    TransactionItem,
    Trip,
    TripDraft,
    TripPatch,
    dump_record,
)
from finance_store.models.requests import (
    AssignCardItemsRequest,
    AssignmentResponse,
    BankItemFilter,
    CardItemFilter,
    CategoryTotal,
    CreateTripRequest,
    DeleteResponse,
    GetBankItemResponse,
    GetBankItemsRequest,
    GetBankItemsResponse,
    GetCardItemResponse,
    GetCardItemsRequest,
    GetCardItemsResponse,
    GetLastUpdateResponse,
    GetMonthlyTotalsRequest,
    GetMonthlyTotalsResponse,
    GetTripResponse,
    GetTripsRequest,
    GetTripsResponse,
    GetTripSummaryResponse,
    IdRequest,
    MonthlyTotal,
    MonthlyTotalsFilter,
    Pagination,
    TripFilter,
    TripMutationResponse,
    TripSummary,
    TripTotals,
    UnassignCardItemsRequest,
    UpdateBankItemRequest,
    UpdateBankItemResponse,
    UpdateCardItemRequest,
    UpdateCardItemResponse,
    UpdateTripRequest,
)
from finance_store.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "BankItem",
    "CardItem",
    "Document",
    "DocumentUpdate",
    "ItemDetails",
    "TransactionItem",
    "Trip",
    "TripDraft",
    "TripPatch",
    "dump_record",
    # Requests / responses
    "AssignCardItemsRequest",
    "AssignmentResponse",
    "BankItemFilter",
    "CardItemFilter",
    "CategoryTotal",
    "CreateTripRequest",
    "DeleteResponse",
    "GetBankItemResponse",
    "GetBankItemsRequest",
    "GetBankItemsResponse",
    "GetCardItemResponse",
    "GetCardItemsRequest",
    "GetCardItemsResponse",
    "GetLastUpdateResponse",
    "GetMonthlyTotalsRequest",
    "GetMonthlyTotalsResponse",
    "GetTripResponse",
    "GetTripsRequest",
    "GetTripsResponse",
    "GetTripSummaryResponse",
    "IdRequest",
    "MonthlyTotal",
    "MonthlyTotalsFilter",
    "Pagination",
    "TripFilter",
    "TripMutationResponse",
    "TripSummary",
    "TripTotals",
    "UnassignCardItemsRequest",
    "UpdateBankItemRequest",
    "UpdateBankItemResponse",
    "UpdateCardItemRequest",
    "UpdateCardItemResponse",
    "UpdateTripRequest",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
