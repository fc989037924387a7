"""
Audit Models for Finance Store

Every mutation of the document, and every failure at the repository
boundary, is described by an AuditEvent. This provides:
1. Traceability of who changed which record
2. Debugging information when a save conflicts or the backend fails
3. A record of lazy migrations (id repairs) applied at load time
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Document level
    DOCUMENT_REPAIRED = "document_repaired"
    DOCUMENT_SAVED = "document_saved"
    SAVE_CONFLICT = "save_conflict"

    # Transactions
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"

    # Trips
    TRIP_CREATED = "trip_created"
    TRIP_UPDATED = "trip_updated"
    TRIP_DELETED = "trip_deleted"
    CARD_ITEMS_ASSIGNED = "card_items_assigned"
    CARD_ITEMS_UNASSIGNED = "card_items_unassigned"

    # Failures
    OPERATION_FAILED = "operation_failed"
    BACKEND_ERROR = "backend_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_type is the collection the event concerns ("cardItems",
    "bankItems", "trips" or "document").
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.item_deleted("cardItems", "c1")
        event = AuditEventBuilder.save_conflict(expected_version=3, actual_version=4)
    """

    @staticmethod
    def document_repaired(
        repaired: dict[str, list[str]],
        persisted: bool,
    ) -> AuditEvent:
        count = sum(len(keys) for keys in repaired.values())
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_REPAIRED,
            severity=AuditSeverity.INFO if persisted else AuditSeverity.WARNING,
            entity_type="document",
            description=f"Backfilled {count} missing record ids from map keys",
            details={
                "repaired": repaired,
                "persisted": persisted,
            },
        )

    @staticmethod
    def document_saved(
        collections: list[str],
        version: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_SAVED,
            entity_type="document",
            correlation_id=correlation_id,
            description=f"Document saved ({', '.join(collections) or 'no collections'})",
            details={
                "collections": collections,
                "version": version,
            },
        )

    @staticmethod
    def save_conflict(
        expected_version: Optional[int],
        actual_version: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            correlation_id=correlation_id,
            description="Save rejected: document changed since it was loaded",
            details={
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )

    @staticmethod
    def item_updated(
        collection: str,
        item_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_UPDATED,
            entity_type=collection,
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"{collection} record {item_id} written",
        )

    @staticmethod
    def item_deleted(
        collection: str,
        item_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_DELETED,
            entity_type=collection,
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"{collection} record {item_id} deleted",
        )

    @staticmethod
    def trip_changed(
        event_type: AuditEventType,
        trip_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.replace("trip_", "")
        return AuditEvent(
            event_type=event_type,
            entity_type="trips",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=f"Trip {trip_id} {verb}",
            details=details or {},
        )

    @staticmethod
    def card_items_assignment(
        trip_id: Optional[str],
        requested: int,
        updated: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        assigned = trip_id is not None
        return AuditEvent(
            event_type=(
                AuditEventType.CARD_ITEMS_ASSIGNED
                if assigned
                else AuditEventType.CARD_ITEMS_UNASSIGNED
            ),
            entity_type="cardItems",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=(
                f"{updated} of {requested} card items "
                f"{'assigned to trip ' + trip_id if assigned else 'unassigned'}"
            ),
            details={
                "requested": requested,
                "updated": updated,
            },
        )

    @staticmethod
    def operation_failed(
        operation: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # Backend trouble is an error; bad input or a missing record is not
        backend = error_kind in ("BackendUnavailableError", "CorruptDocumentError")
        return AuditEvent(
            event_type=AuditEventType.BACKEND_ERROR if backend else AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.ERROR if backend else AuditSeverity.WARNING,
            description=f"{operation} failed: {error_kind}",
            error_message=error_message,
            details={
                "operation": operation,
                "error_kind": error_kind,
            },
            correlation_id=correlation_id,
        )
