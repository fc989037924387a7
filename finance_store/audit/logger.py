"""
Audit Logger

Every mutation of the document and every failure at the repository
boundary is logged as a structured event.

The audit logger:
- Logs locally through structlog (JSON lines by default)
- Never raises: a logging failure must not fail the operation
- Supports correlation IDs to trace the events of one operation
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_store.config import AppSettings
from finance_store.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


def configure_logging(app_settings: Optional[AppSettings] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Safe to call more than once; the last call wins.
    """
    app_settings = app_settings or AppSettings()
    level = logging.DEBUG if app_settings.debug_mode else getattr(logging, app_settings.log_level)

    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if app_settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Events are written to the structured local log. The document itself
    is the only persisted state, so the audit trail is not stored in it.
    """

    def __init__(self, correlation_id: Optional[UUID] = None):
        self._correlation_id = correlation_id
        self._logger = structlog.get_logger("finance_store.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        if event.correlation_id is None and self._correlation_id is not None:
            event = event.model_copy(update={"correlation_id": self._correlation_id})

        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Never let logging break the operation being audited
            logging.getLogger(__name__).warning("audit logging failed: %s", e)

    def log_document_repaired(self, repaired: dict[str, list[str]], persisted: bool) -> None:
        """Log a lazy id backfill applied at load time."""
        self.log(AuditEventBuilder.document_repaired(repaired=repaired, persisted=persisted))

    def log_document_saved(self, collections: list[str], version: Optional[int]) -> None:
        self.log(AuditEventBuilder.document_saved(collections=collections, version=version))

    def log_save_conflict(
        self,
        expected_version: Optional[int],
        actual_version: Optional[int],
    ) -> None:
        self.log(AuditEventBuilder.save_conflict(
            expected_version=expected_version,
            actual_version=actual_version,
        ))

    def log_item_updated(self, collection: str, item_id: str) -> None:
        self.log(AuditEventBuilder.item_updated(collection=collection, item_id=item_id))

    def log_item_deleted(self, collection: str, item_id: str) -> None:
        self.log(AuditEventBuilder.item_deleted(collection=collection, item_id=item_id))

    def log_trip_created(self, trip_id: str, name: str) -> None:
        self.log(AuditEventBuilder.trip_changed(
            AuditEventType.TRIP_CREATED, trip_id, details={"name": name},
        ))

    def log_trip_updated(self, trip_id: str, fields: list[str]) -> None:
        self.log(AuditEventBuilder.trip_changed(
            AuditEventType.TRIP_UPDATED, trip_id, details={"fields": fields},
        ))

    def log_trip_deleted(self, trip_id: str, detached_items: int) -> None:
        self.log(AuditEventBuilder.trip_changed(
            AuditEventType.TRIP_DELETED, trip_id, details={"detached_items": detached_items},
        ))

    def log_assignment(self, trip_id: Optional[str], requested: int, updated: int) -> None:
        """Log an assign (trip_id set) or unassign (trip_id None)."""
        self.log(AuditEventBuilder.card_items_assignment(
            trip_id=trip_id,
            requested=requested,
            updated=updated,
        ))

    def log_operation_failed(self, operation: str, error: Exception) -> None:
        self.log(AuditEventBuilder.operation_failed(
            operation=operation,
            error_kind=type(error).__name__,
            error_message=str(error),
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a routed operation and pass the bound
    logger to everything it calls.
    """
    return uuid4()
