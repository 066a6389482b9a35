"""
Audit Logger

DESIGN DECISION: Every write to the ledger is logged.
This provides:
1. Traceability of every change to the books
2. Debugging capability when a balance looks wrong
3. A history the trustees can read

The audit logger:
- Gracefully handles failures (doesn't break a ledger write if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from charity_ledger.models.audit import AuditEvent, AuditEventBuilder
from charity_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) to stderr at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and trustee visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("charity_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_created(
        self,
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_created(
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_updated(
        self,
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_updated(
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_deleted(
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_sale_arrears(
        self,
        sale_id: str,
        expected_cash: str,
        arrears: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.sale_arrears_computed(
            sale_id=sale_id,
            expected_cash=expected_cash,
            arrears=arrears,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balances_recomputed(
        self,
        transaction_count: int,
        changed_count: int,
        closing_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.balances_recomputed(
            transaction_count=transaction_count,
            changed_count=changed_count,
            closing_balance=closing_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        entity_type: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            entity_type=entity_type,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., one form submission)
    and pass it through all subsequent operations.
    """
    return uuid4()
