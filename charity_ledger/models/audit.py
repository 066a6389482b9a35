"""
Audit Models for Charity Ledger

Every write to the ledger is logged for audit purposes.
This provides:
1. Traceability of who changed what and when
2. Debugging information when a balance looks wrong
3. Accountability for the charity's trustees

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Generic record lifecycle
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"

    # Ledger-specific
    SALE_ARREARS_COMPUTED = "sale_arrears_computed"
    BALANCES_RECOMPUTED = "balances_recomputed"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Column order used by row-based audit stores
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger write creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection name (e.g., 'sales', 'bank_transactions')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one UI submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

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

    def to_row(self) -> list[str]:
        """
        Convert to a flat row in AUDIT_COLUMNS order.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]

    @classmethod
    def from_row(cls, row: list[str]) -> "AuditEvent":
        """Inverse of to_row. Missing trailing cells read as empty."""
        def safe_get(index: int) -> str:
            try:
                return row[index] or ""
            except IndexError:
                return ""

        return cls(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("sales", sale.id)
        event = AuditEventBuilder.balances_recomputed(12, 3)
    """

    @staticmethod
    def record_created(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Created {entity_type} record {entity_id}",
            details=details or {},
        )

    @staticmethod
    def record_updated(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Updated {entity_type} record {entity_id}",
            details=details or {},
        )

    @staticmethod
    def record_deleted(
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Deleted {entity_type} record {entity_id}",
        )

    @staticmethod
    def sale_arrears_computed(
        sale_id: str,
        expected_cash: str,
        arrears: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_ARREARS_COMPUTED,
            entity_type="sales",
            entity_id=sale_id,
            correlation_id=correlation_id,
            description=f"Sale {sale_id}: expected {expected_cash}, arrears {arrears}",
            details={
                "expected_cash": expected_cash,
                "arrears": arrears,
            },
        )

    @staticmethod
    def balances_recomputed(
        transaction_count: int,
        changed_count: int,
        closing_balance: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_RECOMPUTED,
            entity_type="bank_transactions",
            correlation_id=correlation_id,
            description=(
                f"Running balances recomputed over {transaction_count} transactions "
                f"({changed_count} changed)"
            ),
            details={
                "transaction_count": transaction_count,
                "changed_count": changed_count,
                "closing_balance": closing_balance,
            },
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Validation failed for {entity_type} with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def storage_error(
        entity_type: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Storage error during {operation} on {entity_type}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )
