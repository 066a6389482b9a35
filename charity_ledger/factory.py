"""
Application Wiring

This module ties together all the components: storage backend,
audit logger, validator, ledger service and report builder.

DESIGN DECISION: The backend is chosen ONCE, here, from configuration.
Nothing below the factory knows which backend is active.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from charity_ledger.audit import AuditLogger, configure_logging
from charity_ledger.config import Settings, StorageBackendKind, get_settings
from charity_ledger.ledger import LedgerService
from charity_ledger.reports import ReportBuilder
from charity_ledger.services.storage import (
    GoogleSheetsBackend,
    GoogleSheetsClient,
    LocalJSONBackend,
    StorageBackend,
)
from charity_ledger.validation import RecordValidator


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    backend: StorageBackend
    audit_logger: AuditLogger
    validator: RecordValidator
    ledger: LedgerService
    reports: ReportBuilder


def create_backend(settings: Settings) -> StorageBackend:
    """
    Build the storage backend selected by configuration.

    An explicit google_sheets selection with incomplete settings raises;
    only AUTO falls back to local files.
    """
    kind = settings.resolve_backend()
    if kind == StorageBackendKind.GOOGLE_SHEETS:
        return GoogleSheetsBackend(GoogleSheetsClient(settings.google_sheets))

    local = settings.local_storage
    return LocalJSONBackend(local.data_dir, audit_file_name=local.audit_file_name)


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[StorageBackend] = None,
    persist_audit: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to get_settings())
        backend: Pre-built backend, bypassing configuration (used by tests)
        persist_audit: Whether audit events are written to the backend
                       as well as the local log
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    backend = backend or create_backend(settings)
    audit_logger = AuditLogger(backend.audit_storage() if persist_audit else None)
    validator = RecordValidator(app_settings)
    ledger = LedgerService(backend, audit_logger=audit_logger, validator=validator)

    logger.info(
        "app_components_created",
        backend=backend.name,
        environment=app_settings.app_environment,
    )
    return AppComponents(
        backend=backend,
        audit_logger=audit_logger,
        validator=validator,
        ledger=ledger,
        reports=ReportBuilder(ledger),
    )
