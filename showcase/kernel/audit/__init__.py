"""
Audit trail - append-only record of significant actions.
"""

from showcase.kernel.audit.audit_service import (
    AuditEntry,
    AuditFilter,
    AuditPage,
    AuditService,
    BoundAuditLogger,
    create_audit_logger,
)

__all__ = [
    "AuditEntry",
    "AuditFilter",
    "AuditPage",
    "AuditService",
    "BoundAuditLogger",
    "create_audit_logger",
]
