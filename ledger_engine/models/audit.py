"""
Audit Models for the Ledger Engine

Every mutating operation on the ledger is recorded in an append-only trail.
This provides:
1. Complete traceability of who changed financial history
2. A way to detect tampering (deleted rows keep their snapshot here)
3. Debugging information when things go wrong

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger_engine.models.transaction import Transaction


class AuditAction(str, Enum):
    """Mutating operations we audit."""
    CREATE_TRANSACTION = "CREATE_TRANSACTION"
    UPDATE_TRANSACTION = "UPDATE_TRANSACTION"
    DELETE_TRANSACTION = "DELETE_TRANSACTION"
    IMPORT_TRANSACTIONS = "IMPORT_TRANSACTIONS"
    EXPORT_TRANSACTIONS = "EXPORT_TRANSACTIONS"


class AuditLogEntry(BaseModel):
    """
    A single audit entry.

    `details` is a JSON-safe snapshot: decimals and dates are stored as
    strings so the entry reads back exactly as it was written.
    """

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry identifier"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the operation happened (UTC)"
    )

    # What happened, and who did it
    action: AuditAction
    user_id: str = Field(
        ...,
        min_length=1,
        description="Actor performing the operation"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'Transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this entry relates to"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation-specific snapshot"
    )

    # Request metadata, filled in by the caller when available
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "audit_id": str(self.id),
            "created_at": self.created_at.isoformat(),
            "action": self.action.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [id, created_at, action, user_id, entity_type, entity_id,
         details_json, ip_address, user_agent]
        """
        return [
            str(self.id),
            self.created_at.isoformat(),
            self.action.value,
            self.user_id,
            self.entity_type or "",
            self.entity_id or "",
            json.dumps(self.details, ensure_ascii=False) if self.details else "",
            self.ip_address or "",
            self.user_agent or "",
        ]


def transaction_snapshot(transaction: Transaction) -> dict[str, Any]:
    """Full JSON-safe state of a transaction."""
    return {
        "type": transaction.type.value,
        "amount": str(transaction.original_amount),
        "currency": transaction.currency.value,
        "exchange_rate": str(transaction.exchange_rate),
        "amount_cny": str(transaction.amount_cny),
        "category_id": str(transaction.category_id),
        "date": transaction.transaction_date.isoformat(),
        "description": transaction.description,
        "notes": transaction.notes,
        "owner_id": transaction.user_id,
        "created_at": transaction.created_at.isoformat(),
    }


class AuditEntryBuilder:
    """
    Helper class to build audit entries with common patterns.

    Usage:
        entry = AuditEntryBuilder.transaction_created(transaction)
        entry = AuditEntryBuilder.transaction_deleted(transaction, actor_id)
    """

    @staticmethod
    def transaction_created(transaction: Transaction) -> AuditLogEntry:
        return AuditLogEntry(
            action=AuditAction.CREATE_TRANSACTION,
            user_id=transaction.user_id,
            entity_type="Transaction",
            entity_id=str(transaction.id),
            details={
                "type": transaction.type.value,
                "amount": str(transaction.original_amount),
                "currency": transaction.currency.value,
                "exchange_rate": str(transaction.exchange_rate),
                "amount_cny": str(transaction.amount_cny),
                "description": transaction.description,
            },
        )

    @staticmethod
    def transaction_updated(
        before: Transaction,
        after: Transaction,
        changed_fields: list[str],
    ) -> AuditLogEntry:
        return AuditLogEntry(
            action=AuditAction.UPDATE_TRANSACTION,
            user_id=after.user_id,
            entity_type="Transaction",
            entity_id=str(after.id),
            details={
                "changed_fields": sorted(changed_fields),
                "before": transaction_snapshot(before),
                "after": transaction_snapshot(after),
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction: Transaction,
        actor_id: str,
    ) -> AuditLogEntry:
        return AuditLogEntry(
            action=AuditAction.DELETE_TRANSACTION,
            user_id=actor_id,
            entity_type="Transaction",
            entity_id=str(transaction.id),
            details=transaction_snapshot(transaction),
        )

    @staticmethod
    def transactions_imported(
        user_id: str,
        total_rows: int,
        success_count: int,
        failed_count: int,
        error_summary: list[str],
    ) -> AuditLogEntry:
        return AuditLogEntry(
            action=AuditAction.IMPORT_TRANSACTIONS,
            user_id=user_id,
            details={
                "total_rows": total_rows,
                "success_count": success_count,
                "failed_count": failed_count,
                "error_summary": error_summary,
            },
        )

    @staticmethod
    def transactions_exported(
        user_id: str,
        transaction_count: int,
    ) -> AuditLogEntry:
        return AuditLogEntry(
            action=AuditAction.EXPORT_TRANSACTIONS,
            user_id=user_id,
            details={
                "transaction_count": transaction_count,
                "export_date": datetime.utcnow().isoformat(),
            },
        )
