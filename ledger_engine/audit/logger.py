"""
Audit Logger

DESIGN DECISION: Every mutation of the ledger is audited.
This provides:
1. Complete traceability of who changed financial history
2. A snapshot of deleted transactions
3. Debugging capability

The audit logger:
- Always logs locally (structured JSON via structlog)
- Persists to audit storage when one is configured
- Is best-effort by default: a failed storage write is logged, not raised
- Is strict when asked (required=True): the failure becomes AuditWriteError,
  so the caller can refuse to continue. Deletes use this.
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from ledger_engine.errors import AuditWriteError
from ledger_engine.models.audit import AuditAction, AuditEntryBuilder, AuditLogEntry
from ledger_engine.models.transaction import Transaction
from ledger_engine.services.storage import AuditStorageInterface


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
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))


class AuditLogger:
    """
    Central audit logging service.

    Logs entries both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and the audit history page)
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
        self._logger = structlog.get_logger()

    async def log(self, entry: AuditLogEntry, required: bool = False) -> bool:
        """
        Log an audit entry.

        Always logs locally. Persists to storage if available.

        Args:
            entry: The entry to record
            required: Raise instead of returning False when storage fails

        Returns:
            True if the storage write succeeded (or no storage configured)

        Raises:
            AuditWriteError: Storage failed and required is True
        """
        self._logger.info("audit_entry", **entry.to_log_dict())

        if self._storage is None:
            return True

        try:
            return await self._storage.append_entry(entry)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                audit_id=str(entry.id),
                action=entry.action.value,
                required=required,
            )
            if required:
                raise AuditWriteError(
                    f"Failed to write audit entry for {entry.action.value}",
                    audit_id=str(entry.id),
                    error=str(e),
                ) from e
            return False

    async def log_transaction_created(self, transaction: Transaction) -> bool:
        return await self.log(AuditEntryBuilder.transaction_created(transaction))

    async def log_transaction_updated(
        self,
        before: Transaction,
        after: Transaction,
        changed_fields: list[str],
    ) -> bool:
        return await self.log(
            AuditEntryBuilder.transaction_updated(before, after, changed_fields)
        )

    async def log_transaction_deleted(
        self,
        transaction: Transaction,
        actor_id: str,
    ) -> bool:
        """Record the pre-delete snapshot. Strict: raises AuditWriteError."""
        return await self.log(
            AuditEntryBuilder.transaction_deleted(transaction, actor_id),
            required=True,
        )

    async def log_transactions_imported(
        self,
        user_id: str,
        total_rows: int,
        success_count: int,
        failed_count: int,
        error_summary: list[str],
    ) -> bool:
        return await self.log(
            AuditEntryBuilder.transactions_imported(
                user_id=user_id,
                total_rows=total_rows,
                success_count=success_count,
                failed_count=failed_count,
                error_summary=error_summary,
            )
        )

    async def log_transactions_exported(
        self,
        user_id: str,
        transaction_count: int,
    ) -> bool:
        return await self.log(
            AuditEntryBuilder.transactions_exported(user_id, transaction_count)
        )

    # Read side, for the audit history view

    async def recent_entries(
        self,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        if self._storage is None:
            return []
        return await self._storage.get_recent_entries(limit=limit, user_id=user_id)

    async def entries_for_transaction(self, transaction_id: UUID) -> list[AuditLogEntry]:
        if self._storage is None:
            return []
        return await self._storage.get_entries_by_entity("Transaction", str(transaction_id))

    async def entries_by_action(
        self,
        action: AuditAction,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        if self._storage is None:
            return []
        return await self._storage.get_entries_by_action(action, limit=limit)
