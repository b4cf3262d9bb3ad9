"""
Audit log - append-only record of security-relevant actions.

Writes are best-effort: the action being audited has already happened (or
is about to be reported as successful), so a failed write is logged and
reported to Sentry, and never raised to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

from hearth.core.models import AuditAction, AuditLogEntry
from hearth.integrations.sentry import capture_exception
from hearth.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Audit log sink.

    There is deliberately no update or delete: entries are inserted once
    and only ever read back.
    """

    def __init__(self, metadata: MetadataStorage):
        self.metadata = metadata

    async def record(
        self,
        actor_id: str,
        action: AuditAction,
        resource_type: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        """
        Append an entry.

        Returns the entry, or None if it could not be written.
        """
        entry = AuditLogEntry(
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            detail=detail or {},
        )

        try:
            await self.metadata.insert(
                Collections.AUDIT_LOGS,
                entry.id,
                entry.model_dump(mode="json"),
            )
        except Exception as e:
            logger.error(f"Failed to write audit entry {action.value} for {actor_id}: {e}")
            capture_exception(e, audit_action=action.value, actor_id=actor_id)
            return None

        logger.debug(f"Audit {action.value} by {actor_id}")
        return entry

    async def entries(
        self,
        actor_id: str | None = None,
        action: AuditAction | None = None,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[AuditLogEntry]:
        """Read entries back, newest first."""
        filters: dict[str, Any] = {}
        if actor_id:
            filters["actor_id"] = actor_id
        if action:
            filters["action"] = action.value

        docs = await self.metadata.query(
            Collections.AUDIT_LOGS,
            filters,
            limit=limit,
            offset=offset,
            order_by="-timestamp",
        )
        return [AuditLogEntry.model_validate(doc) for doc in docs]
