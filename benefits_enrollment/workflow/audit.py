"""
Append-only audit trail of state-changing actions.

Recording never fails visibly: a store outage is logged and counted so it can
be alerted on out-of-band, but it never blocks the business operation that
produced the entry.
"""

from __future__ import annotations

import csv
import io
import logging
import threading
from typing import Iterable, List, Optional

from benefits_enrollment.contracts.interfaces import (
    Actor,
    ApplicationStore,
    AuditAction,
    AuditEntry,
    EntityType,
    RequestContext,
)

logger = logging.getLogger(__name__)

CSV_HEADER = ["Timestamp", "Action", "User", "Entity Type", "Entity ID", "Details", "IP Address", "User Agent"]


class AuditRecorder:
    def __init__(self, store: ApplicationStore) -> None:
        self.store = store
        self.failed_writes = 0
        self._lock = threading.Lock()

    def record(self, entry: AuditEntry) -> None:
        try:
            self.store.append_audit_entry(entry)
        except Exception:
            with self._lock:
                self.failed_writes += 1
            logger.exception(
                "AUDIT WRITE FAILED action=%s entity=%s:%s actor=%s",
                entry.action.value, entry.entity_type.value, entry.entity_id, entry.actor_user_id,
            )

    def log(
        self,
        actor: Actor,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: Optional[str],
        details: str,
        context: Optional[RequestContext] = None,
    ) -> AuditEntry:
        context = context or RequestContext()
        entry = AuditEntry(
            actor_user_id=actor.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        self.record(entry)
        return entry

    def recent(self, limit: Optional[int] = 50) -> List[AuditEntry]:
        return self.store.list_audit_entries(limit=limit)


def to_csv(entries: Iterable[AuditEntry]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for e in entries:
        writer.writerow([
            e.timestamp.isoformat(),
            e.action.value,
            e.actor_user_id,
            e.entity_type.value,
            e.entity_id or "",
            e.details,
            e.ip_address or "",
            e.user_agent or "",
        ])
    return buf.getvalue()
