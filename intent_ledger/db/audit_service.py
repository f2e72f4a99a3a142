"""
Audit trail writer and reader.

``AuditService`` only ever adds rows to the session it was given; it never
flushes or commits. An entry therefore lands in the same transaction as the
ledger change it describes and disappears with it on rollback.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Query, Session

from ..records.primitives import generate_ulid, utc_now
from .audit_models import AuditLogModel

Snapshot = Optional[Dict[str, Any]]

SYSTEM_ACTOR = ("system", "unknown")


class AuditService:
    """Stage audit entries for ledger writes and read them back.

    Every ``log_*`` call takes the record kind ("Intent", "Decision", "Edge",
    ...) and id, the snapshots that apply, and the acting ``actor_kind`` /
    ``actor_id``. Calls that omit the actor are attributed to the system.
    """

    def __init__(self, db: Session):
        self.db = db

    def _stage(
        self,
        action: str,
        entity_kind: str,
        entity_id: str,
        before: Snapshot = None,
        after: Snapshot = None,
        actor_kind: str = SYSTEM_ACTOR[0],
        actor_id: str = SYSTEM_ACTOR[1],
        note: Optional[str] = None,
    ) -> AuditLogModel:
        entry = AuditLogModel(
            id=generate_ulid(),
            ts=utc_now(),
            action=action,
            entity_kind=entity_kind,
            entity_id=entity_id,
            before=before,
            after=after,
            actor_kind=actor_kind,
            actor_id=actor_id,
            note=note,
        )
        self.db.add(entry)
        return entry

    # -- writes ---------------------------------------------------------------

    def log_create(
        self, entity_kind: str, entity_id: str, after: Dict[str, Any], **actor: Any
    ) -> AuditLogModel:
        """A record came into existence with state ``after``."""
        return self._stage("created", entity_kind, entity_id, after=after, **actor)

    def log_update(
        self,
        entity_kind: str,
        entity_id: str,
        before: Dict[str, Any],
        after: Dict[str, Any],
        **actor: Any,
    ) -> AuditLogModel:
        """Descriptive fields changed between the two snapshots."""
        return self._stage(
            "updated", entity_kind, entity_id, before=before, after=after, **actor
        )

    def log_status_change(
        self,
        entity_kind: str,
        entity_id: str,
        old_status: str,
        new_status: str,
        note: Optional[str] = None,
        **actor: Any,
    ) -> AuditLogModel:
        """A lifecycle field moved, e.g. a Decision from active to superseded."""
        return self._stage(
            "status_changed",
            entity_kind,
            entity_id,
            before={"status": old_status},
            after={"status": new_status},
            note=note or f"Status changed: {old_status} -> {new_status}",
            **actor,
        )

    def log_delete(
        self, entity_kind: str, entity_id: str, before: Dict[str, Any], **actor: Any
    ) -> AuditLogModel:
        """A record was removed; ``before`` keeps its last state."""
        return self._stage("deleted", entity_kind, entity_id, before=before, **actor)

    # -- reads ----------------------------------------------------------------

    def _newest_first(self, query: Query, limit: int, offset: int = 0) -> List[AuditLogModel]:
        return (
            query.order_by(desc(AuditLogModel.ts), desc(AuditLogModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def query_by_entity(
        self, entity_kind: str, entity_id: str, limit: int = 100, offset: int = 0
    ) -> List[AuditLogModel]:
        """History of one record."""
        query = self.db.query(AuditLogModel).filter_by(
            entity_kind=entity_kind, entity_id=entity_id
        )
        return self._newest_first(query, limit, offset)

    def query_by_actor(
        self, actor_kind: str, actor_id: str, limit: int = 100, offset: int = 0
    ) -> List[AuditLogModel]:
        """Everything one human, model or system process has done."""
        query = self.db.query(AuditLogModel).filter_by(
            actor_kind=actor_kind, actor_id=actor_id
        )
        return self._newest_first(query, limit, offset)

    def query_recent(
        self, limit: int = 50, entity_kind: Optional[str] = None
    ) -> List[AuditLogModel]:
        query = self.db.query(AuditLogModel)
        if entity_kind:
            query = query.filter_by(entity_kind=entity_kind)
        return self._newest_first(query, limit)
