"""
The audit_log table: one insert-only row per ledger state change.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Text
from sqlalchemy.sql import func

from ..records.primitives import isoformat
from .base import Base

ACTOR_KINDS = ("human", "ai", "system")
AUDIT_ACTIONS = ("created", "updated", "status_changed", "deleted")

audit_actor_kind_enum = Enum(*ACTOR_KINDS, name="audit_actor_kind")
audit_action_enum = Enum(*AUDIT_ACTIONS, name="audit_action")


class AuditLogModel(Base):
    """Who did what to which ledger record, with before/after snapshots.

    A supersede produces two rows, the original's status change and the
    replacement's creation, written in the records' own transaction.
    """

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True)
    ts = Column(DateTime(timezone=True), nullable=False, default=func.now(), index=True)

    actor_kind = Column(audit_actor_kind_enum, nullable=False)
    actor_id = Column(String(128), nullable=False, index=True)
    action = Column(audit_action_enum, nullable=False, index=True)

    # "Intent", "Decision", "Assumption", "Risk", "Task", "Edge" or "Proposal"
    entity_kind = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(128), nullable=False, index=True)

    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    note = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_kind", "entity_id"),
        Index("ix_audit_log_actor", "actor_kind", "actor_id"),
        Index("ix_audit_log_entity_ts", "entity_kind", "entity_id", "ts"),
    )

    def to_dict(self) -> Dict[str, Any]:
        data = {c.name: getattr(self, c.name) for c in self.__table__.columns}
        data["ts"] = isoformat(self.ts)
        return data
