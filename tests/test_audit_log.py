"""
Tests for the AuditLog model and service.

Verifies:
- AuditLogModel structure and to_dict()
- AuditService logging methods (create, update, status_change, delete)
- AuditService query methods (by entity, actor, recent)
- Entries share the caller's transaction
"""

from datetime import datetime, timedelta, timezone

import pytest

from intent_ledger.db.audit_models import AuditLogModel
from intent_ledger.db.audit_service import AuditService
from intent_ledger.db.base import transaction


@pytest.fixture
def audit(db_session):
    return AuditService(db_session)


class TestAuditLogModel:
    """Tests for AuditLogModel structure."""

    def test_model_has_required_columns(self):
        columns = {c.name for c in AuditLogModel.__table__.columns}
        required = {
            "id", "ts", "actor_kind", "actor_id", "action",
            "entity_kind", "entity_id", "before", "after", "note",
        }
        assert required.issubset(columns)

    def test_to_dict_output(self):
        entry = AuditLogModel(
            id="test-id-123",
            ts=datetime(2026, 1, 26, 12, 0, 0, tzinfo=timezone.utc),
            actor_kind="human",
            actor_id="user-1",
            action="created",
            entity_kind="Decision",
            entity_id="decision-123",
            before=None,
            after={"decision_statement": "Use Postgres"},
            note="Committed via API",
        )

        result = entry.to_dict()

        assert result["id"] == "test-id-123"
        assert result["ts"] == "2026-01-26T12:00:00+00:00"
        assert result["actor_kind"] == "human"
        assert result["action"] == "created"
        assert result["entity_kind"] == "Decision"
        assert result["before"] is None
        assert result["after"] == {"decision_statement": "Use Postgres"}
        assert result["note"] == "Committed via API"

    def test_naive_timestamp_serialized_as_utc(self):
        entry = AuditLogModel(ts=datetime(2026, 1, 26, 12, 0, 0))
        assert entry.to_dict()["ts"] == "2026-01-26T12:00:00+00:00"


class TestAuditServiceWrites:
    """Tests for the log_* methods."""

    def test_log_create(self, db_session, audit):
        entry = audit.log_create(
            entity_kind="Intent",
            entity_id="intent-123",
            after={"title": "Launch EU"},
            actor_kind="human",
            actor_id="user-1",
        )
        db_session.commit()

        found = db_session.get(AuditLogModel, entry.id)
        assert found.action == "created"
        assert found.entity_kind == "Intent"
        assert found.before is None
        assert found.after == {"title": "Launch EU"}
        assert found.ts is not None

    def test_defaults_to_system_actor(self, audit):
        entry = audit.log_create("Edge", "edge-1", {})
        assert entry.actor_kind == "system"
        assert entry.actor_id == "unknown"

    def test_log_update_captures_before_after(self, audit):
        entry = audit.log_update(
            entity_kind="Risk",
            entity_id="risk-123",
            before={"severity": "low"},
            after={"severity": "high"},
            actor_kind="human",
            actor_id="user-1",
        )

        assert entry.action == "updated"
        assert entry.before == {"severity": "low"}
        assert entry.after == {"severity": "high"}

    def test_log_status_change(self, audit):
        entry = audit.log_status_change(
            entity_kind="Decision",
            entity_id="decision-1",
            old_status="active",
            new_status="superseded",
            actor_kind="human",
            actor_id="user-1",
        )

        assert entry.action == "status_changed"
        assert entry.before == {"status": "active"}
        assert entry.after == {"status": "superseded"}
        assert entry.note == "Status changed: active -> superseded"

    def test_log_status_change_custom_note(self, audit):
        entry = audit.log_status_change(
            "Assumption", "a-1", "active", "invalidated", note="Analytics disagree"
        )
        assert entry.note == "Analytics disagree"

    def test_log_delete(self, audit):
        entry = audit.log_delete(
            entity_kind="Task",
            entity_id="task-123",
            before={"title": "Write migration"},
        )

        assert entry.action == "deleted"
        assert entry.before == {"title": "Write migration"}
        assert entry.after is None


class TestAuditTransactions:
    """Audit entries commit and roll back with the change they describe."""

    def test_rolled_back_with_caller(self, db_session, audit):
        with pytest.raises(RuntimeError):
            with transaction(db_session):
                audit.log_create("Intent", "intent-1", {"title": "Doomed"})
                raise RuntimeError("change failed")

        assert db_session.query(AuditLogModel).count() == 0

    def test_committed_with_caller(self, db_session, audit):
        with transaction(db_session):
            audit.log_create("Intent", "intent-1", {"title": "Kept"})

        assert db_session.query(AuditLogModel).count() == 1


class TestAuditServiceQueries:
    """Tests for AuditService query methods."""

    def _stamp(self, entry, minutes):
        entry.ts = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)

    def test_query_by_entity_newest_first(self, db_session, audit):
        first = audit.log_create("Decision", "d-1", {"v": 1})
        second = audit.log_status_change("Decision", "d-1", "active", "superseded")
        audit.log_create("Decision", "d-2", {"v": 2})
        self._stamp(first, 1)
        self._stamp(second, 2)
        db_session.commit()

        results = audit.query_by_entity("Decision", "d-1")

        assert [r.id for r in results] == [second.id, first.id]

    def test_query_by_entity_pagination(self, db_session, audit):
        for i in range(5):
            self._stamp(audit.log_update("Risk", "r-1", {}, {"n": i}), i)
        db_session.commit()

        page = audit.query_by_entity("Risk", "r-1", limit=2, offset=1)
        assert [r.after["n"] for r in page] == [3, 2]

    def test_query_by_actor(self, db_session, audit):
        audit.log_create("Intent", "i1", {}, actor_kind="human", actor_id="user-1")
        audit.log_create("Intent", "i2", {}, actor_kind="human", actor_id="user-1")
        audit.log_create("Proposal", "p1", {}, actor_kind="ai", actor_id="user-1")
        db_session.commit()

        results = audit.query_by_actor("human", "user-1")

        assert len(results) == 2
        assert {r.entity_id for r in results} == {"i1", "i2"}

    def test_query_recent(self, db_session, audit):
        for i in range(10):
            audit.log_create("Intent", f"i{i}", {"num": i})
        audit.log_create("Edge", "e1", {})
        db_session.commit()

        assert len(audit.query_recent(limit=5)) == 5
        edges = audit.query_recent(entity_kind="Edge")
        assert [e.entity_id for e in edges] == ["e1"]


class TestAuditLogIndexes:
    """Tests verifying indexes exist on the model."""

    def test_indexes_defined(self):
        indexes = {idx.name for idx in AuditLogModel.__table__.indexes}

        assert "ix_audit_log_entity" in indexes
        assert "ix_audit_log_actor" in indexes
        assert "ix_audit_log_entity_ts" in indexes
