"""
Tests for the append-only Decision Ledger.

Verifies:
- Commit stores an active decision, audits it, mirrors it to memory and emits
- Supersede flips the original and appends the replacement atomically
- A failed supersede leaves the ledger exactly as it was
- Another tenant's decisions and intents read as missing
- Ledger views (history, active, chain) and their ordering
"""

import pytest
from sqlalchemy import event

from intent_ledger.db.audit_models import AuditLogModel
from intent_ledger.db.models import DecisionModel
from intent_ledger.integrations.events import Topics
from intent_ledger.records.errors import AlreadySupersededError, NotFoundError
from intent_ledger.records.schemas import DecisionCreate, IntentCreate
from intent_ledger.records.services import DecisionService, IntentService, superseded_id

from .conftest import TENANT, USER

INTENT_ID = "intent-1"


def _decision(statement="Use Postgres", choice="postgres", **kwargs) -> DecisionCreate:
    return DecisionCreate(
        intent_id=kwargs.pop("intent_id", INTENT_ID),
        decision_statement=statement,
        final_choice=choice,
        options_considered=kwargs.pop("options", ["postgres", "mysql", "sqlite"]),
        **kwargs,
    )


@pytest.fixture
def service(db_session, ctx):
    return DecisionService(db_session, ctx)


@pytest.fixture
def committed(service):
    return service.commit(TENANT, USER, _decision())


class TestDecisionCommit:
    def test_commit_is_active(self, committed):
        assert committed.status == "active"
        assert committed.human_approver == USER
        assert committed.intent_id == INTENT_ID
        assert committed.decision_timestamp is not None

    def test_options_order_preserved(self, service):
        decision = service.commit(
            TENANT, USER, _decision(options=["zeta", "alpha", "mu"])
        )
        assert service.get(decision.id).options_considered == ["zeta", "alpha", "mu"]

    def test_ai_inputs_stored(self, service):
        decision = service.commit(
            TENANT, USER, _decision(ai_inputs_referenced=["proposal:abc"])
        )
        assert decision.ai_inputs_referenced == ["proposal:abc"]

    def test_commit_does_not_require_intent_row(self, service):
        decision = service.commit(TENANT, USER, _decision(intent_id="not-created-yet"))
        assert service.get(decision.id) is not None

    def test_commit_into_other_tenant_intent_fails(self, db_session, service):
        foreign = IntentService(db_session).create("tenant-2", USER, IntentCreate(title="X"))

        with pytest.raises(NotFoundError):
            service.commit(TENANT, USER, _decision(intent_id=foreign.id))
        assert db_session.query(DecisionModel).count() == 0

    def test_commit_is_audited(self, db_session, committed):
        entry = (
            db_session.query(AuditLogModel)
            .filter(AuditLogModel.entity_id == committed.id)
            .one()
        )
        assert entry.action == "created"
        assert entry.entity_kind == "Decision"
        assert entry.actor_kind == "human"

    def test_commit_mirrors_to_memory(self, provider, committed):
        assert len(provider.memories) == 1
        memory = provider.memories[0]
        assert memory["scope_id"] == INTENT_ID
        assert memory["title"] == "Decision: Use Postgres"
        assert "Choice: postgres" in memory["content"]

    def test_commit_emits_event(self, sink, committed):
        topic, payload = sink.events[-1]
        assert topic == Topics.DECISION_COMMITTED
        assert payload["decision_id"] == committed.id
        assert payload["tenant_id"] == TENANT

    def test_memory_failure_does_not_fail_commit(self, db_session, ctx, provider):
        provider.fail_store = True
        decision = DecisionService(db_session, ctx).commit(TENANT, USER, _decision())
        assert decision.status == "active"

    def test_event_failure_does_not_fail_commit(self, db_session, ctx, sink):
        sink.fail = True
        decision = DecisionService(db_session, ctx).commit(TENANT, USER, _decision())
        assert DecisionService(db_session).get(decision.id) is not None


class TestDecisionSupersede:
    def test_supersede_flips_and_appends(self, service, committed):
        original, replacement = service.supersede(
            TENANT, USER, committed.id, _decision("Use SQLite", "sqlite")
        )

        assert original.id == committed.id
        assert original.status == "superseded"
        assert replacement.status == "active"
        assert replacement.ai_inputs_referenced[-1] == f"supersedes:{committed.id}"
        assert superseded_id(replacement) == committed.id

    def test_original_fields_untouched(self, service, committed):
        service.supersede(TENANT, USER, committed.id, _decision("Use SQLite", "sqlite"))

        original = service.get(committed.id)
        assert original.decision_statement == "Use Postgres"
        assert original.final_choice == "postgres"

    def test_supersede_writes_both_audit_entries(self, db_session, service, committed):
        _, replacement = service.supersede(
            TENANT, USER, committed.id, _decision("Use SQLite", "sqlite")
        )

        flip = (
            db_session.query(AuditLogModel)
            .filter(
                AuditLogModel.entity_id == committed.id,
                AuditLogModel.action == "status_changed",
            )
            .one()
        )
        assert flip.after == {"status": "superseded"}
        assert replacement.id in flip.note

        created = (
            db_session.query(AuditLogModel)
            .filter(AuditLogModel.entity_id == replacement.id)
            .one()
        )
        assert created.action == "created"

    def test_supersede_events(self, sink, service, committed):
        _, replacement = service.supersede(
            TENANT, USER, committed.id, _decision("Use SQLite", "sqlite")
        )

        assert sink.topics()[-2:] == [Topics.DECISION_SUPERSEDED, Topics.DECISION_COMMITTED]
        superseded_payload = sink.events[-2][1]
        assert superseded_payload["decision_id"] == committed.id
        assert superseded_payload["replacement_id"] == replacement.id

    def test_supersede_twice_fails(self, service, committed):
        service.supersede(TENANT, USER, committed.id, _decision("Use SQLite", "sqlite"))

        with pytest.raises(AlreadySupersededError) as exc_info:
            service.supersede(TENANT, USER, committed.id, _decision("Use MySQL", "mysql"))
        assert exc_info.value.status_code == 409
        assert len(service.get_ledger(INTENT_ID)) == 2

    def test_supersede_missing(self, service):
        with pytest.raises(NotFoundError):
            service.supersede(TENANT, USER, "missing", _decision())

    def test_other_tenant_gets_not_found(self, db_session, service):
        intent = IntentService(db_session).create(TENANT, USER, IntentCreate(title="Mine"))
        original = service.commit(TENANT, USER, _decision(intent_id=intent.id))

        with pytest.raises(NotFoundError) as exc_info:
            service.supersede(
                "tenant-2", USER, original.id, _decision("Use SQLite", intent_id=intent.id)
            )

        assert exc_info.value.entity_kind == "Decision"
        assert service.get(original.id).status == "active"
        assert db_session.query(DecisionModel).count() == 1

    def test_replacement_into_other_tenant_intent_fails(
        self, db_session, service, committed
    ):
        foreign = IntentService(db_session).create("tenant-2", USER, IntentCreate(title="X"))

        with pytest.raises(NotFoundError):
            service.supersede(TENANT, USER, committed.id, _decision(intent_id=foreign.id))
        assert service.get(committed.id).status == "active"

    def test_lost_race_is_already_superseded(self, db_session, service, committed):
        # Another writer flips the row; this session still holds it as active
        db_session.query(DecisionModel).filter(DecisionModel.id == committed.id).update(
            {DecisionModel.status: "superseded"}, synchronize_session=False
        )
        assert committed.status == "active"

        with pytest.raises(AlreadySupersededError):
            service.supersede(TENANT, USER, committed.id, _decision("Use SQLite", "sqlite"))

        assert db_session.query(DecisionModel).count() == 1

    def test_failed_insert_rolls_back_everything(self, db_session, service, committed):
        audit_before = db_session.query(AuditLogModel).count()

        def boom(mapper, connection, target):
            raise RuntimeError("insert failed")

        event.listen(DecisionModel, "before_insert", boom)
        try:
            with pytest.raises(RuntimeError):
                service.supersede(
                    TENANT, USER, committed.id, _decision("Use SQLite", "sqlite")
                )
        finally:
            event.remove(DecisionModel, "before_insert", boom)

        assert service.get(committed.id).status == "active"
        assert db_session.query(DecisionModel).count() == 1
        assert db_session.query(AuditLogModel).count() == audit_before


class TestLedgerViews:
    @pytest.fixture
    def chain(self, service):
        first = service.commit(TENANT, USER, _decision("A", "a"))
        _, second = service.supersede(TENANT, USER, first.id, _decision("B", "b"))
        _, third = service.supersede(TENANT, USER, second.id, _decision("C", "c"))
        other = service.commit(TENANT, USER, _decision("Unrelated", "x"))
        return first, second, third, other

    def test_ledger_is_oldest_first_with_superseded(self, service, chain):
        first, second, third, other = chain
        ledger = service.get_ledger(INTENT_ID)
        assert [d.id for d in ledger] == [first.id, second.id, third.id, other.id]
        assert [d.status for d in ledger] == ["superseded", "superseded", "active", "active"]

    def test_list_by_intent_newest_first(self, service, chain):
        first, second, third, other = chain
        assert [d.id for d in service.list_by_intent(INTENT_ID)] == [
            other.id,
            third.id,
            second.id,
            first.id,
        ]

    def test_active_only(self, service, chain):
        _, _, third, other = chain
        assert [d.id for d in service.get_active_by_intent(INTENT_ID)] == [other.id, third.id]

    def test_chain_walks_back_to_root(self, service, chain):
        first, second, third, _ = chain
        assert [d.id for d in service.get_chain(third.id)] == [first.id, second.id, third.id]

    def test_chain_of_root_is_itself(self, service, chain):
        first = chain[0]
        assert [d.id for d in service.get_chain(first.id)] == [first.id]

    def test_chain_missing(self, service):
        with pytest.raises(NotFoundError):
            service.get_chain("missing")

    def test_other_intent_is_separate(self, service, chain):
        service.commit(TENANT, USER, _decision(intent_id="intent-2"))
        assert len(service.get_ledger("intent-2")) == 1
        assert len(service.get_ledger(INTENT_ID)) == 4
