"""
Tests for the typed Knowledge Graph.

Verifies:
- Edge creation, lookup by node, direction and type
- Graph views derive nodes from edge endpoints only
- Breadth-first traversal in both directions with depth and type filters
- Edge removal, including the cascade when a record is deleted
"""

import pytest

from intent_ledger.db.audit_models import AuditLogModel
from intent_ledger.records.errors import ValidationFailedError
from intent_ledger.records.graph import EdgeService, GraphView
from intent_ledger.records.schemas import (
    AssumptionCreate,
    DecisionCreate,
    EdgeCreate,
    RiskCreate,
)
from intent_ledger.records.services import (
    AssumptionService,
    DecisionService,
    RiskService,
)

from .conftest import TENANT, USER


def _edge(source_id, source_type, target_id, target_type, edge_type) -> EdgeCreate:
    return EdgeCreate(
        source_id=source_id,
        source_type=source_type,
        target_id=target_id,
        target_type=target_type,
        edge_type=edge_type,
    )


@pytest.fixture
def edges(db_session):
    return EdgeService(db_session)


@pytest.fixture
def line(edges):
    """intent -> decision -> task -> risk, one hop each."""
    return [
        edges.create(USER, _edge("i1", "intent", "d1", "decision", "led_to")),
        edges.create(USER, _edge("d1", "decision", "t1", "task", "led_to")),
        edges.create(USER, _edge("t1", "task", "r1", "risk", "blocks")),
    ]


class TestEdgeCreate:
    def test_create_edge(self, edges):
        edge = edges.create(USER, _edge("a1", "assumption", "d1", "decision", "supports"))

        assert edge.source_id == "a1"
        assert edge.source_type == "assumption"
        assert edge.target_type == "decision"
        assert edge.edge_type == "supports"
        assert edge.created_by == USER
        assert edge.created_at is not None

    def test_create_is_audited(self, db_session, edges):
        edge = edges.create(USER, _edge("a1", "assumption", "d1", "decision", "supports"))
        entry = (
            db_session.query(AuditLogModel)
            .filter(AuditLogModel.entity_id == edge.id)
            .one()
        )
        assert entry.entity_kind == "Edge"
        assert entry.action == "created"

    def test_duplicates_allowed(self, edges):
        first = edges.create(USER, _edge("a", "task", "b", "task", "depends_on"))
        second = edges.create(USER, _edge("a", "task", "b", "task", "depends_on"))
        assert first.id != second.id
        assert len(edges.get_by_node("a")) == 2

    def test_unknown_edge_type_rejected(self):
        with pytest.raises(ValueError):
            _edge("a", "task", "b", "task", "causes")

    def test_unknown_node_type_rejected(self):
        with pytest.raises(ValueError):
            _edge("a", "ticket", "b", "task", "depends_on")


class TestEdgeQueries:
    def test_by_node_matches_either_end(self, edges, line):
        assert [e.id for e in edges.get_by_node("d1")] == [line[0].id, line[1].id]

    def test_outgoing_and_incoming(self, edges, line):
        assert [e.id for e in edges.get_outgoing("d1")] == [line[1].id]
        assert [e.id for e in edges.get_incoming("d1")] == [line[0].id]

    def test_by_type(self, edges, line):
        assert [e.id for e in edges.get_by_type("led_to")] == [line[0].id, line[1].id]
        assert edges.get_by_type("mitigates") == []

    def test_by_unknown_type(self, edges):
        with pytest.raises(ValidationFailedError) as exc_info:
            edges.get_by_type("causes")
        assert exc_info.value.field == "edge_type"


class TestGraphViews:
    def test_view_nodes_come_from_edges(self, line):
        view = GraphView.from_edges(line)
        assert {n["id"] for n in view.nodes} == {"i1", "d1", "t1", "r1"}
        assert {"id": "r1", "type": "risk"} in view.nodes

    def test_whole_graph(self, edges, line):
        edges.create(USER, _edge("x", "task", "y", "task", "depends_on"))
        view = edges.build_graph()
        assert len(view.edges) == 4
        assert len(view.nodes) == 6

    def test_empty_graph(self, edges):
        assert edges.build_graph().to_dict() == {"nodes": [], "edges": []}

    def test_intent_scoped_graph(self, db_session, ctx, edges):
        decision = DecisionService(db_session, ctx).commit(
            TENANT,
            USER,
            DecisionCreate(intent_id="i1", decision_statement="Go", final_choice="go"),
        )
        edges.create(USER, _edge("i1", "intent", decision.id, "decision", "led_to"))
        edges.create(USER, _edge(decision.id, "decision", "t9", "task", "led_to"))
        edges.create(USER, _edge("x", "task", "y", "task", "depends_on"))

        view = edges.build_graph("i1")

        assert {n["id"] for n in view.nodes} == {"i1", decision.id, "t9"}
        assert len(view.edges) == 2

    def test_isolated_records_do_not_appear(self, db_session, edges):
        AssumptionService(db_session).create(
            USER, AssumptionCreate(intent_id="i1", assumption_statement="Users are online")
        )
        assert edges.build_graph("i1").nodes == []

    def test_stats(self, db_session, edges):
        AssumptionService(db_session).create(
            USER, AssumptionCreate(intent_id="i1", assumption_statement="Stable API")
        )
        risk = RiskService(db_session).create(
            USER, RiskCreate(intent_id="i1", risk_statement="Vendor lock-in")
        )
        edges.create(USER, _edge(risk.id, "risk", "i1", "intent", "derived_from"))

        stats = edges.stats("i1")
        assert stats == {
            "intent_id": "i1",
            "node_count": 2,
            "edge_count": 1,
            "decision_count": 0,
            "assumption_count": 1,
            "risk_count": 1,
            "task_count": 0,
        }


class TestTraverse:
    def test_depth_one(self, edges, line):
        view = edges.traverse("d1", depth=1)
        assert {n["id"] for n in view.nodes} == {"i1", "d1", "t1"}
        assert len(view.edges) == 2

    def test_depth_two_reaches_further(self, edges, line):
        view = edges.traverse("i1", depth=2)
        assert {n["id"] for n in view.nodes} == {"i1", "d1", "t1"}

        view = edges.traverse("i1", depth=3)
        assert {n["id"] for n in view.nodes} == {"i1", "d1", "t1", "r1"}

    def test_walks_against_edge_direction(self, edges, line):
        view = edges.traverse("r1", depth=1)
        assert {n["id"] for n in view.nodes} == {"t1", "r1"}

    def test_depth_zero_is_empty(self, edges, line):
        assert edges.traverse("d1", depth=0).to_dict() == {"nodes": [], "edges": []}

    def test_negative_depth_rejected(self, edges):
        with pytest.raises(ValidationFailedError):
            edges.traverse("d1", depth=-1)

    def test_edge_type_filter(self, edges, line):
        view = edges.traverse("t1", depth=2, edge_types=["blocks"])
        assert [e.id for e in view.edges] == [line[2].id]

    def test_cycles_terminate(self, edges):
        edges.create(USER, _edge("a", "task", "b", "task", "depends_on"))
        edges.create(USER, _edge("b", "task", "a", "task", "depends_on"))
        view = edges.traverse("a", depth=5)
        assert len(view.edges) == 2
        assert len(view.nodes) == 2

    def test_unknown_start(self, edges, line):
        assert edges.traverse("nowhere").edges == []


class TestEdgeRemoval:
    def test_delete_edge(self, db_session, edges, line):
        assert edges.delete(line[0].id, actor_kind="human", actor_id=USER) is True
        assert edges.get(line[0].id) is None

        entry = (
            db_session.query(AuditLogModel)
            .filter(AuditLogModel.entity_id == line[0].id, AuditLogModel.action == "deleted")
            .one()
        )
        assert entry.actor_id == USER

    def test_delete_missing_edge(self, edges):
        assert edges.delete("missing") is False

    def test_delete_by_node(self, edges, line):
        assert edges.delete_by_node("d1") == 2
        assert [e.id for e in edges.build_graph().edges] == [line[2].id]

    def test_record_delete_cascades(self, db_session, edges):
        assumptions = AssumptionService(db_session)
        assumption = assumptions.create(
            USER, AssumptionCreate(intent_id="i1", assumption_statement="Traffic is flat")
        )
        edges.create(USER, _edge(assumption.id, "assumption", "d1", "decision", "supports"))
        edges.create(USER, _edge("d1", "decision", "t1", "task", "led_to"))

        assert assumptions.delete(assumption.id, user_id=USER) is True

        assert assumptions.get(assumption.id) is None
        assert edges.get_by_node(assumption.id) == []
        assert len(edges.get_by_node("d1")) == 1
