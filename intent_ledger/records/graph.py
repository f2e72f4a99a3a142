"""
Knowledge Graph service.

Edges are typed and directed between ``(id, type)`` node pairs. Nodes are not
stored separately: they are implied by the entity tables and surface in graph
views only through the edges that touch them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db.audit_service import AuditService
from ..db.base import transaction
from ..db.models import (
    AssumptionModel,
    DecisionModel,
    EdgeModel,
    RiskModel,
    TaskModel,
)
from .enums import EdgeType
from .errors import ValidationFailedError
from .primitives import generate_ulid, utc_now
from .schemas import EdgeCreate

logger = structlog.get_logger()


@dataclass
class GraphView:
    """Nodes derived from edge endpoints plus the edges themselves."""

    nodes: List[Dict[str, str]] = field(default_factory=list)
    edges: List[EdgeModel] = field(default_factory=list)

    @classmethod
    def from_edges(cls, edges: Iterable[EdgeModel]) -> "GraphView":
        edges = list(edges)
        node_types: Dict[str, str] = {}
        for edge in edges:
            node_types[edge.source_id] = edge.source_type
            node_types[edge.target_id] = edge.target_type
        nodes = [{"id": node_id, "type": node_type} for node_id, node_type in node_types.items()]
        return cls(nodes=nodes, edges=edges)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": list(self.nodes),
            "edges": [edge.to_dict() for edge in self.edges],
        }


def _edge_types(edge_types: Optional[Iterable[str]]) -> Optional[List[str]]:
    if edge_types is None:
        return None
    try:
        return [EdgeType(t).value for t in edge_types]
    except ValueError as e:
        raise ValidationFailedError(str(e), field="edge_type") from e


class EdgeService:
    """Service for Knowledge Graph edges.

    Endpoints are not checked against the entity tables and duplicate edges
    are allowed.
    """

    def __init__(self, db: Session, audit: Optional[AuditService] = None):
        self.db = db
        self.audit = audit or AuditService(db)

    def _ordered(self, query):
        return query.order_by(EdgeModel.created_at, EdgeModel.id)

    def stage(
        self,
        created_by: str,
        edge: EdgeCreate,
        actor_kind: str = "human",
    ) -> EdgeModel:
        """Add an edge to the current transaction without committing."""
        db_edge = EdgeModel(
            id=generate_ulid(),
            source_id=edge.source_id,
            source_type=edge.source_type.value,
            target_id=edge.target_id,
            target_type=edge.target_type.value,
            edge_type=edge.edge_type.value,
            created_by=created_by,
            created_at=utc_now(),
        )
        self.db.add(db_edge)
        self.audit.log_create(
            entity_kind="Edge",
            entity_id=db_edge.id,
            after=db_edge.to_dict(),
            actor_kind=actor_kind,
            actor_id=created_by,
        )
        return db_edge

    def create(self, created_by: str, edge: EdgeCreate) -> EdgeModel:
        """Append an edge."""
        with transaction(self.db):
            db_edge = self.stage(created_by, edge)
        self.db.refresh(db_edge)

        logger.info(
            "edge_created",
            edge_id=db_edge.id,
            edge_type=db_edge.edge_type,
            source_id=db_edge.source_id,
            target_id=db_edge.target_id,
        )
        return db_edge

    def get(self, edge_id: str) -> Optional[EdgeModel]:
        return self.db.query(EdgeModel).filter(EdgeModel.id == edge_id).first()

    def get_by_node(self, node_id: str) -> List[EdgeModel]:
        """Edges where the node is either source or target."""
        query = self.db.query(EdgeModel).filter(
            or_(EdgeModel.source_id == node_id, EdgeModel.target_id == node_id)
        )
        return self._ordered(query).all()

    def get_outgoing(self, node_id: str) -> List[EdgeModel]:
        query = self.db.query(EdgeModel).filter(EdgeModel.source_id == node_id)
        return self._ordered(query).all()

    def get_incoming(self, node_id: str) -> List[EdgeModel]:
        query = self.db.query(EdgeModel).filter(EdgeModel.target_id == node_id)
        return self._ordered(query).all()

    def get_by_type(self, edge_type: str) -> List[EdgeModel]:
        (value,) = _edge_types([edge_type])
        query = self.db.query(EdgeModel).filter(EdgeModel.edge_type == value)
        return self._ordered(query).all()

    def delete(
        self, edge_id: str, actor_kind: str = "system", actor_id: str = "system"
    ) -> bool:
        """Delete one edge. Returns False when it did not exist."""
        db_edge = self.get(edge_id)
        if not db_edge:
            return False

        with transaction(self.db):
            self.audit.log_delete(
                entity_kind="Edge",
                entity_id=db_edge.id,
                before=db_edge.to_dict(),
                actor_kind=actor_kind,
                actor_id=actor_id,
            )
            self.db.delete(db_edge)

        logger.info("edge_deleted", edge_id=edge_id)
        return True

    def stage_delete_by_node(self, node_id: str, actor_id: str = "system") -> int:
        """Remove every edge touching the node inside the current transaction."""
        doomed = self.get_by_node(node_id)
        for db_edge in doomed:
            self.audit.log_delete(
                entity_kind="Edge",
                entity_id=db_edge.id,
                before=db_edge.to_dict(),
                actor_kind="system",
                actor_id=actor_id,
                note=f"Cascade from node {node_id}",
            )
            self.db.delete(db_edge)
        return len(doomed)

    def delete_by_node(self, node_id: str, actor_id: str = "system") -> int:
        """Delete every edge touching the node. Returns the number removed."""
        with transaction(self.db):
            removed = self.stage_delete_by_node(node_id, actor_id=actor_id)

        logger.info("edges_deleted_by_node", node_id=node_id, count=removed)
        return removed

    # Graph views

    def _intent_node_ids(self, intent_id: str) -> Set[str]:
        """The intent itself plus every record filed under it."""
        node_ids = {intent_id}
        for model in (DecisionModel, AssumptionModel, RiskModel, TaskModel):
            rows = self.db.query(model.id).filter(model.intent_id == intent_id).all()
            node_ids.update(row[0] for row in rows)
        return node_ids

    def _edges_touching(self, node_ids: Set[str]) -> List[EdgeModel]:
        if not node_ids:
            return []
        ids = list(node_ids)
        query = self.db.query(EdgeModel).filter(
            or_(EdgeModel.source_id.in_(ids), EdgeModel.target_id.in_(ids))
        )
        return self._ordered(query).all()

    def build_graph(self, intent_id: Optional[str] = None) -> GraphView:
        """Derive nodes from edge endpoints.

        Without ``intent_id`` the whole graph is returned; with it, only edges
        touching the intent or a record filed under it. Nodes with no edges
        never appear.
        """
        if intent_id is None:
            edges = self._ordered(self.db.query(EdgeModel)).all()
        else:
            edges = self._edges_touching(self._intent_node_ids(intent_id))
        return GraphView.from_edges(edges)

    def traverse(
        self,
        start_id: str,
        depth: int = 2,
        edge_types: Optional[Iterable[str]] = None,
    ) -> GraphView:
        """Breadth-first walk in both directions up to ``depth`` hops."""
        if depth < 0:
            raise ValidationFailedError("depth must be >= 0", field="depth")
        types = _edge_types(edge_types)

        visited = {start_id}
        frontier = [start_id]
        collected: Dict[str, EdgeModel] = {}

        for _ in range(depth):
            if not frontier:
                break
            query = self.db.query(EdgeModel).filter(
                or_(EdgeModel.source_id.in_(frontier), EdgeModel.target_id.in_(frontier))
            )
            if types is not None:
                query = query.filter(EdgeModel.edge_type.in_(types))

            next_frontier = []
            for edge in self._ordered(query).all():
                collected.setdefault(edge.id, edge)
                for node_id in (edge.source_id, edge.target_id):
                    if node_id not in visited:
                        visited.add(node_id)
                        next_frontier.append(node_id)
            frontier = next_frontier

        return GraphView.from_edges(collected.values())

    def stats(self, intent_id: str) -> Dict[str, Any]:
        """Record counts for an intent and the size of its subgraph."""
        counts = {
            "decision_count": self.db.query(DecisionModel)
            .filter(DecisionModel.intent_id == intent_id)
            .count(),
            "assumption_count": self.db.query(AssumptionModel)
            .filter(AssumptionModel.intent_id == intent_id)
            .count(),
            "risk_count": self.db.query(RiskModel)
            .filter(RiskModel.intent_id == intent_id)
            .count(),
            "task_count": self.db.query(TaskModel)
            .filter(TaskModel.intent_id == intent_id)
            .count(),
        }
        view = self.build_graph(intent_id)
        return {
            "intent_id": intent_id,
            "node_count": len(view.nodes),
            "edge_count": len(view.edges),
            **counts,
        }
