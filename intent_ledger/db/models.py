"""
SQLAlchemy models for Intent Ledger.

One table per record kind. Cross-record references (intent_id, decision_id,
edge endpoints) are plain indexed strings rather than foreign keys: the graph
and the proposal queue may point at records that do not exist yet.
"""

from enum import Enum as PyEnum
from typing import Any, Dict, Type

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    String,
    Text,
)
from sqlalchemy.sql import func

from ..records.enums import (
    AssumptionStatus,
    DecisionStatus,
    EdgeType,
    IntentState,
    Likelihood,
    NodeType,
    Origin,
    ProposalStatus,
    ProposalType,
    RiskStatus,
    Severity,
    TaskStatus,
    VisibilityScope,
)
from ..records.primitives import isoformat
from .base import Base


def _db_enum(enum_cls: Type[PyEnum], name: str) -> Enum:
    """Database enum holding the string values of a canonical enum."""
    return Enum(*[member.value for member in enum_cls], name=name)


intent_state_enum = _db_enum(IntentState, "intent_state")
visibility_scope_enum = _db_enum(VisibilityScope, "visibility_scope")
decision_status_enum = _db_enum(DecisionStatus, "decision_status")
assumption_status_enum = _db_enum(AssumptionStatus, "assumption_status")
origin_enum = _db_enum(Origin, "record_origin")
severity_enum = _db_enum(Severity, "risk_severity")
likelihood_enum = _db_enum(Likelihood, "risk_likelihood")
risk_status_enum = _db_enum(RiskStatus, "risk_status")
task_status_enum = _db_enum(TaskStatus, "task_status")
node_type_enum = _db_enum(NodeType, "node_type")
edge_type_enum = _db_enum(EdgeType, "edge_type")
proposal_type_enum = _db_enum(ProposalType, "proposal_type")
proposal_status_enum = _db_enum(ProposalStatus, "proposal_status")


class IntentModel(Base):
    """SQLAlchemy model for intents."""

    __tablename__ = "intents"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)

    # Only changed through IntentService.transition
    current_state = Column(
        intent_state_enum,
        nullable=False,
        default=IntentState.RESEARCH.value,
        index=True,
    )

    created_by = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    last_human_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    confidence_level = Column(Float, nullable=True)
    visibility_scope = Column(
        visibility_scope_enum,
        nullable=False,
        default=VisibilityScope.TEAM.value,
    )

    __table_args__ = (
        Index("ix_intents_tenant_state", "tenant_id", "current_state"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "description": self.description,
            "current_state": self.current_state,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "last_human_reviewed_at": isoformat(self.last_human_reviewed_at),
            "confidence_level": self.confidence_level,
            "visibility_scope": self.visibility_scope,
        }


class DecisionModel(Base):
    """SQLAlchemy model for ledger decisions.

    Every column except ``status`` is written once at commit time.
    """

    __tablename__ = "decisions"

    id = Column(String(36), primary_key=True)
    intent_id = Column(String(36), nullable=False, index=True)
    decision_statement = Column(Text, nullable=False)
    options_considered = Column(JSON, nullable=False, default=list)
    final_choice = Column(Text, nullable=False)
    human_approver = Column(String(128), nullable=False)
    ai_inputs_referenced = Column(JSON, nullable=False, default=list)
    decision_timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    revisit_condition = Column(Text, nullable=True)
    status = Column(
        decision_status_enum,
        nullable=False,
        default=DecisionStatus.ACTIVE.value,
        index=True,
    )

    __table_args__ = (
        Index("ix_decisions_intent_status", "intent_id", "status"),
        Index("ix_decisions_intent_ts", "intent_id", "decision_timestamp"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "intent_id": self.intent_id,
            "decision_statement": self.decision_statement,
            "options_considered": list(self.options_considered or []),
            "final_choice": self.final_choice,
            "human_approver": self.human_approver,
            "ai_inputs_referenced": list(self.ai_inputs_referenced or []),
            "decision_timestamp": isoformat(self.decision_timestamp),
            "revisit_condition": self.revisit_condition,
            "status": self.status,
        }


class AssumptionModel(Base):
    """SQLAlchemy model for assumptions."""

    __tablename__ = "assumptions"

    id = Column(String(36), primary_key=True)
    intent_id = Column(String(36), nullable=False, index=True)
    assumption_statement = Column(Text, nullable=False)
    confidence_level = Column(Float, nullable=True)
    created_from = Column(origin_enum, nullable=False, default=Origin.HUMAN.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    # Free-form date string, parsed leniently by the decay monitor
    expiry_hint = Column(String(64), nullable=True)
    status = Column(
        assumption_status_enum,
        nullable=False,
        default=AssumptionStatus.ACTIVE.value,
        index=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "intent_id": self.intent_id,
            "assumption_statement": self.assumption_statement,
            "confidence_level": self.confidence_level,
            "created_from": self.created_from,
            "created_at": isoformat(self.created_at),
            "expiry_hint": self.expiry_hint,
            "status": self.status,
        }


class RiskModel(Base):
    """SQLAlchemy model for risks."""

    __tablename__ = "risks"

    id = Column(String(36), primary_key=True)
    intent_id = Column(String(36), nullable=False, index=True)
    risk_statement = Column(Text, nullable=False)
    severity = Column(severity_enum, nullable=True)
    likelihood = Column(likelihood_enum, nullable=True)
    created_from = Column(origin_enum, nullable=False, default=Origin.HUMAN.value)
    mitigation_notes = Column(Text, nullable=True)
    status = Column(
        risk_status_enum,
        nullable=False,
        default=RiskStatus.ACTIVE.value,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "intent_id": self.intent_id,
            "risk_statement": self.risk_statement,
            "severity": self.severity,
            "likelihood": self.likelihood,
            "created_from": self.created_from,
            "mitigation_notes": self.mitigation_notes,
            "status": self.status,
            "created_at": isoformat(self.created_at),
        }


class TaskModel(Base):
    """SQLAlchemy model for tasks derived from intents and decisions."""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    intent_id = Column(String(36), nullable=False, index=True)
    decision_id = Column(String(36), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    owner = Column(String(128), nullable=True)
    status = Column(
        task_status_enum,
        nullable=False,
        default=TaskStatus.PENDING.value,
        index=True,
    )
    sla = Column(String(64), nullable=True)
    external_system_ref = Column(String(256), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "intent_id": self.intent_id,
            "decision_id": self.decision_id,
            "title": self.title,
            "description": self.description,
            "owner": self.owner,
            "status": self.status,
            "sla": self.sla,
            "external_system_ref": self.external_system_ref,
            "created_at": isoformat(self.created_at),
        }


class EdgeModel(Base):
    """SQLAlchemy model for Knowledge Graph edges.

    Directed, not deduplicated, and not checked against the entity tables.
    """

    __tablename__ = "edges"

    id = Column(String(36), primary_key=True)
    source_id = Column(String(36), nullable=False, index=True)
    source_type = Column(node_type_enum, nullable=False)
    target_id = Column(String(36), nullable=False, index=True)
    target_type = Column(node_type_enum, nullable=False)
    edge_type = Column(edge_type_enum, nullable=False, index=True)
    created_by = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "source_id": self.source_id,
            "source_type": self.source_type,
            "target_id": self.target_id,
            "target_type": self.target_type,
            "edge_type": self.edge_type,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
        }


class ProposalModel(Base):
    """SQLAlchemy model for AI proposals awaiting human review."""

    __tablename__ = "ai_proposals"

    id = Column(String(36), primary_key=True)
    # Nullable: a proposal may precede the intent it belongs to
    intent_id = Column(String(36), nullable=True, index=True)
    proposal_type = Column(proposal_type_enum, nullable=False)
    content = Column(JSON, nullable=False, default=dict)
    prompt_template_id = Column(String(128), nullable=True)
    model_used = Column(String(128), nullable=True)
    confidence = Column(Float, nullable=True)
    status = Column(
        proposal_status_enum,
        nullable=False,
        default=ProposalStatus.PENDING.value,
        index=True,
    )
    reviewed_by = Column(String(128), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_ai_proposals_intent_status", "intent_id", "status"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "intent_id": self.intent_id,
            "proposal_type": self.proposal_type,
            "content": dict(self.content or {}),
            "prompt_template_id": self.prompt_template_id,
            "model_used": self.model_used,
            "confidence": self.confidence,
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": isoformat(self.reviewed_at),
            "created_at": isoformat(self.created_at),
        }
