"""
Input schemas for ledger records.

Request bodies are validated here before any service touches the database;
enum-typed fields reject values outside their canonical set.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import (
    EdgeType,
    IngestionSourceType,
    IntentState,
    Likelihood,
    NodeType,
    ProposalType,
    RiskStatus,
    Severity,
    TaskStatus,
    VisibilityScope,
)


# =============================================================================
# Intent
# =============================================================================


class IntentCreate(BaseModel):
    """Schema for creating a new Intent. State always starts at research."""

    model_config = ConfigDict(extra="forbid")

    title: constr(min_length=1, max_length=500) = Field(
        ..., description="Short statement of purpose"
    )
    description: Optional[str] = Field(None, description="Longer context")
    confidence_level: Optional[float] = Field(None, ge=0.0, le=1.0)
    visibility_scope: VisibilityScope = Field(default=VisibilityScope.TEAM)


class IntentUpdate(BaseModel):
    """Schema for editing an Intent's descriptive fields (never its state)."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[constr(min_length=1, max_length=500)] = None
    description: Optional[str] = None
    confidence_level: Optional[float] = Field(None, ge=0.0, le=1.0)
    visibility_scope: Optional[VisibilityScope] = None


class IntentTransition(BaseModel):
    """Schema for requesting a lifecycle transition."""

    model_config = ConfigDict(extra="forbid")

    target_state: IntentState


# =============================================================================
# Decision
# =============================================================================


class DecisionCreate(BaseModel):
    """Schema for committing a Decision to the ledger."""

    model_config = ConfigDict(extra="forbid")

    intent_id: constr(min_length=1, max_length=36)
    decision_statement: constr(min_length=1)
    options_considered: List[str] = Field(
        default_factory=list, description="Ordered; preserved exactly"
    )
    final_choice: constr(min_length=1)
    ai_inputs_referenced: List[str] = Field(default_factory=list)
    revisit_condition: Optional[str] = None


# =============================================================================
# Assumption / Risk / Task
# =============================================================================


class AssumptionCreate(BaseModel):
    """Schema for recording an Assumption."""

    model_config = ConfigDict(extra="forbid")

    intent_id: constr(min_length=1, max_length=36)
    assumption_statement: constr(min_length=1)
    confidence_level: Optional[float] = Field(None, ge=0.0, le=1.0)
    expiry_hint: Optional[constr(max_length=64)] = Field(
        None, description="Date after which the assumption should be rechecked"
    )


class AssumptionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assumption_statement: Optional[constr(min_length=1)] = None
    confidence_level: Optional[float] = Field(None, ge=0.0, le=1.0)
    expiry_hint: Optional[constr(max_length=64)] = None


class RiskCreate(BaseModel):
    """Schema for recording a Risk."""

    model_config = ConfigDict(extra="forbid")

    intent_id: constr(min_length=1, max_length=36)
    risk_statement: constr(min_length=1)
    severity: Optional[Severity] = None
    likelihood: Optional[Likelihood] = None
    mitigation_notes: Optional[str] = None


class RiskUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    risk_statement: Optional[constr(min_length=1)] = None
    severity: Optional[Severity] = None
    likelihood: Optional[Likelihood] = None
    mitigation_notes: Optional[str] = None
    status: Optional[RiskStatus] = None


class RiskMitigation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mitigation_notes: constr(min_length=1)


class TaskCreate(BaseModel):
    """Schema for creating a Task under an Intent (optionally a Decision)."""

    model_config = ConfigDict(extra="forbid")

    intent_id: constr(min_length=1, max_length=36)
    decision_id: Optional[constr(min_length=1, max_length=36)] = None
    title: constr(min_length=1, max_length=500)
    description: Optional[str] = None
    owner: Optional[constr(max_length=128)] = None
    sla: Optional[constr(max_length=64)] = None
    external_system_ref: Optional[constr(max_length=256)] = None


class TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[constr(min_length=1, max_length=500)] = None
    description: Optional[str] = None
    owner: Optional[constr(max_length=128)] = None
    sla: Optional[constr(max_length=64)] = None
    external_system_ref: Optional[constr(max_length=256)] = None


class TaskTransition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: TaskStatus


# =============================================================================
# Knowledge Graph
# =============================================================================


class EdgeCreate(BaseModel):
    """Schema for adding a typed, directed edge between two nodes."""

    model_config = ConfigDict(extra="forbid")

    source_id: constr(min_length=1, max_length=36)
    source_type: NodeType
    target_id: constr(min_length=1, max_length=36)
    target_type: NodeType
    edge_type: EdgeType


# =============================================================================
# Proposals and ingestion
# =============================================================================


class ProposalCreate(BaseModel):
    """Schema for queueing an AI proposal. Proposals always start pending."""

    model_config = ConfigDict(extra="forbid")

    intent_id: Optional[constr(min_length=1, max_length=36)] = None
    proposal_type: ProposalType
    content: Dict[str, Any] = Field(
        ..., description="Payload; at minimum {'statement': str}"
    )
    prompt_template_id: Optional[constr(max_length=128)] = None
    model_used: Optional[constr(max_length=128)] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class ProposalAccept(BaseModel):
    """Optional body for accepting a proposal created without an intent."""

    model_config = ConfigDict(extra="forbid")

    intent_id: Optional[constr(min_length=1, max_length=36)] = None


class IngestionRequest(BaseModel):
    """Raw text handed to the extraction provider."""

    model_config = ConfigDict(extra="forbid")

    intent_id: Optional[constr(min_length=1, max_length=36)] = None
    content: constr(min_length=1)
    source_type: IngestionSourceType = Field(default=IngestionSourceType.MANUAL)
