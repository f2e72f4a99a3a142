"""
Ledger records: intents, decisions, assumptions, risks, tasks, graph edges
and AI proposals.
"""

from .enums import (
    AssumptionStatus,
    DecisionStatus,
    EdgeType,
    IngestionSourceType,
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
from .errors import (
    AlreadyReviewedError,
    AlreadySupersededError,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
    ValidationFailedError,
)

__all__ = [
    "AssumptionStatus",
    "DecisionStatus",
    "EdgeType",
    "IngestionSourceType",
    "IntentState",
    "Likelihood",
    "NodeType",
    "Origin",
    "ProposalStatus",
    "ProposalType",
    "RiskStatus",
    "Severity",
    "TaskStatus",
    "VisibilityScope",
    "AlreadyReviewedError",
    "AlreadySupersededError",
    "InvalidTransitionError",
    "LedgerError",
    "NotFoundError",
    "ValidationFailedError",
]
