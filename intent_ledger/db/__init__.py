"""
Database package for Intent Ledger.
"""

from .base import Base, get_db, get_engine, get_session_local, transaction
from .models import (
    AssumptionModel,
    DecisionModel,
    EdgeModel,
    IntentModel,
    ProposalModel,
    RiskModel,
    TaskModel,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "transaction",
    "AssumptionModel",
    "DecisionModel",
    "EdgeModel",
    "IntentModel",
    "ProposalModel",
    "RiskModel",
    "TaskModel",
]
