"""
Canonical enums for Intent Ledger records.

Every state or kind field is drawn from one of these closed sets; values
outside them are rejected at the schema boundary.
"""

from enum import Enum


class IntentState(str, Enum):
    """Lifecycle states of an Intent. ARCHIVED is terminal."""

    RESEARCH = "research"
    PLANNING = "planning"
    EXECUTION = "execution"
    ARCHIVED = "archived"


class VisibilityScope(str, Enum):
    """Who may see an Intent."""

    PRIVATE = "private"
    TEAM = "team"
    ORGANIZATION = "organization"


class DecisionStatus(str, Enum):
    """A Decision moves active -> superseded exactly once."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"


class AssumptionStatus(str, Enum):
    ACTIVE = "active"
    INVALIDATED = "invalidated"


class Origin(str, Enum):
    """Whether a record was authored by a human or materialized from AI output."""

    HUMAN = "human"
    AI = "ai"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Likelihood(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskStatus(str, Enum):
    ACTIVE = "active"
    MITIGATED = "mitigated"
    ACCEPTED = "accepted"


class TaskStatus(str, Enum):
    """Status of a Task derived from a Decision or Intent."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class NodeType(str, Enum):
    """Entity kinds that may appear as Knowledge Graph endpoints."""

    INTENT = "intent"
    DECISION = "decision"
    TASK = "task"
    ASSUMPTION = "assumption"
    RISK = "risk"


class EdgeType(str, Enum):
    """Typed relations between Knowledge Graph nodes."""

    LED_TO = "led_to"
    DEPENDS_ON = "depends_on"
    INVALIDATES = "invalidates"
    SUPPORTS = "supports"
    BLOCKS = "blocks"
    DERIVED_FROM = "derived_from"
    MITIGATES = "mitigates"
    ASSUMES = "assumes"


class ProposalType(str, Enum):
    """Kinds of AI suggestion. QUESTION never materializes an entity."""

    DECISION = "decision"
    ASSUMPTION = "assumption"
    RISK = "risk"
    QUESTION = "question"


class ProposalStatus(str, Enum):
    """PENDING transitions exactly once to one of the other three."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PARKED = "parked"


class IngestionSourceType(str, Enum):
    """Where text handed to the extraction provider came from."""

    CHAT = "chat"
    DOCUMENT = "document"
    MEETING_NOTES = "meeting_notes"
    MANUAL = "manual"
