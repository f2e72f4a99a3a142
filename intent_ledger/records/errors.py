"""
Typed errors raised by the ledger services.

These are the only exceptions the services raise on purpose. Each carries a
stable ``code`` and the HTTP ``status_code`` the boundary layer maps it to.
"""

from typing import Any, Dict, Iterable, Optional


class LedgerError(Exception):
    """Base class for ledger errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {"error": self.code, "message": self.message, **self.details()}


class NotFoundError(LedgerError):
    """The record does not exist (or not under the caller's tenant)."""

    code = "not_found"
    status_code = 404

    def __init__(self, entity_kind: str, entity_id: str):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind} {entity_id} not found")

    def details(self) -> Dict[str, Any]:
        return {"entity_kind": self.entity_kind, "entity_id": self.entity_id}


class InvalidTransitionError(LedgerError):
    """The requested state is not reachable from the current one."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str, allowed: Iterable[str]):
        self.current = current
        self.target = target
        self.allowed = sorted(allowed)
        super().__init__(
            f"Cannot transition from '{current}' to '{target}'. "
            f"Allowed: {', '.join(self.allowed) or 'none'}"
        )

    def details(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "target": self.target,
            "allowed": self.allowed,
        }


class AlreadyReviewedError(LedgerError):
    """The proposal has already been accepted, rejected or parked."""

    code = "already_reviewed"
    status_code = 409

    def __init__(self, proposal_id: str, status: str):
        self.proposal_id = proposal_id
        self.status = status
        super().__init__(f"Proposal {proposal_id} already reviewed (status: {status})")

    def details(self) -> Dict[str, Any]:
        return {"proposal_id": self.proposal_id, "status": self.status}


class AlreadySupersededError(LedgerError):
    """The decision is no longer active and cannot be superseded again."""

    code = "already_superseded"
    status_code = 409

    def __init__(self, decision_id: str, status: str = "superseded"):
        self.decision_id = decision_id
        self.status = status
        super().__init__(
            f"Decision {decision_id} is not active (status: {status})"
        )

    def details(self) -> Dict[str, Any]:
        return {"decision_id": self.decision_id, "status": self.status}


class ValidationFailedError(LedgerError):
    """Input could not be turned into a valid record."""

    code = "validation_failed"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {"field": self.field} if self.field else {}
