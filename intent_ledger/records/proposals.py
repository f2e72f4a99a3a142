"""
AI Proposal workflow.

A proposal starts pending and is reviewed exactly once: accepted, rejected
or parked. Accepting a decision, assumption or risk proposal materializes the
real record, plus a ``derived_from`` edge to its intent, in the same
transaction as the status change. A second review of any kind fails with
AlreadyReviewedError and changes nothing.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from pydantic import ValidationError
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..core.context import LedgerContext
from ..db.audit_service import AuditService
from ..db.base import transaction
from ..db.models import ProposalModel
from ..integrations.events import Topics
from .enums import EdgeType, NodeType, Origin, ProposalStatus, ProposalType
from .errors import AlreadyReviewedError, NotFoundError, ValidationFailedError
from .graph import EdgeService
from .primitives import generate_ulid, utc_now
from .schemas import (
    AssumptionCreate,
    DecisionCreate,
    EdgeCreate,
    ProposalCreate,
    RiskCreate,
)
from .services import AssumptionService, DecisionService, RiskService, coerce_enum

logger = structlog.get_logger()

MaterializedCreate = Union[DecisionCreate, AssumptionCreate, RiskCreate]

_NODE_TYPES = {
    ProposalType.DECISION: NodeType.DECISION,
    ProposalType.ASSUMPTION: NodeType.ASSUMPTION,
    ProposalType.RISK: NodeType.RISK,
}


def materialization_for(
    proposal: ProposalModel, intent_id: Optional[str]
) -> Optional[MaterializedCreate]:
    """Build the create schema an accepted proposal turns into.

    Returns None for question proposals. Pure validation; nothing is written.

    Raises:
        ValidationFailedError: no intent to file the record under, or content
            that cannot form a valid record
    """
    kind = ProposalType(proposal.proposal_type)
    if kind is ProposalType.QUESTION:
        return None

    if not intent_id:
        raise ValidationFailedError(
            f"Proposal {proposal.id} has no intent; supply intent_id to accept it",
            field="intent_id",
        )

    content: Dict[str, Any] = proposal.content or {}
    statement = content.get("statement")
    if not isinstance(statement, str) or not statement.strip():
        raise ValidationFailedError(
            f"Proposal {proposal.id} content has no statement",
            field="content.statement",
        )

    try:
        if kind is ProposalType.DECISION:
            provenance = [f"proposal:{proposal.id}"]
            if proposal.model_used:
                provenance.append(f"model:{proposal.model_used}")
            return DecisionCreate(
                intent_id=intent_id,
                decision_statement=statement,
                final_choice=content.get("final_choice") or statement,
                options_considered=content.get("options_considered") or [],
                revisit_condition=content.get("revisit_condition"),
                ai_inputs_referenced=provenance,
            )
        if kind is ProposalType.ASSUMPTION:
            return AssumptionCreate(
                intent_id=intent_id,
                assumption_statement=statement,
                confidence_level=proposal.confidence,
                expiry_hint=content.get("expiry_hint"),
            )
        return RiskCreate(
            intent_id=intent_id,
            risk_statement=statement,
            severity=content.get("severity"),
            likelihood=content.get("likelihood"),
            mitigation_notes=content.get("mitigation_notes"),
        )
    except ValidationError as e:
        raise ValidationFailedError(
            f"Proposal {proposal.id} content is not a valid {kind.value}: {e}",
            field="content",
        ) from e


class ProposalService:
    """Service for the AI proposal review queue."""

    def __init__(
        self,
        db: Session,
        ctx: Optional[LedgerContext] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.ctx = ctx or LedgerContext.null()
        self.audit = audit or AuditService(db)

    def stage(self, proposal: ProposalCreate, actor_id: str = "ai") -> ProposalModel:
        """Add a pending proposal to the current transaction."""
        db_proposal = ProposalModel(
            id=generate_ulid(),
            intent_id=proposal.intent_id,
            proposal_type=proposal.proposal_type.value,
            content=dict(proposal.content),
            prompt_template_id=proposal.prompt_template_id,
            model_used=proposal.model_used,
            confidence=proposal.confidence,
            status=ProposalStatus.PENDING.value,
            reviewed_by=None,
            reviewed_at=None,
            created_at=utc_now(),
        )
        self.db.add(db_proposal)
        self.audit.log_create(
            entity_kind="Proposal",
            entity_id=db_proposal.id,
            after=db_proposal.to_dict(),
            actor_kind="ai",
            actor_id=actor_id,
        )
        return db_proposal

    def create(self, proposal: ProposalCreate, actor_id: str = "ai") -> ProposalModel:
        """Queue a proposal. It always starts pending."""
        with transaction(self.db):
            db_proposal = self.stage(proposal, actor_id=actor_id)
        self.db.refresh(db_proposal)
        logger.info(
            "proposal_created",
            proposal_id=db_proposal.id,
            proposal_type=db_proposal.proposal_type,
            intent_id=db_proposal.intent_id,
        )
        return db_proposal

    def get(self, proposal_id: str) -> Optional[ProposalModel]:
        return self.db.query(ProposalModel).filter(ProposalModel.id == proposal_id).first()

    def list(
        self,
        intent_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ProposalModel]:
        """List proposals, newest first."""
        query = self.db.query(ProposalModel)

        if intent_id:
            query = query.filter(ProposalModel.intent_id == intent_id)
        if status:
            query = query.filter(
                ProposalModel.status == coerce_enum(ProposalStatus, status, "status").value
            )

        return (
            query.order_by(desc(ProposalModel.created_at), desc(ProposalModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def list_pending(self, intent_id: Optional[str] = None) -> List[ProposalModel]:
        return self.list(intent_id=intent_id, status=ProposalStatus.PENDING.value)

    # Review

    def _get_pending(self, proposal_id: str) -> ProposalModel:
        db_proposal = self.get(proposal_id)
        if not db_proposal:
            raise NotFoundError("Proposal", proposal_id)
        if db_proposal.status != ProposalStatus.PENDING.value:
            raise AlreadyReviewedError(proposal_id, db_proposal.status)
        return db_proposal

    def _claim(
        self,
        db_proposal: ProposalModel,
        user_id: str,
        status: ProposalStatus,
        intent_id: Optional[str] = None,
    ) -> None:
        """Flip pending -> ``status`` if nobody else reviewed it first."""
        values: Dict[Any, Any] = {
            ProposalModel.status: status.value,
            ProposalModel.reviewed_by: user_id,
            ProposalModel.reviewed_at: utc_now(),
        }
        if intent_id and intent_id != db_proposal.intent_id:
            values[ProposalModel.intent_id] = intent_id

        claimed = (
            self.db.query(ProposalModel)
            .filter(
                ProposalModel.id == db_proposal.id,
                ProposalModel.status == ProposalStatus.PENDING.value,
            )
            .update(values, synchronize_session=False)
        )
        if claimed != 1:
            fresh = (
                self.db.query(ProposalModel.status)
                .filter(ProposalModel.id == db_proposal.id)
                .scalar()
            )
            raise AlreadyReviewedError(db_proposal.id, fresh or "unknown")

        self.audit.log_status_change(
            entity_kind="Proposal",
            entity_id=db_proposal.id,
            old_status=ProposalStatus.PENDING.value,
            new_status=status.value,
            actor_kind="human",
            actor_id=user_id,
        )

    def _stage_entity(self, user_id: str, create: MaterializedCreate):
        if isinstance(create, DecisionCreate):
            return DecisionService(self.db, self.ctx, self.audit).stage(user_id, create)
        if isinstance(create, AssumptionCreate):
            return AssumptionService(self.db, self.ctx, self.audit).stage(
                user_id, create, created_from=Origin.AI
            )
        return RiskService(self.db, self.ctx, self.audit).stage(
            user_id, create, created_from=Origin.AI
        )

    def accept(
        self,
        proposal_id: str,
        user_id: str,
        intent_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Tuple[ProposalModel, Optional[Any]]:
        """Accept a proposal and materialize the record it describes.

        ``intent_id`` files the record under an intent when the proposal was
        created without one.

        ``tenant_id`` defaults to the tenant owning that intent; when given,
        an intent of another tenant is reported as not found.

        Returns:
            (proposal, entity) where entity is None for question proposals

        Raises:
            NotFoundError: no such proposal, or its intent belongs to another tenant
            AlreadyReviewedError: the proposal is not pending
            ValidationFailedError: the content cannot form a valid record
        """
        db_proposal = self._get_pending(proposal_id)
        target_intent = intent_id or db_proposal.intent_id
        create = materialization_for(db_proposal, target_intent)
        decisions = DecisionService(self.db, self.ctx, self.audit)
        if tenant_id is None:
            tenant_id = decisions.intent_tenant(target_intent)
        elif create is not None:
            decisions.ensure_visible(tenant_id, target_intent)

        entity = None
        with transaction(self.db):
            self._claim(db_proposal, user_id, ProposalStatus.ACCEPTED, intent_id=target_intent)
            if create is not None:
                entity = self._stage_entity(user_id, create)
                EdgeService(self.db, audit=self.audit).stage(
                    user_id,
                    EdgeCreate(
                        source_id=entity.id,
                        source_type=_NODE_TYPES[ProposalType(db_proposal.proposal_type)],
                        target_id=target_intent,
                        target_type=NodeType.INTENT,
                        edge_type=EdgeType.DERIVED_FROM,
                    ),
                )
        self.db.refresh(db_proposal)
        if entity is not None:
            self.db.refresh(entity)

        logger.info(
            "proposal_accepted",
            proposal_id=proposal_id,
            proposal_type=db_proposal.proposal_type,
            entity_id=entity.id if entity is not None else None,
            user_id=user_id,
        )
        self._announce(db_proposal, entity)
        if isinstance(create, DecisionCreate):
            decisions.publish_committed(tenant_id, entity)
        return db_proposal, entity

    def _review(self, proposal_id: str, user_id: str, status: ProposalStatus) -> ProposalModel:
        db_proposal = self._get_pending(proposal_id)
        with transaction(self.db):
            self._claim(db_proposal, user_id, status)
        self.db.refresh(db_proposal)

        logger.info(
            "proposal_reviewed",
            proposal_id=proposal_id,
            status=status.value,
            user_id=user_id,
        )
        self._announce(db_proposal, None)
        return db_proposal

    def reject(self, proposal_id: str, user_id: str) -> ProposalModel:
        """Reject a pending proposal. No record is created."""
        return self._review(proposal_id, user_id, ProposalStatus.REJECTED)

    def park(self, proposal_id: str, user_id: str) -> ProposalModel:
        """Set a pending proposal aside. Parking is terminal."""
        return self._review(proposal_id, user_id, ProposalStatus.PARKED)

    def _announce(self, db_proposal: ProposalModel, entity: Optional[Any]) -> None:
        self.ctx.emit(
            Topics.PROPOSAL_REVIEWED,
            {
                "proposal_id": db_proposal.id,
                "proposal_type": db_proposal.proposal_type,
                "status": db_proposal.status,
                "intent_id": db_proposal.intent_id,
                "reviewed_by": db_proposal.reviewed_by,
                "entity_id": entity.id if entity is not None else None,
            },
        )


def brain_pulse_proposal(payload: Dict[str, Any]) -> Optional[ProposalCreate]:
    """Turn a Brain pulse intent event into a question proposal.

    Handles ``SURFACE_TASK`` (a stale item worth revisiting) and
    ``REQUEST_INPUT`` (missing information). Other intent types yield None.
    Raises ValidationFailedError when the event cannot form a proposal.
    """
    intent_type = payload.get("intent_type")
    inner = payload.get("payload")
    if not isinstance(inner, dict):
        inner = {}

    if intent_type == "SURFACE_TASK":
        reason = payload.get("reason") or ""
        content = {
            "type": "BRAIN_SURFACE",
            "statement": reason,
            "reason": reason,
            "brain_pulse_id": payload.get("id"),
        }
    elif intent_type == "REQUEST_INPUT":
        question = inner.get("question") or ""
        content = {
            "type": "BRAIN_REQUEST",
            "statement": question,
            "question": question,
            "context": inner.get("context"),
            "brain_pulse_id": payload.get("id"),
        }
    else:
        return None

    try:
        return ProposalCreate(
            intent_id=payload.get("intent_id") or None,
            proposal_type=ProposalType.QUESTION,
            content=content,
            model_used="brain",
        )
    except ValidationError as e:
        raise ValidationFailedError(f"Brain pulse event is not a valid proposal: {e}") from e
