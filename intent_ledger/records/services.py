"""
Ledger Service Layer.

Provides database operations for intents, decisions, assumptions, risks and
tasks. Each service class handles one record kind.

Audit entries are written in the same transaction as the change they
describe. Events and memory sync run afterwards as detached tasks and never
affect the outcome of the operation.
"""

from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple, Type, TypeVar, Union

import structlog
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..core.context import LedgerContext
from ..db.audit_service import AuditService
from ..db.base import transaction
from ..db.models import (
    AssumptionModel,
    DecisionModel,
    IntentModel,
    RiskModel,
    TaskModel,
)
from ..integrations.events import Topics
from .enums import (
    AssumptionStatus,
    DecisionStatus,
    IntentState,
    Origin,
    RiskStatus,
    TaskStatus,
)
from .errors import (
    AlreadySupersededError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from .graph import EdgeService
from .primitives import generate_ulid, isoformat, utc_now
from .schemas import (
    AssumptionCreate,
    AssumptionUpdate,
    DecisionCreate,
    IntentCreate,
    IntentUpdate,
    RiskCreate,
    RiskUpdate,
    TaskCreate,
    TaskUpdate,
)

logger = structlog.get_logger()

E = TypeVar("E")

SUPERSEDES_PREFIX = "supersedes:"

# Intent lifecycle. ARCHIVED is absorbing.
ALLOWED_TRANSITIONS: Dict[IntentState, FrozenSet[IntentState]] = {
    IntentState.RESEARCH: frozenset({IntentState.PLANNING, IntentState.ARCHIVED}),
    IntentState.PLANNING: frozenset(
        {IntentState.RESEARCH, IntentState.EXECUTION, IntentState.ARCHIVED}
    ),
    IntentState.EXECUTION: frozenset({IntentState.PLANNING, IntentState.ARCHIVED}),
    IntentState.ARCHIVED: frozenset(),
}


def coerce_enum(enum_cls: Type[E], value: Union[str, E], field: str) -> E:
    """Map a raw value onto a canonical enum or raise ValidationFailedError."""
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailedError(
            f"Invalid {field} {value!r}. Allowed: {allowed}", field=field
        ) from e


def allowed_transitions(state: Union[str, IntentState]) -> List[str]:
    """Target states reachable from ``state``, sorted."""
    current = coerce_enum(IntentState, state, "state")
    return sorted(s.value for s in ALLOWED_TRANSITIONS[current])


def superseded_id(decision: DecisionModel) -> Optional[str]:
    """Id of the decision this one replaced, if any."""
    for ref in reversed(decision.ai_inputs_referenced or []):
        if ref.startswith(SUPERSEDES_PREFIX):
            return ref[len(SUPERSEDES_PREFIX):]
    return None


def _actor_kind(user_id: Optional[str]) -> str:
    return "human" if user_id else "system"


def _clean_changes(
    update: Any, required: Sequence[str] = ()
) -> Dict[str, Any]:
    """Fields explicitly set on an update schema, with enums as values.

    Explicit nulls on NOT NULL columns are dropped.
    """
    changes = update.model_dump(exclude_unset=True, mode="json")
    for key in required:
        if key in changes and changes[key] is None:
            del changes[key]
    return changes


# =============================================================================
# Intent Lifecycle
# =============================================================================


class IntentService:
    """Service for Intents and their lifecycle state machine."""

    def __init__(
        self,
        db: Session,
        ctx: Optional[LedgerContext] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.ctx = ctx or LedgerContext.null()
        self.audit = audit or AuditService(db)

    allowed_transitions = staticmethod(allowed_transitions)

    def create(self, tenant_id: str, user_id: str, intent: IntentCreate) -> IntentModel:
        """Create a new Intent. It always starts in research."""
        now = utc_now()
        db_intent = IntentModel(
            id=generate_ulid(),
            tenant_id=tenant_id,
            title=intent.title,
            description=intent.description,
            current_state=IntentState.RESEARCH.value,
            created_by=user_id,
            created_at=now,
            last_human_reviewed_at=None,
            confidence_level=intent.confidence_level,
            visibility_scope=intent.visibility_scope.value,
        )

        with transaction(self.db):
            self.db.add(db_intent)
            self.audit.log_create(
                entity_kind="Intent",
                entity_id=db_intent.id,
                after=db_intent.to_dict(),
                actor_kind="human",
                actor_id=user_id,
            )
        self.db.refresh(db_intent)

        logger.info("intent_created", intent_id=db_intent.id, tenant_id=tenant_id)
        self.ctx.emit(
            Topics.INTENT_CREATED,
            {
                "intent_id": db_intent.id,
                "tenant_id": tenant_id,
                "title": db_intent.title,
                "created_by": user_id,
            },
        )
        return db_intent

    def get(self, tenant_id: str, intent_id: str) -> Optional[IntentModel]:
        """Get an Intent by ID, scoped to the tenant."""
        return (
            self.db.query(IntentModel)
            .filter(IntentModel.id == intent_id, IntentModel.tenant_id == tenant_id)
            .first()
        )

    def get_or_raise(self, tenant_id: str, intent_id: str) -> IntentModel:
        db_intent = self.get(tenant_id, intent_id)
        if not db_intent:
            raise NotFoundError("Intent", intent_id)
        return db_intent

    def list(
        self,
        tenant_id: str,
        state: Optional[Union[str, IntentState]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[IntentModel]:
        """List a tenant's Intents, newest first."""
        query = self.db.query(IntentModel).filter(IntentModel.tenant_id == tenant_id)

        if state:
            query = query.filter(
                IntentModel.current_state == coerce_enum(IntentState, state, "state").value
            )

        return (
            query.order_by(desc(IntentModel.created_at), desc(IntentModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def update(
        self,
        tenant_id: str,
        intent_id: str,
        update: IntentUpdate,
        user_id: Optional[str] = None,
    ) -> IntentModel:
        """Edit descriptive fields. The state is never touched here."""
        db_intent = self.get_or_raise(tenant_id, intent_id)
        changes = _clean_changes(update, required=("title", "visibility_scope"))
        if not changes:
            return db_intent

        before = db_intent.to_dict()
        with transaction(self.db):
            for key, value in changes.items():
                setattr(db_intent, key, value)
            self.audit.log_update(
                entity_kind="Intent",
                entity_id=intent_id,
                before=before,
                after=db_intent.to_dict(),
                actor_kind=_actor_kind(user_id),
                actor_id=user_id or "system",
            )
        self.db.refresh(db_intent)
        return db_intent

    def _check_transition(self, current: IntentState, target: IntentState) -> None:
        allowed = ALLOWED_TRANSITIONS[current]
        if target not in allowed:
            raise InvalidTransitionError(
                current.value, target.value, [s.value for s in allowed]
            )

    def transition(
        self,
        tenant_id: str,
        user_id: str,
        intent_id: str,
        target_state: Union[str, IntentState],
    ) -> IntentModel:
        """Move an Intent along the lifecycle table.

        Raises:
            NotFoundError: no such Intent under the tenant
            InvalidTransitionError: target not allowed from the current state,
                including when a concurrent transition changed it first
        """
        target = coerce_enum(IntentState, target_state, "target_state")
        db_intent = self.get_or_raise(tenant_id, intent_id)
        current = IntentState(db_intent.current_state)
        self._check_transition(current, target)

        now = utc_now()
        with transaction(self.db):
            updated = (
                self.db.query(IntentModel)
                .filter(
                    IntentModel.id == intent_id,
                    IntentModel.tenant_id == tenant_id,
                    IntentModel.current_state == current.value,
                )
                .update(
                    {
                        IntentModel.current_state: target.value,
                        IntentModel.last_human_reviewed_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if updated != 1:
                fresh = (
                    self.db.query(IntentModel.current_state)
                    .filter(IntentModel.id == intent_id, IntentModel.tenant_id == tenant_id)
                    .scalar()
                )
                if fresh is None:
                    raise NotFoundError("Intent", intent_id)
                fresh_state = IntentState(fresh)
                raise InvalidTransitionError(
                    fresh_state.value,
                    target.value,
                    [s.value for s in ALLOWED_TRANSITIONS[fresh_state]],
                )

            self.audit.log_status_change(
                entity_kind="Intent",
                entity_id=intent_id,
                old_status=current.value,
                new_status=target.value,
                actor_kind="human",
                actor_id=user_id,
            )
        self.db.refresh(db_intent)

        logger.info(
            "intent_transitioned",
            intent_id=intent_id,
            from_state=current.value,
            to_state=target.value,
            user_id=user_id,
        )
        self.ctx.emit(
            Topics.INTENT_TRANSITIONED,
            {
                "intent_id": intent_id,
                "from": current.value,
                "to": target.value,
                "user_id": user_id,
            },
        )
        return db_intent

    def mark_reviewed(
        self, tenant_id: str, intent_id: str, user_id: Optional[str] = None
    ) -> IntentModel:
        """Stamp last_human_reviewed_at. No state change."""
        db_intent = self.get_or_raise(tenant_id, intent_id)
        before = {"last_human_reviewed_at": isoformat(db_intent.last_human_reviewed_at)}
        now = utc_now()

        with transaction(self.db):
            db_intent.last_human_reviewed_at = now
            self.audit.log_update(
                entity_kind="Intent",
                entity_id=intent_id,
                before=before,
                after={"last_human_reviewed_at": isoformat(now)},
                actor_kind=_actor_kind(user_id),
                actor_id=user_id or "system",
                note="Marked reviewed",
            )
        self.db.refresh(db_intent)
        return db_intent


# =============================================================================
# Decision Ledger
# =============================================================================


def _memory_text(decision: DecisionModel) -> str:
    lines = [
        f"Decision: {decision.decision_statement}",
        f"Choice: {decision.final_choice}",
    ]
    if decision.options_considered:
        lines.append(f"Options considered: {', '.join(decision.options_considered)}")
    if decision.revisit_condition:
        lines.append(f"Revisit when: {decision.revisit_condition}")
    lines.append(f"Approved by: {decision.human_approver}")
    return "\n".join(lines)


class DecisionService:
    """Append-only Decision Ledger.

    Decisions are created by ``commit`` and changed only by ``supersede``,
    which flips ``status`` from active to superseded exactly once. There is no
    update or delete.
    """

    def __init__(
        self,
        db: Session,
        ctx: Optional[LedgerContext] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.ctx = ctx or LedgerContext.null()
        self.audit = audit or AuditService(db)

    def intent_tenant(self, intent_id: Optional[str]) -> Optional[str]:
        """Tenant owning ``intent_id``, or None when the intent is unknown."""
        if not intent_id:
            return None
        row = (
            self.db.query(IntentModel.tenant_id)
            .filter(IntentModel.id == intent_id)
            .first()
        )
        return row[0] if row else None

    def ensure_visible(
        self,
        tenant_id: str,
        intent_id: Optional[str],
        entity_kind: str = "Intent",
        entity_id: Optional[str] = None,
    ) -> None:
        """Raise NotFoundError when ``intent_id`` belongs to another tenant.

        Decisions under an intent that does not exist stay reachable.
        """
        owner = self.intent_tenant(intent_id)
        if owner is not None and owner != tenant_id:
            raise NotFoundError(entity_kind, entity_id or intent_id)

    def stage(
        self,
        user_id: str,
        decision: DecisionCreate,
        extra_refs: Sequence[str] = (),
        actor_kind: str = "human",
    ) -> DecisionModel:
        """Add a new active Decision to the current transaction."""
        db_decision = DecisionModel(
            id=generate_ulid(),
            intent_id=decision.intent_id,
            decision_statement=decision.decision_statement,
            options_considered=list(decision.options_considered),
            final_choice=decision.final_choice,
            human_approver=user_id,
            ai_inputs_referenced=[*decision.ai_inputs_referenced, *extra_refs],
            decision_timestamp=utc_now(),
            revisit_condition=decision.revisit_condition,
            status=DecisionStatus.ACTIVE.value,
        )
        self.db.add(db_decision)
        self.audit.log_create(
            entity_kind="Decision",
            entity_id=db_decision.id,
            after=db_decision.to_dict(),
            actor_kind=actor_kind,
            actor_id=user_id,
        )
        return db_decision

    def publish_committed(self, tenant_id: Optional[str], db_decision: DecisionModel) -> None:
        """Mirror a committed Decision into memory and announce it. Best effort."""
        self.ctx.remember(
            scope_id=db_decision.intent_id,
            title=f"Decision: {db_decision.decision_statement}",
            content=_memory_text(db_decision),
        )
        self.ctx.emit(
            Topics.DECISION_COMMITTED,
            {
                "decision_id": db_decision.id,
                "intent_id": db_decision.intent_id,
                "tenant_id": tenant_id,
                "final_choice": db_decision.final_choice,
                "human_approver": db_decision.human_approver,
            },
        )

    def commit(
        self, tenant_id: str, user_id: str, decision: DecisionCreate
    ) -> DecisionModel:
        """Append a Decision to the ledger.

        ``intent_id`` is stored as given. It need not exist, but an intent
        of another tenant is reported as not found.
        """
        self.ensure_visible(tenant_id, decision.intent_id)
        with transaction(self.db):
            db_decision = self.stage(user_id, decision)
        self.db.refresh(db_decision)

        logger.info(
            "decision_committed",
            decision_id=db_decision.id,
            intent_id=db_decision.intent_id,
            tenant_id=tenant_id,
        )
        self.publish_committed(tenant_id, db_decision)
        return db_decision

    def supersede(
        self,
        tenant_id: str,
        user_id: str,
        original_id: str,
        decision: DecisionCreate,
    ) -> Tuple[DecisionModel, DecisionModel]:
        """Replace an active Decision.

        The status flip of the original, the insert of the replacement and
        both audit entries commit together or not at all. The replacement's
        ``ai_inputs_referenced`` ends with ``supersedes:<original_id>``.

        Returns:
            (original, replacement)

        Raises:
            NotFoundError: no Decision with ``original_id`` in this tenant,
                or the replacement names another tenant's intent
            AlreadySupersededError: the original is no longer active,
                including when a concurrent supersede won the race
        """
        original = self.get(original_id)
        if not original:
            raise NotFoundError("Decision", original_id)
        self.ensure_visible(tenant_id, original.intent_id, "Decision", original_id)
        self.ensure_visible(tenant_id, decision.intent_id)
        if original.status != DecisionStatus.ACTIVE.value:
            raise AlreadySupersededError(original_id, original.status)

        with transaction(self.db):
            flipped = (
                self.db.query(DecisionModel)
                .filter(
                    DecisionModel.id == original_id,
                    DecisionModel.status == DecisionStatus.ACTIVE.value,
                )
                .update(
                    {DecisionModel.status: DecisionStatus.SUPERSEDED.value},
                    synchronize_session=False,
                )
            )
            if flipped != 1:
                raise AlreadySupersededError(original_id)

            replacement = self.stage(
                user_id, decision, extra_refs=[f"{SUPERSEDES_PREFIX}{original_id}"]
            )
            self.audit.log_status_change(
                entity_kind="Decision",
                entity_id=original_id,
                old_status=DecisionStatus.ACTIVE.value,
                new_status=DecisionStatus.SUPERSEDED.value,
                actor_kind="human",
                actor_id=user_id,
                note=f"Superseded by {replacement.id}",
            )
        self.db.refresh(original)
        self.db.refresh(replacement)

        logger.info(
            "decision_superseded",
            decision_id=original_id,
            replacement_id=replacement.id,
            intent_id=replacement.intent_id,
        )
        self.ctx.emit(
            Topics.DECISION_SUPERSEDED,
            {
                "decision_id": original_id,
                "replacement_id": replacement.id,
                "intent_id": replacement.intent_id,
                "tenant_id": tenant_id,
                "user_id": user_id,
            },
        )
        self.publish_committed(tenant_id, replacement)
        return original, replacement

    def get(self, decision_id: str) -> Optional[DecisionModel]:
        """Get a Decision by ID."""
        return self.db.query(DecisionModel).filter(DecisionModel.id == decision_id).first()

    def list_by_intent(self, intent_id: str) -> List[DecisionModel]:
        """All Decisions for an Intent, newest first."""
        return (
            self.db.query(DecisionModel)
            .filter(DecisionModel.intent_id == intent_id)
            .order_by(desc(DecisionModel.decision_timestamp), desc(DecisionModel.id))
            .all()
        )

    def get_ledger(self, intent_id: str) -> List[DecisionModel]:
        """Full history for an Intent including superseded entries, oldest first."""
        return (
            self.db.query(DecisionModel)
            .filter(DecisionModel.intent_id == intent_id)
            .order_by(DecisionModel.decision_timestamp, DecisionModel.id)
            .all()
        )

    def get_active_by_intent(self, intent_id: str) -> List[DecisionModel]:
        """Active Decisions for an Intent, newest first."""
        return (
            self.db.query(DecisionModel)
            .filter(
                DecisionModel.intent_id == intent_id,
                DecisionModel.status == DecisionStatus.ACTIVE.value,
            )
            .order_by(desc(DecisionModel.decision_timestamp), desc(DecisionModel.id))
            .all()
        )

    def get_chain(self, decision_id: str) -> List[DecisionModel]:
        """Follow ``supersedes:`` back-references to the root, oldest first."""
        current = self.get(decision_id)
        if not current:
            raise NotFoundError("Decision", decision_id)

        chain = [current]
        seen = {current.id}
        previous_id = superseded_id(current)
        while previous_id and previous_id not in seen:
            previous = self.get(previous_id)
            if previous is None:
                break
            chain.append(previous)
            seen.add(previous.id)
            previous_id = superseded_id(previous)

        chain.reverse()
        return chain


# =============================================================================
# Assumptions, Risks, Tasks
# =============================================================================


class _RecordService:
    """Shared plumbing for the intent-scoped record services."""

    entity_kind = "Record"
    model: Any = None

    def __init__(
        self,
        db: Session,
        ctx: Optional[LedgerContext] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.ctx = ctx or LedgerContext.null()
        self.audit = audit or AuditService(db)
        self.edges = EdgeService(db, audit=self.audit)

    def get(self, record_id: str):
        return self.db.query(self.model).filter(self.model.id == record_id).first()

    def get_or_raise(self, record_id: str):
        record = self.get(record_id)
        if not record:
            raise NotFoundError(self.entity_kind, record_id)
        return record

    def list_by_intent(self, intent_id: str) -> List[Any]:
        return (
            self.db.query(self.model)
            .filter(self.model.intent_id == intent_id)
            .order_by(self.model.created_at, self.model.id)
            .all()
        )

    def _apply(
        self,
        record: Any,
        changes: Dict[str, Any],
        user_id: Optional[str],
        note: Optional[str] = None,
    ) -> Any:
        if not changes:
            return record

        before = record.to_dict()
        with transaction(self.db):
            for key, value in changes.items():
                setattr(record, key, value)
            self.audit.log_update(
                entity_kind=self.entity_kind,
                entity_id=record.id,
                before=before,
                after=record.to_dict(),
                actor_kind=_actor_kind(user_id),
                actor_id=user_id or "system",
                note=note,
            )
        self.db.refresh(record)
        return record

    def delete(self, record_id: str, user_id: Optional[str] = None) -> bool:
        """Delete the record and every graph edge touching it."""
        record = self.get(record_id)
        if not record:
            return False

        with transaction(self.db):
            removed = self.edges.stage_delete_by_node(record_id, actor_id=user_id or "system")
            self.audit.log_delete(
                entity_kind=self.entity_kind,
                entity_id=record_id,
                before=record.to_dict(),
                actor_kind=_actor_kind(user_id),
                actor_id=user_id or "system",
            )
            self.db.delete(record)

        logger.info(
            "record_deleted",
            entity_kind=self.entity_kind,
            entity_id=record_id,
            edges_removed=removed,
        )
        return True


class AssumptionService(_RecordService):
    """Service for Assumptions."""

    entity_kind = "Assumption"
    model = AssumptionModel

    def stage(
        self,
        user_id: str,
        assumption: AssumptionCreate,
        created_from: Origin = Origin.HUMAN,
    ) -> AssumptionModel:
        db_assumption = AssumptionModel(
            id=generate_ulid(),
            intent_id=assumption.intent_id,
            assumption_statement=assumption.assumption_statement,
            confidence_level=assumption.confidence_level,
            created_from=created_from.value,
            created_at=utc_now(),
            expiry_hint=assumption.expiry_hint,
            status=AssumptionStatus.ACTIVE.value,
        )
        self.db.add(db_assumption)
        self.audit.log_create(
            entity_kind=self.entity_kind,
            entity_id=db_assumption.id,
            after=db_assumption.to_dict(),
            actor_kind="human",
            actor_id=user_id,
        )
        return db_assumption

    def create(
        self,
        user_id: str,
        assumption: AssumptionCreate,
        created_from: Origin = Origin.HUMAN,
    ) -> AssumptionModel:
        """Record an Assumption."""
        with transaction(self.db):
            db_assumption = self.stage(user_id, assumption, created_from)
        self.db.refresh(db_assumption)
        logger.info(
            "assumption_created",
            assumption_id=db_assumption.id,
            intent_id=db_assumption.intent_id,
        )
        return db_assumption

    def list_by_intent(
        self, intent_id: str, status: Optional[str] = None
    ) -> List[AssumptionModel]:
        query = self.db.query(AssumptionModel).filter(AssumptionModel.intent_id == intent_id)
        if status:
            query = query.filter(
                AssumptionModel.status
                == coerce_enum(AssumptionStatus, status, "status").value
            )
        return query.order_by(AssumptionModel.created_at, AssumptionModel.id).all()

    def update(
        self, assumption_id: str, update: AssumptionUpdate, user_id: Optional[str] = None
    ) -> AssumptionModel:
        db_assumption = self.get_or_raise(assumption_id)
        changes = _clean_changes(update, required=("assumption_statement",))
        return self._apply(db_assumption, changes, user_id)

    def invalidate(
        self, assumption_id: str, user_id: str, reason: Optional[str] = None
    ) -> AssumptionModel:
        """Mark an Assumption invalidated. Repeat calls are no-ops."""
        db_assumption = self.get_or_raise(assumption_id)
        if db_assumption.status == AssumptionStatus.INVALIDATED.value:
            return db_assumption

        with transaction(self.db):
            db_assumption.status = AssumptionStatus.INVALIDATED.value
            self.audit.log_status_change(
                entity_kind=self.entity_kind,
                entity_id=assumption_id,
                old_status=AssumptionStatus.ACTIVE.value,
                new_status=AssumptionStatus.INVALIDATED.value,
                actor_kind="human",
                actor_id=user_id,
                note=reason,
            )
        self.db.refresh(db_assumption)

        self.ctx.emit(
            Topics.ASSUMPTION_INVALIDATED,
            {
                "assumption_id": assumption_id,
                "intent_id": db_assumption.intent_id,
                "user_id": user_id,
                "reason": reason,
            },
        )
        return db_assumption


class RiskService(_RecordService):
    """Service for Risks."""

    entity_kind = "Risk"
    model = RiskModel

    def stage(
        self,
        user_id: str,
        risk: RiskCreate,
        created_from: Origin = Origin.HUMAN,
    ) -> RiskModel:
        db_risk = RiskModel(
            id=generate_ulid(),
            intent_id=risk.intent_id,
            risk_statement=risk.risk_statement,
            severity=risk.severity.value if risk.severity else None,
            likelihood=risk.likelihood.value if risk.likelihood else None,
            created_from=created_from.value,
            mitigation_notes=risk.mitigation_notes,
            status=RiskStatus.ACTIVE.value,
            created_at=utc_now(),
        )
        self.db.add(db_risk)
        self.audit.log_create(
            entity_kind=self.entity_kind,
            entity_id=db_risk.id,
            after=db_risk.to_dict(),
            actor_kind="human",
            actor_id=user_id,
        )
        return db_risk

    def create(
        self,
        user_id: str,
        risk: RiskCreate,
        created_from: Origin = Origin.HUMAN,
    ) -> RiskModel:
        """Record a Risk."""
        with transaction(self.db):
            db_risk = self.stage(user_id, risk, created_from)
        self.db.refresh(db_risk)
        logger.info("risk_created", risk_id=db_risk.id, intent_id=db_risk.intent_id)
        return db_risk

    def update(
        self, risk_id: str, update: RiskUpdate, user_id: Optional[str] = None
    ) -> RiskModel:
        db_risk = self.get_or_raise(risk_id)
        changes = _clean_changes(update, required=("risk_statement", "status"))
        return self._apply(db_risk, changes, user_id)

    def mitigate(self, risk_id: str, user_id: str, mitigation_notes: str) -> RiskModel:
        """Record mitigation notes and mark the Risk mitigated."""
        db_risk = self.get_or_raise(risk_id)
        db_risk = self._apply(
            db_risk,
            {
                "mitigation_notes": mitigation_notes,
                "status": RiskStatus.MITIGATED.value,
            },
            user_id,
            note="Mitigated",
        )
        self.ctx.emit(
            Topics.RISK_MITIGATED,
            {
                "risk_id": risk_id,
                "intent_id": db_risk.intent_id,
                "user_id": user_id,
            },
        )
        return db_risk


class TaskService(_RecordService):
    """Service for Tasks."""

    entity_kind = "Task"
    model = TaskModel

    def create(self, user_id: str, task: TaskCreate) -> TaskModel:
        """Create a pending Task."""
        db_task = TaskModel(
            id=generate_ulid(),
            intent_id=task.intent_id,
            decision_id=task.decision_id,
            title=task.title,
            description=task.description,
            owner=task.owner,
            status=TaskStatus.PENDING.value,
            sla=task.sla,
            external_system_ref=task.external_system_ref,
            created_at=utc_now(),
        )
        with transaction(self.db):
            self.db.add(db_task)
            self.audit.log_create(
                entity_kind=self.entity_kind,
                entity_id=db_task.id,
                after=db_task.to_dict(),
                actor_kind="human",
                actor_id=user_id,
            )
        self.db.refresh(db_task)
        logger.info("task_created", task_id=db_task.id, intent_id=db_task.intent_id)
        return db_task

    def list_by_decision(self, decision_id: str) -> List[TaskModel]:
        return (
            self.db.query(TaskModel)
            .filter(TaskModel.decision_id == decision_id)
            .order_by(TaskModel.created_at, TaskModel.id)
            .all()
        )

    def update(
        self, task_id: str, update: TaskUpdate, user_id: Optional[str] = None
    ) -> TaskModel:
        db_task = self.get_or_raise(task_id)
        changes = _clean_changes(update, required=("title",))
        return self._apply(db_task, changes, user_id)

    def transition(
        self,
        task_id: str,
        status: Union[str, TaskStatus],
        user_id: Optional[str] = None,
    ) -> TaskModel:
        """Set a Task's status. Announces completion."""
        target = coerce_enum(TaskStatus, status, "status")
        db_task = self.get_or_raise(task_id)
        previous = db_task.status
        if previous == target.value:
            return db_task

        with transaction(self.db):
            db_task.status = target.value
            self.audit.log_status_change(
                entity_kind=self.entity_kind,
                entity_id=task_id,
                old_status=previous,
                new_status=target.value,
                actor_kind=_actor_kind(user_id),
                actor_id=user_id or "system",
            )
        self.db.refresh(db_task)

        if target is TaskStatus.COMPLETED:
            self.ctx.emit(
                Topics.TASK_COMPLETED,
                {
                    "task_id": task_id,
                    "intent_id": db_task.intent_id,
                    "decision_id": db_task.decision_id,
                    "user_id": user_id,
                },
            )
        return db_task
