"""
Ledger API routes.

Thin handlers over the service layer. Service errors carry their own HTTP
status and are passed through as structured ``detail`` bodies.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..core.context import LedgerContext
from ..db.audit_service import AuditService
from ..db.base import get_db
from .errors import LedgerError
from .graph import EdgeService
from .ingestion import IngestionService
from .monitor import AssumptionMonitor
from .proposals import ProposalService, brain_pulse_proposal
from .schemas import (
    AssumptionCreate,
    AssumptionUpdate,
    DecisionCreate,
    EdgeCreate,
    IngestionRequest,
    IntentCreate,
    IntentTransition,
    IntentUpdate,
    ProposalAccept,
    ProposalCreate,
    RiskCreate,
    RiskMitigation,
    RiskUpdate,
    TaskCreate,
    TaskTransition,
    TaskUpdate,
)
from .services import (
    AssumptionService,
    DecisionService,
    IntentService,
    RiskService,
    TaskService,
    allowed_transitions,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Ledger"])


# =============================================================================
# Dependencies
# =============================================================================


@dataclass
class Caller:
    tenant_id: str
    user_id: str


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_ledger_context(request: Request) -> LedgerContext:
    return getattr(request.app.state, "ledger_context", None) or LedgerContext.null()


def get_caller(
    x_tenant_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> Caller:
    """Resolve the calling tenant and user, falling back to the dev identity."""
    return Caller(
        tenant_id=x_tenant_id or settings.dev_tenant_id,
        user_id=x_user_id or settings.dev_user_id,
    )


def _http_error(e: LedgerError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


def _dicts(rows) -> List[Dict[str, Any]]:
    return [row.to_dict() for row in rows]


# =============================================================================
# Intent Endpoints
# =============================================================================


@router.post("/intents", status_code=201)
def create_intent(
    intent: IntentCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    """Create a new Intent in the research state."""
    db_intent = IntentService(db, ctx).create(caller.tenant_id, caller.user_id, intent)
    return {"status": "success", "intent": db_intent.to_dict()}


@router.get("/intents")
def list_intents(
    state: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> List[Dict[str, Any]]:
    """List the caller's intents, most recently created first."""
    try:
        intents = IntentService(db).list(
            caller.tenant_id, state=state, limit=limit, offset=offset
        )
    except LedgerError as e:
        raise _http_error(e)
    return _dicts(intents)


@router.get("/intents/{intent_id}")
def get_intent(
    intent_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    db_intent = IntentService(db).get(caller.tenant_id, intent_id)
    if not db_intent:
        raise HTTPException(status_code=404, detail="Intent not found")
    return db_intent.to_dict()


@router.patch("/intents/{intent_id}")
def update_intent(
    intent_id: str,
    update: IntentUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    try:
        db_intent = IntentService(db).update(
            caller.tenant_id, intent_id, update, user_id=caller.user_id
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "intent": db_intent.to_dict()}


@router.get("/intents/{intent_id}/transitions")
def get_intent_transitions(
    intent_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    """States the intent may move to next."""
    db_intent = IntentService(db).get(caller.tenant_id, intent_id)
    if not db_intent:
        raise HTTPException(status_code=404, detail="Intent not found")
    return {
        "intent_id": intent_id,
        "current_state": db_intent.current_state,
        "allowed": allowed_transitions(db_intent.current_state),
    }


@router.post("/intents/{intent_id}/transition")
def transition_intent(
    intent_id: str,
    body: IntentTransition,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    """Move an intent through its lifecycle."""
    try:
        db_intent = IntentService(db, ctx).transition(
            caller.tenant_id, caller.user_id, intent_id, body.target_state
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "intent": db_intent.to_dict()}


@router.post("/intents/{intent_id}/review")
def review_intent(
    intent_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    """Record that a human has reviewed the intent just now."""
    try:
        db_intent = IntentService(db).mark_reviewed(
            caller.tenant_id, intent_id, user_id=caller.user_id
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "intent": db_intent.to_dict()}


@router.get("/intents/{intent_id}/decisions")
def list_intent_decisions(
    intent_id: str,
    view: str = Query("all", pattern="^(all|active|ledger)$"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> List[Dict[str, Any]]:
    """Decisions for an intent.

    ``all`` is newest first, ``ledger`` is commit order and ``active`` drops
    superseded entries.
    """
    service = DecisionService(db)
    try:
        service.ensure_visible(caller.tenant_id, intent_id)
    except LedgerError as e:
        raise _http_error(e)
    if view == "ledger":
        decisions = service.get_ledger(intent_id)
    elif view == "active":
        decisions = service.get_active_by_intent(intent_id)
    else:
        decisions = service.list_by_intent(intent_id)
    return _dicts(decisions)


@router.get("/intents/{intent_id}/stats")
def get_intent_stats(intent_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return EdgeService(db).stats(intent_id)


# =============================================================================
# Decision Endpoints
# =============================================================================


@router.post("/decisions", status_code=201)
def commit_decision(
    decision: DecisionCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    """Append a Decision to the ledger."""
    try:
        db_decision = DecisionService(db, ctx).commit(
            caller.tenant_id, caller.user_id, decision
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "decision": db_decision.to_dict()}


@router.get("/decisions/{decision_id}")
def get_decision(
    decision_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    service = DecisionService(db)
    db_decision = service.get(decision_id)
    if not db_decision:
        raise HTTPException(status_code=404, detail="Decision not found")
    try:
        service.ensure_visible(caller.tenant_id, db_decision.intent_id, "Decision", decision_id)
    except LedgerError as e:
        raise _http_error(e)
    return db_decision.to_dict()


@router.post("/decisions/{decision_id}/supersede", status_code=201)
def supersede_decision(
    decision_id: str,
    decision: DecisionCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    """Replace an active Decision with a new one."""
    try:
        original, replacement = DecisionService(db, ctx).supersede(
            caller.tenant_id, caller.user_id, decision_id, decision
        )
    except LedgerError as e:
        raise _http_error(e)
    return {
        "status": "success",
        "decision": replacement.to_dict(),
        "superseded": original.to_dict(),
    }


@router.get("/decisions/{decision_id}/chain")
def get_decision_chain(
    decision_id: str, db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    """The supersede history ending at this decision, oldest first."""
    try:
        chain = DecisionService(db).get_chain(decision_id)
    except LedgerError as e:
        raise _http_error(e)
    return _dicts(chain)


@router.get("/decisions/{decision_id}/tasks")
def list_decision_tasks(
    decision_id: str, db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    return _dicts(TaskService(db).list_by_decision(decision_id))


# =============================================================================
# Assumption Endpoints
# =============================================================================


@router.post("/assumptions", status_code=201)
def create_assumption(
    assumption: AssumptionCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    db_assumption = AssumptionService(db).create(caller.user_id, assumption)
    return {"status": "success", "assumption": db_assumption.to_dict()}


@router.get("/assumptions")
def list_assumptions(
    intent_id: str,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    try:
        assumptions = AssumptionService(db).list_by_intent(intent_id, status=status)
    except LedgerError as e:
        raise _http_error(e)
    return _dicts(assumptions)


@router.get("/assumptions/decay")
def check_assumption_decay(
    intent_id: Optional[str] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Flag active assumptions that are expired, low-confidence or stale."""
    monitor = AssumptionMonitor(
        db,
        stale_days=settings.assumption_stale_days,
        low_confidence=settings.assumption_low_confidence,
    )
    result = monitor.check_for_decay(intent_id=intent_id, tenant_id=caller.tenant_id)
    return result.to_dict()


@router.get("/assumptions/{assumption_id}")
def get_assumption(assumption_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    db_assumption = AssumptionService(db).get(assumption_id)
    if not db_assumption:
        raise HTTPException(status_code=404, detail="Assumption not found")
    return db_assumption.to_dict()


@router.patch("/assumptions/{assumption_id}")
def update_assumption(
    assumption_id: str,
    update: AssumptionUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    try:
        db_assumption = AssumptionService(db).update(
            assumption_id, update, user_id=caller.user_id
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "assumption": db_assumption.to_dict()}


@router.post("/assumptions/{assumption_id}/invalidate")
def invalidate_assumption(
    assumption_id: str,
    reason: Optional[str] = Body(None, embed=True),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    try:
        db_assumption = AssumptionService(db, ctx).invalidate(
            assumption_id, caller.user_id, reason=reason
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "assumption": db_assumption.to_dict()}


@router.delete("/assumptions/{assumption_id}")
def delete_assumption(
    assumption_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    if not AssumptionService(db).delete(assumption_id, user_id=caller.user_id):
        raise HTTPException(status_code=404, detail="Assumption not found")
    return {"status": "success", "deleted": assumption_id}


# =============================================================================
# Risk Endpoints
# =============================================================================


@router.post("/risks", status_code=201)
def create_risk(
    risk: RiskCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    db_risk = RiskService(db).create(caller.user_id, risk)
    return {"status": "success", "risk": db_risk.to_dict()}


@router.get("/risks")
def list_risks(intent_id: str, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return _dicts(RiskService(db).list_by_intent(intent_id))


@router.get("/risks/{risk_id}")
def get_risk(risk_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    db_risk = RiskService(db).get(risk_id)
    if not db_risk:
        raise HTTPException(status_code=404, detail="Risk not found")
    return db_risk.to_dict()


@router.patch("/risks/{risk_id}")
def update_risk(
    risk_id: str,
    update: RiskUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    try:
        db_risk = RiskService(db).update(risk_id, update, user_id=caller.user_id)
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "risk": db_risk.to_dict()}


@router.post("/risks/{risk_id}/mitigate")
def mitigate_risk(
    risk_id: str,
    body: RiskMitigation,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    try:
        db_risk = RiskService(db, ctx).mitigate(
            risk_id, caller.user_id, body.mitigation_notes
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "risk": db_risk.to_dict()}


@router.delete("/risks/{risk_id}")
def delete_risk(
    risk_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    if not RiskService(db).delete(risk_id, user_id=caller.user_id):
        raise HTTPException(status_code=404, detail="Risk not found")
    return {"status": "success", "deleted": risk_id}


# =============================================================================
# Task Endpoints
# =============================================================================


@router.post("/tasks", status_code=201)
def create_task(
    task: TaskCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    db_task = TaskService(db).create(caller.user_id, task)
    return {"status": "success", "task": db_task.to_dict()}


@router.get("/tasks")
def list_tasks(intent_id: str, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return _dicts(TaskService(db).list_by_intent(intent_id))


@router.get("/tasks/{task_id}")
def get_task(task_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    db_task = TaskService(db).get(task_id)
    if not db_task:
        raise HTTPException(status_code=404, detail="Task not found")
    return db_task.to_dict()


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: str,
    update: TaskUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    try:
        db_task = TaskService(db).update(task_id, update, user_id=caller.user_id)
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "task": db_task.to_dict()}


@router.post("/tasks/{task_id}/transition")
def transition_task(
    task_id: str,
    body: TaskTransition,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    try:
        db_task = TaskService(db, ctx).transition(
            task_id, body.status, user_id=caller.user_id
        )
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "task": db_task.to_dict()}


@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    if not TaskService(db).delete(task_id, user_id=caller.user_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "success", "deleted": task_id}


# =============================================================================
# Knowledge Graph Endpoints
# =============================================================================


@router.post("/graph/edges", status_code=201)
def create_edge(
    edge: EdgeCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    db_edge = EdgeService(db).create(caller.user_id, edge)
    return {"status": "success", "edge": db_edge.to_dict()}


@router.get("/graph/edges")
def list_edges_by_type(
    edge_type: str, db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    try:
        edges = EdgeService(db).get_by_type(edge_type)
    except LedgerError as e:
        raise _http_error(e)
    return _dicts(edges)


@router.get("/graph/edges/{edge_id}")
def get_edge(edge_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    db_edge = EdgeService(db).get(edge_id)
    if not db_edge:
        raise HTTPException(status_code=404, detail="Edge not found")
    return db_edge.to_dict()


@router.delete("/graph/edges/{edge_id}")
def delete_edge(
    edge_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    deleted = EdgeService(db).delete(
        edge_id, actor_kind="human", actor_id=caller.user_id
    )
    if not deleted:
        raise HTTPException(status_code=404, detail="Edge not found")
    return {"status": "success", "deleted": edge_id}


@router.get("/graph/nodes/{node_id}/edges")
def list_node_edges(
    node_id: str,
    direction: str = Query("both", pattern="^(both|outgoing|incoming)$"),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    service = EdgeService(db)
    if direction == "outgoing":
        edges = service.get_outgoing(node_id)
    elif direction == "incoming":
        edges = service.get_incoming(node_id)
    else:
        edges = service.get_by_node(node_id)
    return _dicts(edges)


@router.delete("/graph/nodes/{node_id}/edges")
def delete_node_edges(
    node_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> Dict[str, Any]:
    removed = EdgeService(db).delete_by_node(node_id, actor_id=caller.user_id)
    return {"status": "success", "deleted": removed}


@router.get("/graph")
def get_graph(
    intent_id: Optional[str] = None, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Nodes and edges, optionally scoped to one intent and its records."""
    return EdgeService(db).build_graph(intent_id).to_dict()


@router.get("/graph/traverse/{start_id}")
def traverse_graph(
    start_id: str,
    depth: int = Query(2, ge=0, le=10),
    edge_types: Optional[str] = Query(None, description="Comma-separated edge types"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    types = [t.strip() for t in edge_types.split(",") if t.strip()] if edge_types else None
    try:
        view = EdgeService(db).traverse(start_id, depth=depth, edge_types=types)
    except LedgerError as e:
        raise _http_error(e)
    return view.to_dict()


# =============================================================================
# Proposal Endpoints
# =============================================================================


@router.post("/proposals", status_code=201)
def create_proposal(
    proposal: ProposalCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Queue an AI proposal for human review."""
    db_proposal = ProposalService(db).create(proposal, actor_id=proposal.model_used or "ai")
    return {"status": "success", "proposal": db_proposal.to_dict()}


@router.get("/proposals")
def list_proposals(
    intent_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    try:
        proposals = ProposalService(db).list(
            intent_id=intent_id, status=status, limit=limit, offset=offset
        )
    except LedgerError as e:
        raise _http_error(e)
    return _dicts(proposals)


@router.get("/proposals/{proposal_id}")
def get_proposal(proposal_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    db_proposal = ProposalService(db).get(proposal_id)
    if not db_proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return db_proposal.to_dict()


@router.post("/proposals/{proposal_id}/accept")
def accept_proposal(
    proposal_id: str,
    body: Optional[ProposalAccept] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    """Accept a proposal and create the record it describes."""
    try:
        db_proposal, entity = ProposalService(db, ctx).accept(
            proposal_id,
            caller.user_id,
            intent_id=body.intent_id if body else None,
            tenant_id=caller.tenant_id,
        )
    except LedgerError as e:
        raise _http_error(e)
    return {
        "status": "success",
        "proposal": db_proposal.to_dict(),
        "entity_type": db_proposal.proposal_type if entity is not None else None,
        "entity": entity.to_dict() if entity is not None else None,
    }


@router.post("/proposals/{proposal_id}/reject")
def reject_proposal(
    proposal_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    try:
        db_proposal = ProposalService(db, ctx).reject(proposal_id, caller.user_id)
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "proposal": db_proposal.to_dict()}


@router.post("/proposals/{proposal_id}/park")
def park_proposal(
    proposal_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    try:
        db_proposal = ProposalService(db, ctx).park(proposal_id, caller.user_id)
    except LedgerError as e:
        raise _http_error(e)
    return {"status": "success", "proposal": db_proposal.to_dict()}


# =============================================================================
# Ingestion Endpoints
# =============================================================================


@router.post("/ingest")
def ingest(
    request: IngestionRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    ctx: LedgerContext = Depends(get_ledger_context),
) -> Dict[str, Any]:
    """Extract pending proposals from raw text.

    Provider failures are reported in the body, not as an HTTP error.
    """
    result = IngestionService(db, ctx).process(caller.user_id, request)
    return {"status": "error" if result.error else "success", **result.to_dict()}


@router.post("/webhooks/brain")
def brain_webhook(
    payload: Dict[str, Any] = Body(...),
    x_bridge_topic: Optional[str] = Header(None),
    x_bridge_event_id: Optional[str] = Header(None),
    x_bridge_source: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Receive Brain events relayed by the event bridge.

    Pulse intents become question proposals; memory notifications are
    acknowledged only.
    """
    logger.info(
        "brain_webhook_received",
        topic=x_bridge_topic,
        source=x_bridge_source,
        event_id=x_bridge_event_id,
    )

    if x_bridge_topic == "brain.pulse.intent.created":
        response = {"success": True, "processed": payload.get("intent_type")}
        try:
            proposal = brain_pulse_proposal(payload)
            if proposal is not None:
                db_proposal = ProposalService(db).create(proposal, actor_id="brain")
                response["proposal_id"] = db_proposal.id
        except LedgerError as e:
            raise _http_error(e)
        return response

    if x_bridge_topic == "brain.memory.created":
        logger.info("brain_memory_created", title=payload.get("title"))
        return {"success": True, "processed": "memory.created"}

    return {"success": True, "processed": "unknown"}


# =============================================================================
# Audit Endpoints
# =============================================================================


@router.get("/audit")
def query_audit(
    entity_kind: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor_kind: Optional[str] = None,
    actor_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Audit entries, newest first, by entity, by actor, or most recent."""
    audit = AuditService(db)
    if entity_kind and entity_id:
        entries = audit.query_by_entity(entity_kind, entity_id, limit=limit)
    elif actor_kind and actor_id:
        entries = audit.query_by_actor(actor_kind, actor_id, limit=limit)
    else:
        entries = audit.query_recent(limit=limit, entity_kind=entity_kind)
    return _dicts(entries)
