"""
Assumption decay monitor.

A batch reader over active assumptions. It never writes; invalidating a
flagged assumption is left to a human through AssumptionService.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..db.models import AssumptionModel, IntentModel
from .enums import AssumptionStatus
from .primitives import as_utc, utc_now

logger = structlog.get_logger()

STALE_THRESHOLD_DAYS = 30
LOW_CONFIDENCE_THRESHOLD = 0.3


@dataclass
class DecayAlert:
    assumption_id: str
    intent_id: str
    intent_title: str
    assumption_statement: str
    reason: str
    days_since_created: int
    suggested_action: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assumption_id": self.assumption_id,
            "intent_id": self.intent_id,
            "intent_title": self.intent_title,
            "assumption_statement": self.assumption_statement,
            "reason": self.reason,
            "days_since_created": self.days_since_created,
            "suggested_action": self.suggested_action,
        }


@dataclass
class DecayCheckResult:
    total_checked: int = 0
    alerts: List[DecayAlert] = field(default_factory=list)
    healthy_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_checked": self.total_checked,
            "alerts": [alert.to_dict() for alert in self.alerts],
            "healthy_count": self.healthy_count,
        }


def parse_expiry_hint(hint: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC.

    Returns None when the hint is missing or unparsable.
    """
    if not hint:
        return None
    text = hint.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AssumptionMonitor:
    """Flags active assumptions that are expired, low-confidence or stale.

    The first matching reason wins, in that order. ``stale`` only applies to
    assumptions without an expiry hint.
    """

    def __init__(
        self,
        db: Session,
        stale_days: int = STALE_THRESHOLD_DAYS,
        low_confidence: float = LOW_CONFIDENCE_THRESHOLD,
    ):
        self.db = db
        self.stale_days = stale_days
        self.low_confidence = low_confidence

    def _classify(
        self, assumption: AssumptionModel, days_old: int, now: datetime
    ) -> Optional[Tuple[str, str]]:
        if assumption.expiry_hint:
            expiry = parse_expiry_hint(assumption.expiry_hint)
            if expiry is None:
                logger.debug(
                    "expiry_hint_unparsable",
                    assumption_id=assumption.id,
                    expiry_hint=assumption.expiry_hint,
                )
            elif now > expiry:
                return (
                    "expired",
                    "Validate this assumption - it has passed its expiry date.",
                )

        if (
            assumption.confidence_level is not None
            and assumption.confidence_level < self.low_confidence
        ):
            return (
                "low_confidence",
                "This assumption has low confidence. Consider validating or removing it.",
            )

        if not assumption.expiry_hint and days_old > self.stale_days:
            return (
                "stale",
                f"This assumption is {days_old} days old. Review if still valid.",
            )
        return None

    def check_for_decay(
        self,
        intent_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DecayCheckResult:
        """Check active assumptions, optionally for one intent or tenant."""
        now = as_utc(now) or utc_now()

        query = (
            self.db.query(AssumptionModel, IntentModel.title)
            .outerjoin(IntentModel, AssumptionModel.intent_id == IntentModel.id)
            .filter(AssumptionModel.status == AssumptionStatus.ACTIVE.value)
        )
        if intent_id:
            query = query.filter(AssumptionModel.intent_id == intent_id)
        if tenant_id:
            query = query.filter(IntentModel.tenant_id == tenant_id)

        rows = query.order_by(AssumptionModel.created_at, AssumptionModel.id).all()

        alerts = []
        for assumption, intent_title in rows:
            created_at = as_utc(assumption.created_at) or now
            days_old = (now - created_at).days

            verdict = self._classify(assumption, days_old, now)
            if verdict is None:
                continue
            reason, suggested_action = verdict
            alerts.append(
                DecayAlert(
                    assumption_id=assumption.id,
                    intent_id=assumption.intent_id,
                    intent_title=intent_title or "Unknown Intent",
                    assumption_statement=assumption.assumption_statement,
                    reason=reason,
                    days_since_created=days_old,
                    suggested_action=suggested_action,
                )
            )

        logger.info(
            "decay_check_completed",
            intent_id=intent_id,
            checked=len(rows),
            alerts=len(alerts),
        )
        return DecayCheckResult(
            total_checked=len(rows),
            alerts=alerts,
            healthy_count=len(rows) - len(alerts),
        )
