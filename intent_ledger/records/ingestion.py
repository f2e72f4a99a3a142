"""
Ingestion: turn raw text into pending proposals via the extraction provider.

Nothing the provider returns is trusted beyond the shape checks in
``parse_extractions``. Every surviving extraction is stored verbatim as a
pending proposal for a human to review.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy.orm import Session

from ..core.context import LedgerContext
from ..db.audit_service import AuditService
from ..db.base import transaction
from ..db.models import ProposalModel
from ..integrations.providers import ProviderError
from .enums import ProposalType
from .prompts import EXTRACTION_V1
from .proposals import ProposalService
from .schemas import IngestionRequest, ProposalCreate

logger = structlog.get_logger()

MODEL_NAME_MAX = 128

# First "{" through last "}": tolerates prose or code fences around the JSON
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ExtractionParseError(ValueError):
    """The provider response holds no usable extraction payload."""


@dataclass
class Extraction:
    type: ProposalType
    statement: str
    confidence: float
    context: Optional[str] = None


@dataclass
class IngestionResult:
    proposals: List[ProposalModel] = field(default_factory=list)
    error: Optional[str] = None
    model_used: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposals": [p.to_dict() for p in self.proposals],
            "count": len(self.proposals),
            "model_used": self.model_used,
            "error": self.error,
        }


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_extractions(text: str) -> List[Extraction]:
    """Extract the valid items from a provider response.

    Items are kept only when ``type`` is a known proposal kind, ``statement``
    is a string and ``confidence`` is a finite number (clamped to [0, 1]).

    Raises:
        ExtractionParseError: no JSON object, invalid JSON, or no
            ``extractions`` list
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ExtractionParseError("No JSON object found in provider response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f"Provider response is not valid JSON: {e}") from e

    raw = data.get("extractions") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        raise ExtractionParseError("Provider response has no 'extractions' list")

    extractions = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            kind = ProposalType(item.get("type"))
        except ValueError:
            continue
        statement = item.get("statement")
        confidence = item.get("confidence")
        if not isinstance(statement, str) or not _is_number(confidence):
            continue
        context = item.get("context")
        extractions.append(
            Extraction(
                type=kind,
                statement=statement,
                confidence=min(max(float(confidence), 0.0), 1.0),
                context=context if isinstance(context, str) else None,
            )
        )

    dropped = len(raw) - len(extractions)
    if dropped:
        logger.info("extractions_dropped", dropped=dropped, kept=len(extractions))
    return extractions


class IngestionService:
    """Runs extraction and queues the results as proposals."""

    def __init__(
        self,
        db: Session,
        ctx: Optional[LedgerContext] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.ctx = ctx or LedgerContext.null()
        self.audit = audit or AuditService(db)

    def process(self, user_id: str, request: IngestionRequest) -> IngestionResult:
        """Extract proposals from ``request.content``.

        Provider failures and unusable responses come back as
        ``IngestionResult.error``; they are never raised.
        """
        provider = self.ctx.provider
        context = None
        if request.intent_id:
            memory = provider.get_context(
                query=request.content[:500], scope_id=request.intent_id
            )
            context = memory.context or None

        prompt = (
            f"Extract structured information from this {request.source_type.value}:"
            f"\n\n{request.content}"
        )
        try:
            completion = provider.complete(
                prompt, system_prompt=EXTRACTION_V1.system, context=context
            )
            extractions = parse_extractions(completion.content)
        except (ProviderError, ExtractionParseError, httpx.HTTPError) as e:
            logger.warning(
                "ingestion_failed",
                provider=provider.name,
                intent_id=request.intent_id,
                error=str(e),
            )
            return IngestionResult(error=str(e))

        # column width for model_used and audit actor_id
        model = (completion.model or "")[:MODEL_NAME_MAX] or None
        proposals = ProposalService(self.db, self.ctx, self.audit)
        with transaction(self.db):
            staged = [
                proposals.stage(
                    ProposalCreate(
                        intent_id=request.intent_id,
                        proposal_type=extraction.type,
                        content={
                            "statement": extraction.statement,
                            "context": extraction.context,
                        },
                        prompt_template_id=EXTRACTION_V1.id,
                        model_used=model,
                        confidence=extraction.confidence,
                    ),
                    actor_id=model or provider.name,
                )
                for extraction in extractions
            ]
        for db_proposal in staged:
            self.db.refresh(db_proposal)

        logger.info(
            "ingestion_processed",
            requested_by=user_id,
            intent_id=request.intent_id,
            source_type=request.source_type.value,
            proposals=len(staged),
            model=model,
        )
        return IngestionResult(proposals=staged, model_used=model)
