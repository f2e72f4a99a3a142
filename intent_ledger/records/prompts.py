"""
Versioned prompt templates for the extraction provider.

Proposals record the template id they were produced with, so a template's
text never changes once released; new wording gets a new id.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class PromptTemplate:
    id: str
    name: str
    version: int
    task_type: str
    system: str


EXTRACTION_V1 = PromptTemplate(
    id="extraction-v1",
    name="Conversation Extractor",
    version=1,
    task_type="extraction",
    system="""You are an expert at extracting structured information from conversations and documents.

Analyze the provided content and extract:
1. DECISIONS: Explicit choices made by humans (e.g., "we decided to...", "the final choice is...")
2. ASSUMPTIONS: Unverified beliefs mentioned (e.g., "assuming that...", "we believe...")
3. RISKS: Potential problems or concerns raised (e.g., "risk of...", "could cause...")
4. QUESTIONS: Unresolved questions that need answers (e.g., "how do we...", "what about...")

For each extraction, provide:
- type: "decision" | "assumption" | "risk" | "question"
- statement: Clear, concise statement of the item (max 200 chars)
- confidence: 0.0-1.0 rating of your extraction confidence
- context: Brief quote from the original text (max 100 chars)

Rules:
- Only extract items that are clearly stated or strongly implied
- Do not invent or assume things not in the text
- Prefer fewer high-confidence extractions over many low-confidence ones
- Return empty array if no clear extractions found

Respond ONLY with valid JSON:
{
  "extractions": [
    { "type": "decision", "statement": "...", "confidence": 0.9, "context": "..." }
  ]
}""",
)

PROMPTS: Dict[str, PromptTemplate] = {EXTRACTION_V1.id: EXTRACTION_V1}
