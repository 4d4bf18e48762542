from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now_utc() -> datetime:
    # Use timezone-aware UTC to avoid subtle comparisons/serialization issues.
    return datetime.now(timezone.utc)


# =========================
# Shared strict base models (Pydantic v2)
# =========================

class StrictBaseModel(BaseModel):
    """
    Strict, assignment-validating base model (Pydantic v2).
    - extra fields are forbidden (schema discipline)
    - assignment is validated (catches subtle runtime drift)
    """
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class FrozenModel(BaseModel):
    """Read-only model for data owned by a collaborator (templates)."""
    model_config = ConfigDict(extra="forbid", frozen=True)


# =========================
# Templates
# =========================

SectionType = Literal[
    "symptoms",
    "history",
    "examination",
    "vitals",
    "diagnosis",
    "treatment",
    "plan",
    "notes",
    "text",
]

TemplateCategory = Literal[
    "general",
    "consultation",
    "examination",
    "procedure",
    "follow-up",
    "emergency",
]


class TemplateSection(FrozenModel):
    id: str
    title: str
    type: SectionType
    keywords: List[str] = Field(default_factory=list)
    placeholder: Optional[str] = None
    required: bool = False
    order: int = 0

    @field_validator("keywords")
    @classmethod
    def _dedupe_keywords(cls, value: List[str]) -> List[str]:
        # Case-insensitive set that keeps the first spelling and order.
        seen = set()
        out: List[str] = []
        for kw in value:
            clean = (kw or "").strip()
            key = clean.lower()
            if not clean or key in seen:
                continue
            seen.add(key)
            out.append(clean)
        return out


class TemplateDefinition(FrozenModel):
    id: str
    name: str
    description: str = ""
    category: TemplateCategory = "general"
    sections: List[TemplateSection] = Field(default_factory=list)


# =========================
# Entities
# =========================

EntityType = Literal["medication", "procedure", "device", "vital", "symptom", "diagnosis"]


class EntityDetails(StrictBaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    route: Optional[str] = None
    severity: Optional[str] = None
    value: Optional[str] = None
    unit: Optional[str] = None


class Entity(StrictBaseModel):
    """
    A typed clinical fact located inside one sentence.
    Offsets are character offsets into that sentence, half-open [start, end).
    """
    type: EntityType
    text: str
    start_index: int
    end_index: int
    confidence: float
    details: Optional[EntityDetails] = None
    sentence_index: Optional[int] = None

    def overlaps(self, other: "Entity") -> bool:
        return self.start_index < other.end_index and other.start_index < self.end_index


class MedicationDetails(StrictBaseModel):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    route: Optional[str] = None
    confidence: float
    known: bool = False


SeverityLiteral = Literal["mild", "moderate", "severe"]


class SymptomSeverity(StrictBaseModel):
    symptom: str
    severity: SeverityLiteral
    confidence: float
    start_index: int


# =========================
# Scoring
# =========================

class SectionAssignment(StrictBaseModel):
    section_id: str
    confidence: float


class ScoredSentence(StrictBaseModel):
    text: str
    section_id: Optional[str] = None
    confidence: float = 0.0
    entities: List[Entity] = Field(default_factory=list)
    source: Optional[Literal["lexicon", "classifier"]] = None
    duplicate: bool = False


class CategorizedContent(StrictBaseModel):
    section_id: str
    confidence: float
    suggested_content: str


# =========================
# Suggestions / urgency
# =========================

UrgencyLevel = Literal["low", "medium", "high", "urgent"]

TaskType = Literal["follow-up", "lab-test", "imaging", "referral", "medication", "other"]


class SuggestedAction(StrictBaseModel):
    type: TaskType
    description: str
    confidence: float = 0.8
    priority: UrgencyLevel = "medium"
    due_date: Optional[datetime] = None


class TranscriptAnalysis(StrictBaseModel):
    suggested_tasks: List[SuggestedAction] = Field(default_factory=list)
    extracted_diagnoses: List[str] = Field(default_factory=list)
    urgency_level: UrgencyLevel = "low"


class TemplateSuggestion(StrictBaseModel):
    template_id: str
    confidence: float
    reasoning: str = ""


# =========================
# Aggregator snapshot
# =========================

class SectionState(StrictBaseModel):
    section_id: str
    title: str = ""
    fragments: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    entities: List[Entity] = Field(default_factory=list)
    last_updated: Optional[datetime] = None

    @property
    def content(self) -> str:
        return ". ".join(self.fragments)

    @property
    def is_populated(self) -> bool:
        return bool(self.fragments)


AggregatorStateLiteral = Literal["idle", "accumulating"]


class StreamingAnalysisResult(StrictBaseModel):
    """
    Read-only snapshot of a streaming session.
    completeness is populated_sections / total_sections, computed exactly.
    """
    processed_text: str = ""
    sections: Dict[str, SectionState] = Field(default_factory=dict)
    suggested_actions: List[SuggestedAction] = Field(default_factory=list)
    urgency_level: UrgencyLevel = "low"
    completeness: float = 0.0
    populated_sections: int = 0
    total_sections: int = 0
    unclassified: List[str] = Field(default_factory=list)
    pending_text: str = ""
    state: AggregatorStateLiteral = "idle"
    generated_at: datetime = Field(default_factory=_now_utc)
