"""Core contracts: workflow enums and the typed step-data payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class WorkflowStep(str, Enum):
    """Nodes of the fixed workflow graph."""

    BRIEF = "brief"
    FRAMEWORK_SELECTION = "framework_selection"
    ROUTE_SELECTION = "route_selection"
    ROUTE_A_UPLOAD = "route_a_upload"
    CONTENT_REVIEW = "content_review"
    APPROACH_SELECTION_A = "approach_selection_a"
    ARC_GENERATION = "arc_generation"
    ARC_REVIEW = "arc_review"
    ROUTE_B_RESEARCH = "route_b_research"
    APPROACH_SELECTION_B = "approach_selection_b"
    MATRIX_GENERATION = "matrix_generation"
    MATRIX_REVIEW = "matrix_review"
    SAMPLE_GENERATION = "sample_generation"
    SAMPLE_VALIDATION = "sample_validation"
    BATCH_GENERATION = "batch_generation"
    COMPLETED = "completed"


class Route(str, Enum):
    """Content-derived (A) or research-derived (B) path."""

    A = "A"
    B = "B"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class StepDataKey(str, Enum):
    """Known working-memory keys of a session."""

    BRIEF = "brief"
    FRAMEWORK_OPTIONS = "frameworkOptions"
    SELECTED_FRAMEWORK = "selectedFramework"
    ROUTE = "route"
    UPLOADED_FILES = "uploadedFiles"
    EXTRACTED_CONTENT = "extractedContent"
    CONTENT_ANALYSIS = "contentAnalysis"
    GENERATED_APPROACHES = "generatedApproaches"
    SELECTED_APPROACH = "selectedApproach"
    RESEARCH_RESULTS = "researchResults"
    LEARNING_ARC = "learningArc"
    PROGRAM_MATRIX = "programMatrix"
    SAMPLE_CONTENT = "sampleContent"
    ALL_CONTENT = "allContent"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Payload(BaseModel):
    """Base for payloads that may come back from the model with extra keys."""

    model_config = ConfigDict(extra="allow")


class Persona(_Payload):
    role: str = ""
    pains: List[str] = Field(default_factory=list)


class ProgramBrief(_Payload):
    """Client brief captured at the first step."""

    client_name: str
    industry: str
    audience: str = "General employees"
    objectives: List[str] = Field(default_factory=list)
    business_challenges: Optional[str] = None
    learning_gap: Optional[str] = None
    additional_context: Optional[str] = None
    offer_type: str = "HR"
    language: str = "en"
    products: List[str] = Field(default_factory=list)
    personas: List[Persona] = Field(default_factory=list)
    objections: List[str] = Field(default_factory=list)
    terminology: List[str] = Field(default_factory=list)
    style_guide: str = "engaging, clear, practical"
    reading_level: str = "Grade 8-10"
    article_words: Tuple[int, int] = (800, 1200)
    video_seconds: Tuple[int, int] = (120, 240)


class Framework(_Payload):
    id: str
    name: str
    description: str = ""
    rationale: str = ""


class FrameworkOptions(_Payload):
    frameworks: List[Framework] = Field(default_factory=list)
    recommended: Optional[str] = None
    reasoning: str = ""


class UploadedFile(_Payload):
    original_name: str
    size: int = 0
    word_count: int = 0


class ContentAnalysis(_Payload):
    total_words: int = 0
    estimated_reading_time: str = ""
    documents: int = 0


class Approach(_Payload):
    id: str
    name: str
    description: str = ""
    methodology: str = ""
    best_for: List[str] = Field(default_factory=list)


class ApproachOptions(_Payload):
    approaches: List[Approach] = Field(default_factory=list)


class ResearchResults(_Payload):
    summary: str = ""
    key_findings: List[str] = Field(default_factory=list)
    best_practices: List[str] = Field(default_factory=list)
    sources: List[Dict[str, Any]] = Field(default_factory=list)


class ArcPhase(_Payload):
    phase: str
    focus: str = ""


class LearningArc(_Payload):
    title: str
    narrative: str = ""
    progression: List[ArcPhase] = Field(default_factory=list)

    def phase_for(self, index: int) -> Optional[ArcPhase]:
        """Return the arc phase for the ``index``-th unit, clamped to the last phase."""
        if not self.progression:
            return None
        return self.progression[min(index, len(self.progression) - 1)]


class MatrixSession(_Payload):
    session_number: int
    title: str
    objectives: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    key_takeaways: List[str] = Field(default_factory=list)
    estimated_duration: str = "15 minutes"


class Chapter(_Payload):
    number: int
    title: str
    goals: List[str] = Field(default_factory=list)
    sessions: List[MatrixSession] = Field(default_factory=list)


class ProgramMatrix(_Payload):
    program_title: str
    target_audience: str = ""
    chapters: List[Chapter] = Field(default_factory=list)

    @property
    def total_sessions(self) -> int:
        return sum(len(chapter.sessions) for chapter in self.chapters)

    def units(self) -> List[MatrixSession]:
        """Flatten chapters into the ordered list of generation units."""
        return [session for chapter in self.chapters for session in chapter.sessions]


class Article(_Payload):
    title: str
    content: str
    reading_time: str = ""


class QuizQuestion(_Payload):
    question: str
    options: List[str] = Field(default_factory=list)
    correct_index: int = 0
    explanation: str = ""


class Quiz(_Payload):
    questions: List[QuizQuestion] = Field(default_factory=list)


class SampleContent(_Payload):
    """Approved quality template for the batch."""

    session_number: int = 1
    article: Article
    quiz: Quiz
    quality_score: Optional[int] = None


class UnitContent(BaseModel):
    """One generated unit: article, video script, quiz and exercise."""

    id: str
    session_number: int
    title: str
    article: str = ""
    script: str = ""
    quiz: Dict[str, Any] = Field(default_factory=dict)
    exercise: Dict[str, Any] = Field(default_factory=dict)
    scores: Dict[str, int] = Field(default_factory=dict)
    qc_score: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class BatchSummary(BaseModel):
    total_units: int = 0
    completed_units: int = 0
    failed_units: int = 0
    average_qc_score: int = 0


class BatchContent(BaseModel):
    """Everything the batch job produced for a session."""

    program_title: str
    client_name: str
    industry: str
    target_audience: str = ""
    units: List[UnitContent] = Field(default_factory=list)
    summary: BatchSummary = BatchSummary()
    generated_at: datetime = Field(default_factory=utcnow)

    @property
    def total_units(self) -> int:
        return len(self.units)


STEP_DATA_TYPES: Dict[str, Any] = {
    StepDataKey.BRIEF.value: ProgramBrief,
    StepDataKey.FRAMEWORK_OPTIONS.value: FrameworkOptions,
    StepDataKey.SELECTED_FRAMEWORK.value: str,
    StepDataKey.ROUTE.value: Route,
    StepDataKey.UPLOADED_FILES.value: List[UploadedFile],
    StepDataKey.EXTRACTED_CONTENT.value: str,
    StepDataKey.CONTENT_ANALYSIS.value: ContentAnalysis,
    StepDataKey.GENERATED_APPROACHES.value: ApproachOptions,
    StepDataKey.SELECTED_APPROACH.value: str,
    StepDataKey.RESEARCH_RESULTS.value: ResearchResults,
    StepDataKey.LEARNING_ARC.value: LearningArc,
    StepDataKey.PROGRAM_MATRIX.value: ProgramMatrix,
    StepDataKey.SAMPLE_CONTENT.value: SampleContent,
    StepDataKey.ALL_CONTENT.value: BatchContent,
}

_ADAPTERS: Dict[str, TypeAdapter] = {}


def step_data_adapter(key: str) -> Optional[TypeAdapter]:
    """Return the validator for a known step-data key, ``None`` for free-form keys."""
    key = key.value if isinstance(key, StepDataKey) else key
    if key not in STEP_DATA_TYPES:
        return None
    if key not in _ADAPTERS:
        _ADAPTERS[key] = TypeAdapter(STEP_DATA_TYPES[key])
    return _ADAPTERS[key]


def dump_step_value(value: Any) -> Any:
    """Convert a payload into plain JSON-compatible data for the store."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [dump_step_value(item) for item in value]
    if isinstance(value, dict):
        return {k: dump_step_value(v) for k, v in value.items()}
    return value
