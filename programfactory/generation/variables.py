"""Template variables derived from step data."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..contracts import Chapter, LearningArc, MatrixSession, ProgramBrief

NOT_SPECIFIED = "Not specified"


def _join(items, default: str) -> str:
    return ", ".join(str(i) for i in items) if items else default


def preview(text: str, limit: int) -> str:
    """Truncate long source text for inclusion in an instruction."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...(truncated)"


def as_json(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, indent=2, default=str)


def feedback_context(feedback: Optional[str]) -> str:
    if not feedback:
        return ""
    return f"\nPREVIOUS FEEDBACK TO INCORPORATE:\n{feedback}"


def brief_variables(brief: ProgramBrief) -> Dict[str, Any]:
    return {
        "client_name": brief.client_name,
        "industry": brief.industry,
        "audience": brief.audience,
        "objectives": _join(brief.objectives, "General training"),
        "business_challenges": brief.business_challenges or NOT_SPECIFIED,
        "learning_gap": brief.learning_gap or NOT_SPECIFIED,
        "additional_context": brief.additional_context or "",
        "offer_type": brief.offer_type,
        "language": brief.language,
        "style_guide": brief.style_guide,
        "reading_level": brief.reading_level,
        "terminology": _join(brief.terminology, "none provided"),
        "article_min": brief.article_words[0],
        "article_max": brief.article_words[1],
        "video_min": brief.video_seconds[0],
        "video_max": brief.video_seconds[1],
        "primary_persona": brief.personas[0].role if brief.personas else brief.audience,
        "first_pain": (
            brief.personas[0].pains[0]
            if brief.personas and brief.personas[0].pains
            else brief.business_challenges or "a common challenge in the role"
        ),
        "objection": brief.objections[0] if brief.objections else "We already do this well enough",
        "program": brief.model_dump(mode="json"),
    }


def session_variables(unit: MatrixSession, chapter: Optional[Chapter] = None) -> Dict[str, Any]:
    return {
        "session_number": unit.session_number,
        "session_title": unit.title,
        "session_duration": unit.estimated_duration,
        "session_objectives": _join(unit.objectives, NOT_SPECIFIED),
        "session_topics": _join(unit.topics, NOT_SPECIFIED),
        "session_takeaways": _join(unit.key_takeaways, NOT_SPECIFIED),
        "chapter_title": chapter.title if chapter else "",
        "session": unit.model_dump(mode="json"),
    }


def arc_variables(arc: Optional[LearningArc], index: int = 0) -> Dict[str, Any]:
    if arc is None:
        return {"arc_title": NOT_SPECIFIED, "arc_narrative": "", "current_phase": NOT_SPECIFIED}
    phase = arc.phase_for(index)
    return {
        "arc_title": arc.title,
        "arc_narrative": arc.narrative,
        "current_phase": f"{phase.phase} - {phase.focus}" if phase else NOT_SPECIFIED,
    }


def arc_context(arc: Optional[LearningArc]) -> str:
    if arc is None:
        return ""
    phases = "".join(
        f"\n  {i}. {p.phase}: {p.focus}" for i, p in enumerate(arc.progression, start=1)
    )
    return (
        f"\nLEARNING ARC TO FOLLOW:\n- Title: {arc.title}\n- Narrative: {arc.narrative}"
        f"\n- Progression:{phases}\n\nStructure the sessions to follow this arc."
    )


def quality_context(brief: ProgramBrief, unit: Optional[MatrixSession] = None) -> Dict[str, Any]:
    """Program and session context sent alongside an artifact for scoring."""
    context: Dict[str, Any] = {"program": brief.model_dump(mode="json")}
    if unit is not None:
        context["session"] = unit.model_dump(mode="json")
    return context
