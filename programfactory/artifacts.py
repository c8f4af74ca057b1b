"""Generated artifacts and their quality scores."""

from __future__ import annotations

import json
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class _ArtifactBase(BaseModel):
    """Shared behaviour of every artifact variant."""

    # Structured artifacts are repaired through JSON completions, text ones through prose.
    structured: ClassVar[bool] = False

    def to_payload(self) -> Dict[str, Any]:
        """Shape sent to the scoring and repair instructions."""
        return {"type": self.kind, "content": self.content}

    def revise(self, content: Any) -> "Artifact":
        """Return a copy of this artifact holding repaired ``content``."""
        return self.model_copy(update={"content": self._coerce(content)})

    @classmethod
    def _coerce(cls, content: Any) -> Any:
        return content


class _TextArtifact(_ArtifactBase):
    content: str

    @classmethod
    def _coerce(cls, content: Any) -> str:
        if isinstance(content, str):
            return content
        return json.dumps(content)


class _StructuredArtifact(_ArtifactBase):
    structured: ClassVar[bool] = True
    content: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def _coerce(cls, content: Any) -> Dict[str, Any]:
        if isinstance(content, dict):
            return content
        if isinstance(content, str):
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                return parsed
        raise ValueError(f"{cls.__name__} expects a JSON object, got {type(content).__name__}")


class ArticleArtifact(_TextArtifact):
    kind: Literal["article"] = "article"


class VideoScriptArtifact(_TextArtifact):
    kind: Literal["video"] = "video"


class QuizArtifact(_StructuredArtifact):
    kind: Literal["quiz"] = "quiz"


class ExerciseArtifact(_StructuredArtifact):
    kind: Literal["exercise"] = "exercise"


Artifact = Annotated[
    Union[ArticleArtifact, VideoScriptArtifact, QuizArtifact, ExerciseArtifact],
    Field(discriminator="kind"),
]


class QualityScore(BaseModel):
    """Overall 0..100 score with optional per-dimension sub-scores."""

    overall: int = Field(ge=0, le=100)
    dimensions: Dict[str, int] = Field(default_factory=dict)


class Patch(BaseModel):
    """A targeted edit proposed by the reviewer."""

    op: str = "replace"
    target: str = ""
    text: Any = None


class QCReport(BaseModel):
    """Parsed reply of the quality-review instruction."""

    score: Optional[int] = None
    ok: bool = False
    violations: List[Dict[str, Any]] = Field(default_factory=list)
    patches: List[Patch] = Field(default_factory=list)
    dimensions: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "QCReport":
        """Build a report from a loosely shaped model reply.

        Scores are clamped to 0..100; anything that cannot be read as a number
        is treated as missing.
        """
        score = _as_score(data.get("score"))
        dimensions = {}
        for name, value in (data.get("dimensions") or {}).items():
            parsed = _as_score(value)
            if parsed is not None:
                dimensions[str(name)] = parsed
        patches = [
            Patch.model_validate(p) if isinstance(p, dict) else Patch(text=p)
            for p in (data.get("patches") or [])
        ]
        violations = [v for v in (data.get("violations") or []) if isinstance(v, dict)]
        return cls(
            score=score,
            ok=bool(data.get("ok", False)),
            violations=violations,
            patches=patches,
            dimensions=dimensions,
        )


def _as_score(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return max(0, min(100, int(round(number))))
