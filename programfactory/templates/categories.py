from __future__ import annotations

from enum import Enum


class PromptCategory(str, Enum):
    """One template category per distinct pipeline step."""

    FRAMEWORK_GENERATION = "framework_generation"
    RESEARCH = "research"
    APPROACH_GENERATION_CONTENT = "approach_generation_content"
    APPROACH_GENERATION_RESEARCH = "approach_generation_research"
    ARC_GENERATION = "arc_generation"
    ARC_REGENERATION = "arc_regeneration"
    MATRIX_GENERATION_CONTENT = "matrix_generation_content"
    MATRIX_GENERATION_RESEARCH = "matrix_generation_research"
    MATRIX_REGENERATION = "matrix_regeneration"
    SAMPLE_GENERATION = "sample_generation"
    SAMPLE_REGENERATION = "sample_regeneration"
    ARTICLE_GENERATION = "article_generation"
    VIDEO_SCRIPT_GENERATION = "video_script_generation"
    QUIZ_GENERATION = "quiz_generation"
    EXERCISE_GENERATION = "exercise_generation"
    QUALITY_REVIEW = "quality_review"
    QUALITY_FIX = "quality_fix"
