"""Prompt template store, cache and renderer."""

from .cache import TemplateCache
from .categories import PromptCategory
from .defaults import DEFAULT_TEMPLATES
from .renderer import render_template
from .service import TemplateService

__all__ = [
    "DEFAULT_TEMPLATES",
    "PromptCategory",
    "TemplateCache",
    "TemplateService",
    "render_template",
]
