"""Step payload generation, unit generation, batch jobs and export."""

from .batch import BatchRunner, summarize
from .export import ExportFormat, export_batch, export_html, export_json, export_markdown
from .steps import StepGenerator
from .units import UnitGenerator

__all__ = [
    "BatchRunner",
    "ExportFormat",
    "StepGenerator",
    "UnitGenerator",
    "export_batch",
    "export_html",
    "export_json",
    "export_markdown",
    "summarize",
]
