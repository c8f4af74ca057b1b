"""Serialization of a finished batch into JSON, Markdown or HTML."""

from __future__ import annotations

import html
import json
from enum import Enum
from typing import Any, Dict, List

from ..contracts import BatchContent, UnitContent


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    HTML = "html"


def _quiz_lines(quiz: Dict[str, Any]) -> List[str]:
    lines = []
    for n, question in enumerate(quiz.get("questions", []), start=1):
        lines.append(f"{n}. {question.get('question', '')}")
        correct = question.get("correct_index")
        for i, option in enumerate(question.get("options", [])):
            marker = "x" if i == correct else " "
            lines.append(f"   - [{marker}] {option}")
    return lines


def export_json(batch: BatchContent) -> str:
    """Lossless export: the batch plus a flat id/title/content/score view per unit."""
    data = batch.model_dump(mode="json")
    data["content"] = [
        {
            "id": unit.id,
            "title": unit.title,
            "content": unit.article,
            "score": unit.qc_score,
            "unit": unit.model_dump(mode="json"),
        }
        for unit in batch.units
    ]
    return json.dumps(data, indent=2)


def _unit_markdown(unit: UnitContent) -> str:
    parts = [f"## Session {unit.session_number}: {unit.title}", f"QC score: {unit.qc_score}"]
    if unit.error:
        parts.append(f"> {unit.error}")
    parts.extend(["### Article", unit.article.strip(), "### Video Script", unit.script.strip()])
    quiz = _quiz_lines(unit.quiz)
    if quiz:
        parts.extend(["### Quiz", "\n".join(quiz)])
    if unit.exercise:
        parts.extend(
            ["### Exercise", "```json\n" + json.dumps(unit.exercise, indent=2) + "\n```"]
        )
    return "\n\n".join(parts)


def export_markdown(batch: BatchContent) -> str:
    summary = batch.summary
    header = "\n".join(
        [
            f"# {batch.program_title}",
            "",
            f"- Client: {batch.client_name}",
            f"- Industry: {batch.industry}",
            f"- Audience: {batch.target_audience}",
            f"- Units: {summary.completed_units}/{summary.total_units} completed, "
            f"{summary.failed_units} failed",
            f"- Average QC score: {summary.average_qc_score}",
        ]
    )
    return "\n\n".join([header, *(_unit_markdown(unit) for unit in batch.units)]) + "\n"


def _unit_html(unit: UnitContent) -> str:
    esc = html.escape
    parts = [
        f'<section id="{esc(unit.id)}">',
        f"<h2>Session {unit.session_number}: {esc(unit.title)}</h2>",
        f'<p class="score">QC score: {unit.qc_score}</p>',
    ]
    if unit.error:
        parts.append(f'<p class="error">{esc(unit.error)}</p>')
    parts.append("<h3>Article</h3>")
    parts.extend(f"<p>{esc(p.strip())}</p>" for p in unit.article.split("\n\n") if p.strip())
    parts.append("<h3>Video Script</h3>")
    parts.append(f"<pre>{esc(unit.script)}</pre>")
    questions = unit.quiz.get("questions", [])
    if questions:
        parts.append("<h3>Quiz</h3><ol>")
        for question in questions:
            options = "".join(f"<li>{esc(str(o))}</li>" for o in question.get("options", []))
            parts.append(f"<li>{esc(str(question.get('question', '')))}<ul>{options}</ul></li>")
        parts.append("</ol>")
    if unit.exercise:
        parts.append("<h3>Exercise</h3>")
        parts.append(f"<pre>{esc(json.dumps(unit.exercise, indent=2))}</pre>")
    parts.append("</section>")
    return "\n".join(parts)


def export_html(batch: BatchContent) -> str:
    title = html.escape(batch.program_title)
    body = "\n".join(_unit_html(unit) for unit in batch.units)
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="en">\n<head>\n<meta charset="utf-8">\n<title>{title}</title>\n</head>\n'
        f"<body>\n<h1>{title}</h1>\n"
        f"<p>{html.escape(batch.client_name)} · {html.escape(batch.industry)} · "
        f"average QC score {batch.summary.average_qc_score}</p>\n"
        f"{body}\n</body>\n</html>\n"
    )


_EXPORTERS = {
    ExportFormat.JSON: export_json,
    ExportFormat.MARKDOWN: export_markdown,
    ExportFormat.HTML: export_html,
}


def export_batch(batch: BatchContent, fmt: ExportFormat | str = ExportFormat.JSON) -> str:
    return _EXPORTERS[ExportFormat(fmt)](batch)
