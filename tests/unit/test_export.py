import json

import pytest

from programfactory.contracts import BatchContent, BatchSummary, UnitContent
from programfactory.generation import ExportFormat, export_batch, export_html, export_json, export_markdown


def _batch() -> BatchContent:
    units = [
        UnitContent(
            id="session-1",
            session_number=1,
            title="Returns <Basics>",
            article="# Returns\n\nWhy returns matter.",
            script="Hook. [PAUSE] Close.",
            quiz={
                "questions": [
                    {
                        "question": "What drives returns?",
                        "options": ["Fit", "Weather"],
                        "correct_index": 0,
                    }
                ]
            },
            exercise={"exercise": {"roleplay": "conversation with a shopper"}},
            scores={"article": 90, "video": 80, "quiz": 85, "exercise": 85},
            qc_score=85,
        ),
        UnitContent(
            id="session-2",
            session_number=2,
            title="Exchanges",
            article="Placeholder",
            qc_score=50,
            error="Placeholder content used for: article",
        ),
    ]
    return BatchContent(
        program_title="Retail Returns Program",
        client_name="Acme",
        industry="Retail",
        target_audience="Store associates",
        units=units,
        summary=BatchSummary(total_units=2, completed_units=1, failed_units=1, average_qc_score=68),
    )


def test_json_export_is_lossless():
    batch = _batch()
    data = json.loads(export_json(batch))

    assert data["content"][0] == {
        "id": "session-1",
        "title": "Returns <Basics>",
        "content": "# Returns\n\nWhy returns matter.",
        "score": 85,
        "unit": batch.units[0].model_dump(mode="json"),
    }
    restored = BatchContent.model_validate({k: v for k, v in data.items() if k != "content"})
    assert restored == batch


def test_markdown_export():
    text = export_markdown(_batch())

    assert text.startswith("# Retail Returns Program")
    assert "## Session 1: Returns <Basics>" in text
    assert "- [x] Fit" in text
    assert "- [ ] Weather" in text
    assert "> Placeholder content used for: article" in text
    assert "1/2 completed, 1 failed" in text


def test_html_export_escapes_content():
    text = export_html(_batch())

    assert text.startswith("<!DOCTYPE html>")
    assert "Returns &lt;Basics&gt;" in text
    assert "<Basics>" not in text
    assert '<section id="session-2">' in text
    assert 'class="error"' in text


def test_export_batch_dispatches_by_format():
    batch = _batch()
    assert export_batch(batch, "markdown") == export_markdown(batch)
    assert export_batch(batch, ExportFormat.HTML) == export_html(batch)
    assert json.loads(export_batch(batch))["program_title"] == "Retail Returns Program"
    with pytest.raises(ValueError):
        export_batch(batch, "pdf")
