"""Command line interface for inspecting sessions, templates and batch jobs."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from programfactory.config import load_config
from programfactory.errors import ProgramFactoryError
from programfactory.factory import ProgramFactory
from programfactory.generation import ExportFormat
from programfactory.persistence import get_repository
from programfactory.progress import EventType
from programfactory.templates import PromptCategory, TemplateService
from programfactory.workflow import WorkflowManager

app = typer.Typer(help="CLI for programfactory sessions, templates and batch jobs")

# Command groups
session_app = typer.Typer(help="Commands for inspecting workflow sessions")
template_app = typer.Typer(help="Commands for managing prompt templates")
batch_app = typer.Typer(help="Commands for running and exporting batch jobs")

app.add_typer(session_app, name="session")
app.add_typer(template_app, name="template")
app.add_typer(batch_app, name="batch")


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _category(value: str) -> PromptCategory:
    try:
        return PromptCategory(value)
    except ValueError:
        _fail(f"Unknown category: {value}")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """programfactory CLI entry point."""
    config = load_config()
    logging.basicConfig(level=(log_level or config.log_level).upper())


@session_app.command("list")
def session_list() -> None:
    """
    List all sessions with their status and current step.

    Example:
        programfactory session list
        # Output: 3f2c...    active    matrix_review    Acme
    """
    manager = WorkflowManager(get_repository())
    sessions = asyncio.run(manager.list_sessions())
    if not sessions:
        typer.echo("No sessions found")
        return
    for session in sessions:
        typer.echo(
            f"{session.id}\t{session.status.value}\t{session.current_step.value}\t{session.client_name}"
        )


@session_app.command("show")
def session_show(session_id: str) -> None:
    """
    Show a session, its step data keys and its decision history.

    Example:
        programfactory session show 3f2c...
    """
    manager = WorkflowManager(get_repository())

    async def load():
        session = await manager.get_session(session_id)
        return session, await manager.get_all_step_data(session_id), await manager.get_decisions(session_id)

    try:
        session, data, decisions = asyncio.run(load())
    except ProgramFactoryError:
        _fail("Session not found")

    route = session.route.value if session.route else "-"
    typer.echo(f"Session {session.id}: {session.status.value}")
    typer.echo(f"Client: {session.client_name} ({session.industry})")
    typer.echo(f"Step: {manager.step_name(session.current_step)} [{session.current_step.value}]")
    typer.echo(f"Route: {route}")
    if data:
        typer.echo("Step data:")
        for key in sorted(data):
            typer.echo(f"- {key}")
    for decision in decisions:
        feedback = f" ({decision.feedback})" if decision.feedback else ""
        typer.echo(
            f"- {decision.step}: {decision.decision}{feedback} "
            f"at {decision.decided_at.isoformat(timespec='seconds')}"
        )


@session_app.command("delete")
def session_delete(session_id: str) -> None:
    """Delete a session with all of its step data, decisions and jobs."""
    manager = WorkflowManager(get_repository())
    try:
        asyncio.run(manager.delete_session(session_id))
    except ProgramFactoryError:
        _fail("Session not found")
    typer.echo(f"Deleted session {session_id}")


@template_app.command("list")
def template_list(
    category: Optional[str] = typer.Option(None, help="Only list one category"),
) -> None:
    """List stored templates with version and active flag."""
    service = TemplateService(get_repository())
    templates = asyncio.run(service.list_templates(_category(category) if category else None))
    if not templates:
        typer.echo("No stored templates, defaults apply")
        return
    for template in templates:
        marker = "*" if template.is_active else " "
        typer.echo(f"{marker} {template.id}\t{template.category}\tv{template.version}\t{template.name}")


@template_app.command("show")
def template_show(category: str) -> None:
    """Print the template currently resolved for a category."""
    service = TemplateService(get_repository())
    typer.echo(asyncio.run(service.get_template(_category(category))))


@template_app.command("set")
def template_set(
    category: str,
    file: Path,
    name: Optional[str] = typer.Option(None, help="Display name for the new version"),
) -> None:
    """Store the contents of FILE as the new active template of CATEGORY."""
    if not file.exists():
        _fail("Specified file does not exist")
    service = TemplateService(get_repository())
    template = asyncio.run(
        service.save_template(_category(category), file.read_text(), name=name)
    )
    typer.echo(f"Saved {template.category} v{template.version} ({template.id})")


@template_app.command("activate")
def template_activate(template_id: str) -> None:
    """Roll back to a retained template version."""
    service = TemplateService(get_repository())
    try:
        template = asyncio.run(service.activate_template(template_id))
    except ProgramFactoryError:
        _fail("Template not found")
    typer.echo(f"Activated {template.category} v{template.version}")


@template_app.command("reset")
def template_reset(category: str) -> None:
    """Deactivate stored templates so the default applies again."""
    service = TemplateService(get_repository())
    count = asyncio.run(service.reset_template(_category(category)))
    typer.echo(f"Reset {category}: {count} template(s) deactivated")


@template_app.command("reset-all")
def template_reset_all(
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting every stored template"),
) -> None:
    """Delete every stored template."""
    if not yes:
        _fail("Refusing to delete all templates without --yes")
    service = TemplateService(get_repository())
    asyncio.run(service.reset_all())
    typer.echo("All templates reset to defaults")


@template_app.command("seed")
def template_seed() -> None:
    """Store the compiled-in defaults when the store is empty."""
    service = TemplateService(get_repository())
    count = asyncio.run(service.seed_defaults())
    if count:
        typer.echo(f"Seeded {count} templates")
    else:
        typer.echo("Templates already present, nothing seeded")


@batch_app.command("run")
def batch_run(session_id: str) -> None:
    """
    Run the batch job for a session and stream its progress.

    The session must have passed sample validation.

    Example:
        programfactory batch run 3f2c...
        # Output: [step-started] session-1 Generating session 1: Foundations
        #         [step-completed] session-1 qc=86
        #         [complete] Generated 4 of 4 units
    """
    factory = ProgramFactory()

    async def run():
        job_id = await factory.start_batch(session_id)
        typer.echo(f"Job {job_id}")
        async with factory.subscribe(job_id) as subscription:
            async for event in subscription:
                if event.type == EventType.CONNECTED:
                    continue
                parts = [f"[{event.type.value}]"]
                if event.step:
                    parts.append(event.step)
                if event.type == EventType.STEP_COMPLETED and event.data:
                    parts.append(f"qc={event.data['qc_score']}")
                elif event.message:
                    parts.append(event.message)
                typer.echo(" ".join(parts))
        return await factory.wait_for_batch(job_id)

    try:
        job = asyncio.run(run())
    except ProgramFactoryError as e:
        _fail(str(e))
    if job.status != "completed":
        _fail(f"Batch job failed: {job.error}")


@batch_app.command("rerun-qc")
def batch_rerun_qc(session_id: str) -> None:
    """
    Re-run quality control over a session's generated units.

    Example:
        programfactory batch rerun-qc 3f2c...
        # Output: session-1    qc=84
        #         Average QC score: 84
    """
    factory = ProgramFactory()
    try:
        batch = asyncio.run(factory.rerun_qc(session_id))
    except ProgramFactoryError as e:
        _fail(str(e))
    for unit in batch.units:
        typer.echo(f"{unit.id}\tqc={unit.qc_score}")
    typer.echo(f"Average QC score: {batch.summary.average_qc_score}")


@batch_app.command("export")
def batch_export(
    session_id: str,
    fmt: ExportFormat = typer.Option(ExportFormat.JSON, "--format", help="Export format"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write to this file"),
) -> None:
    """Export the generated content of a session."""
    factory = ProgramFactory()
    try:
        text = asyncio.run(factory.export_batch(session_id, fmt))
    except ProgramFactoryError as e:
        _fail(str(e))
    if output is None:
        typer.echo(text)
        return
    output.write_text(text)
    typer.echo(f"Wrote {fmt.value} export to {output}")


@app.command("config")
def show_config() -> None:
    """Print the effective configuration."""
    typer.echo(json.dumps(load_config().model_dump(), indent=2))


if __name__ == "__main__":
    app()
