"""Template commands: save, show, list versions and seed templates."""

from pathlib import Path
from typing import Optional

import typer

from partner_gates.cli._app import app
from partner_gates.cli._common import load_document, prepare
from partner_gates.cli._console import console, fail, output_result, output_table, print_ok
from partner_gates.errors import PartnerGatesError

template_app = typer.Typer(
    no_args_is_help=True,
    help="Manage versioned questionnaire templates.",
)
app.add_typer(template_app, name="template")


@template_app.command("save", help="Save a new version of a template from a YAML file.")
def template_save(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id, e.g. gate-0-kickoff"),
    file: Path = typer.Option(..., "--file", "-f", help="YAML file with sections"),
    updated_by: str = typer.Option(..., "--by", help="Editor identity"),
    name: Optional[str] = typer.Option(None, "--name", help="Display name"),
    gate_id: Optional[str] = typer.Option(None, "--gate", help="Gate the template belongs to"),
):
    """Save a template.

    The file holds either a list of sections or a mapping with ``sections``
    and optional ``name`` / ``gateId``.
    """
    service = prepare(ctx)
    document = load_document(file)
    if isinstance(document, dict):
        sections = document.get("sections", [])
        name = name or document.get("name")
        gate_id = gate_id or document.get("gateId")
    else:
        sections = document or []

    try:
        result = service.save_template(template_id, sections, updated_by, name=name, gate_id=gate_id)
    except PartnerGatesError as e:
        fail(str(e))

    output_result(
        {
            "templateId": template_id,
            "version": result.template.version,
            "previousVersion": result.previous_version,
        },
        ctx=ctx,
    )
    if not ctx.obj["json"]:
        print_ok(f"Saved {template_id} v{result.template.version}")


@template_app.command("show", help="Show a template, optionally at a past version.")
def template_show(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id"),
    version: Optional[int] = typer.Option(None, "--version", help="Historical version"),
):
    """Print a template definition."""
    service = prepare(ctx)
    try:
        if version is None:
            template = service.templates.get_current(template_id)
        else:
            template = service.templates.get_version(template_id, version)
    except PartnerGatesError as e:
        fail(str(e))

    output_result(
        template,
        ctx=ctx,
        title=f"{template_id} v{template.version}",
    )


@template_app.command("versions", help="List the versions of a template, newest first.")
def template_versions(
    ctx: typer.Context,
    template_id: str = typer.Argument(..., help="Template id"),
):
    """List template versions."""
    service = prepare(ctx)
    versions = service.templates.list_versions(template_id)
    if not versions:
        fail(f"Template '{template_id}' not found")

    current = versions[0]
    rows = [{"version": v, "current": v == current} for v in versions]
    output_table(rows, ctx=ctx, title=f"{template_id} versions")


@template_app.command("seed", help="Create templates from a YAML file; existing ones are skipped.")
def template_seed(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="YAML file with a 'templates' list"),
    updated_by: str = typer.Option("system", "--by", help="Editor identity"),
):
    """Seed templates."""
    service = prepare(ctx)
    try:
        results = service.templates.bootstrap_from_yaml(file, updated_by=updated_by)
    except (PartnerGatesError, ValueError) as e:
        fail(str(e))

    rows = [{"templateId": r.template.id, "version": r.template.version} for r in results]
    if not rows and not ctx.obj["json"]:
        console.print("No new templates.")
        return
    output_table(rows, ctx=ctx, title="Seeded templates")
