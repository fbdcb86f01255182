"""Submission commands: score, submit and show."""

from pathlib import Path
from typing import Optional

import typer

from partner_gates.cli._app import app
from partner_gates.cli._common import load_document, prepare
from partner_gates.cli._console import (
    console,
    fail,
    output_result,
    print_ok,
    print_warn,
    styled_status,
)
from partner_gates.errors import PartnerGatesError
from partner_gates.schemas.submission import UserRole

submission_app = typer.Typer(
    no_args_is_help=True,
    help="Score and record questionnaire submissions.",
)
app.add_typer(submission_app, name="submission")


def _load_answers(path: Path) -> dict:
    answers = load_document(path)
    if not isinstance(answers, dict):
        fail(f"{path} must contain a mapping of field id to value")
    return answers


@submission_app.command("score", help="Score answers against the current template without saving.")
def submission_score(
    ctx: typer.Context,
    questionnaire_id: str = typer.Argument(..., help="Questionnaire (template) id"),
    answers_file: Path = typer.Option(..., "--answers", "-a", help="YAML file of field answers"),
):
    """Dry-run scoring of a set of answers."""
    service = prepare(ctx)
    answers = _load_answers(answers_file)
    try:
        evaluation = service.evaluate_answers(questionnaire_id, answers)
    except PartnerGatesError as e:
        fail(str(e))

    output_result(
        {
            "questionnaireId": questionnaire_id,
            "overallStatus": evaluation.overall.value,
            "sectionStatuses": {
                sid: status.model_dump(mode="json", by_alias=True, exclude_none=True)
                for sid, status in evaluation.statuses.items()
            },
            "qualification": evaluation.qualification.model_dump(mode="json", by_alias=True),
        },
        ctx=ctx,
        title=f"{questionnaire_id}: {evaluation.overall.value}",
    )


@submission_app.command("submit", help="Submit a questionnaire for a partner.")
def submission_submit(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
    questionnaire_id: str = typer.Argument(..., help="Questionnaire (template) id"),
    answers_file: Path = typer.Option(..., "--answers", "-a", help="YAML file of field answers"),
    submitted_by: str = typer.Option(..., "--by", help="Submitter identity"),
    role: Optional[UserRole] = typer.Option(None, "--role", help="Submitter role"),
):
    """Score, store and apply a submission to the partner's gate."""
    service = prepare(ctx)
    answers = _load_answers(answers_file)
    try:
        outcome = service.submit_questionnaire(
            partner_id, questionnaire_id, answers, submitted_by=submitted_by, role=role
        )
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))

    submission = outcome.submission
    output_result(
        {
            "submissionId": submission.id,
            "templateVersion": submission.template_version,
            "overallStatus": submission.overall_status.value,
            "reason": outcome.qualification.reason,
            "gateId": submission.gate_id,
            "gateStatus": outcome.gate_progress.status.value,
        },
        ctx=ctx,
    )
    if not ctx.obj["json"]:
        if outcome.qualification.qualifies:
            print_ok(outcome.qualification.reason)
        else:
            print_warn(outcome.qualification.reason)


@submission_app.command("show", help="Render a submission against its template version.")
def submission_show(
    ctx: typer.Context,
    submission_id: str = typer.Argument(..., help="Submission id"),
):
    """Show a submission with every field of its bound template version."""
    service = prepare(ctx)
    try:
        rendered = service.render_submission(submission_id)
    except PartnerGatesError as e:
        fail(str(e))

    if ctx.obj["json"]:
        output_result(rendered, ctx=ctx)
        return

    console.print(
        f"\n[bold]{rendered.submission_id}[/bold]  {rendered.questionnaire_id} "
        f"v{rendered.rendered_version}  {styled_status(rendered.overall_status.value)}"
    )
    for section in rendered.sections:
        result = styled_status(section.status.result.value)
        console.print(f"\n  [bold]{section.title or section.id}[/bold] ({result})")
        for field in section.fields:
            marker = " [dim](removed)[/dim]" if field.removed else ""
            value = field.value if field.answered else "[dim]-[/dim]"
            console.print(f"    {field.label}{marker}: {value}")
        for reason in section.status.failure_reasons or []:
            console.print(f"    [red]✗[/red] {reason}")
