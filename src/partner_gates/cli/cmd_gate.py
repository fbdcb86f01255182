"""Partner and gate commands."""

from typing import List, Optional

import typer

from partner_gates.cli._app import app
from partner_gates.cli._common import prepare
from partner_gates.cli._console import fail, output_result, output_table, print_ok
from partner_gates.errors import PartnerGatesError
from partner_gates.schemas.submission import UserRole

partner_app = typer.Typer(
    no_args_is_help=True,
    help="Register and list partners.",
)
app.add_typer(partner_app, name="partner")

gate_app = typer.Typer(
    no_args_is_help=True,
    help="Inspect and move partners through onboarding gates.",
)
app.add_typer(gate_app, name="gate")


@partner_app.command("add", help="Register a partner at the first gate.")
def partner_add(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
    name: str = typer.Option("", "--name", help="Partner display name"),
    tier: Optional[str] = typer.Option(None, "--tier", help="Strategic tier, e.g. 'Tier 1'"),
    ccv: float = typer.Option(0.0, "--ccv", help="Contractually committed value"),
    lrp: float = typer.Option(0.0, "--lrp", help="Launch revenue potential"),
):
    """Register a partner."""
    service = prepare(ctx)
    try:
        partner = service.register_partner(partner_id, name, tier=tier, ccv=ccv, lrp=lrp)
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))

    output_result({"partnerId": partner.id, "currentGate": partner.current_gate}, ctx=ctx)


@partner_app.command("list", help="List registered partners.")
def partner_list(ctx: typer.Context):
    """List partners with their current gate."""
    service = prepare(ctx)
    rows = [
        {"partnerId": p.id, "name": p.partner_name, "tier": p.tier or "", "currentGate": p.current_gate}
        for p in service.partners.list()
    ]
    output_table(rows, ctx=ctx, title="Partners")


@gate_app.command("status", help="Show every gate of a partner.")
def gate_status(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
):
    """Gate overview for a partner."""
    service = prepare(ctx)
    try:
        overview = service.gate_overview(partner_id)
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))

    rows = [
        {
            "gate": row.gate_id,
            "name": row.name,
            "status": row.status.value,
            "completion": row.completion,
            "current": row.is_current,
            "blockers": "; ".join(row.blockers),
        }
        for row in overview
    ]
    output_table(rows, ctx=ctx, title=f"Gates for {partner_id}")


@gate_app.command("start", help="Open a gate's questionnaires.")
def gate_start(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
    gate_id: str = typer.Argument(..., help="Gate id"),
):
    """Start a gate."""
    service = prepare(ctx)
    try:
        progress = service.start_gate(partner_id, gate_id)
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))
    output_result(progress, ctx=ctx)


@gate_app.command("block", help="Block a gate with one or more reasons.")
def gate_block(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
    gate_id: str = typer.Argument(..., help="Gate id"),
    reasons: List[str] = typer.Option(..., "--reason", "-r", help="Blocker (repeatable)"),
):
    """Block a gate."""
    service = prepare(ctx)
    try:
        progress = service.block_gate(partner_id, gate_id, reasons)
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))
    output_result(progress, ctx=ctx)


@gate_app.command("unblock", help="Lift a block and reopen the gate.")
def gate_unblock(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
    gate_id: str = typer.Argument(..., help="Gate id"),
):
    """Unblock a gate."""
    service = prepare(ctx)
    try:
        progress = service.unblock_gate(partner_id, gate_id)
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))
    output_result(progress, ctx=ctx)


@gate_app.command("approve", help="Record a sign-off and pass the gate.")
def gate_approve(
    ctx: typer.Context,
    partner_id: str = typer.Argument(..., help="Partner id"),
    gate_id: str = typer.Argument(..., help="Gate id"),
    approved_by: str = typer.Option(..., "--by", help="Approver identity"),
    role: Optional[UserRole] = typer.Option(None, "--role", help="Approver role"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Approval notes"),
):
    """Approve a gate."""
    service = prepare(ctx)
    try:
        progress = service.approve_gate(partner_id, gate_id, approved_by, role=role, notes=notes)
    except PartnerGatesError as e:
        fail(str(e), getattr(e, "blockers", None))
    output_result(progress, ctx=ctx)
    if not ctx.obj["json"]:
        print_ok(f"{gate_id} passed")
