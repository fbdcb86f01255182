"""Consoles and output helpers for partner-gates commands.

Human-readable output and log records go to stderr; ``--json`` results go
to stdout so they can be piped.
"""

import json
from typing import Any, Dict, List, NoReturn, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console(stderr=True)
stdout_console = Console()

# Gate, section and submission statuses share these values
STATUS_STYLES: Dict[str, str] = {
    "passed": "green",
    "pass": "green",
    "in-progress": "cyan",
    "pending": "cyan",
    "partial": "yellow",
    "not-started": "dim",
    "failed": "red",
    "fail": "red",
    "blocked": "bold red",
}
STATUS_COLUMNS = ("status", "gateStatus", "overallStatus")


def print_ok(msg: str) -> None:
    console.print(f"[green]✓[/green] {msg}")


def print_err(msg: str) -> None:
    console.print(f"[red]✗[/red] {msg}")


def print_warn(msg: str) -> None:
    console.print(f"[yellow]![/yellow] {msg}")


def fail(msg: str, blockers: Optional[List[str]] = None) -> NoReturn:
    """Report an error with any gate blockers and exit with status 1."""
    print_err(msg)
    for blocker in blockers or []:
        console.print(f"  - {blocker}")
    raise SystemExit(1)


def styled_status(value: Any) -> str:
    text = str(value)
    style = STATUS_STYLES.get(text)
    return f"[{style}]{text}[/{style}]" if style else text


def output_result(data: Any, *, ctx: typer.Context, title: str = "") -> None:
    """Emit a mapping (or pydantic model, dumped by alias) as JSON or a panel."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    if ctx.obj.get("json"):
        stdout_console.print_json(data=data)
        return
    formatted = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    console.print(Panel(formatted, title=title, border_style="blue") if title else formatted)


def output_table(rows: List[dict], *, ctx: typer.Context, title: str = "") -> None:
    """Emit rows as a JSON array or a table with coloured status columns."""
    if ctx.obj.get("json"):
        stdout_console.print_json(data=rows)
        return
    if not rows:
        console.print("[dim]Nothing to show[/dim]")
        return

    columns = list(rows[0].keys())
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        cells = []
        for column in columns:
            value = row.get(column, "")
            cells.append(styled_status(value) if column in STATUS_COLUMNS else str(value))
        table.add_row(*cells)
    console.print(table)
