"""Root Typer application with global options."""

from pathlib import Path
from typing import Optional

import typer

from partner_gates.startup import DATA_DIR_ENV_VAR

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug-level logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Warnings and errors only"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON to stdout"),
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        envvar=DATA_DIR_ENV_VAR,
        help="Directory holding templates, submissions and partners",
    ),
):
    """Score onboarding questionnaires and track partners through gates."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["json"] = json_output
    ctx.obj["data_dir"] = data_dir
