"""CLI package: Typer-based command-line interface.

Usage:
    partner-gates --help
    python -m partner_gates.cli gate --help
"""

from partner_gates.cli._app import app

# Register command modules (side-effect imports)
import partner_gates.cli.cmd_template  # noqa: F401
import partner_gates.cli.cmd_submission  # noqa: F401
import partner_gates.cli.cmd_gate  # noqa: F401

__all__ = ["app"]
