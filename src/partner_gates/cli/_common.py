"""Shared CLI utilities."""

import logging
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.logging import RichHandler

from partner_gates.cli._console import console, fail
from partner_gates.services.onboarding import OnboardingService
from partner_gates.startup import ensure_initialized as _ensure_initialized

logger = logging.getLogger(__name__)


def ensure_initialized() -> None:
    """Load .env and resolve the data directory."""
    _ensure_initialized()


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def prepare(ctx: typer.Context) -> OnboardingService:
    """Initialize, configure logging and open the service on the data dir."""
    ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    from partner_gates.startup import get_data_dir

    data_dir = ctx.obj.get("data_dir") or get_data_dir()
    logger.debug(f"Using data directory {data_dir}")
    return OnboardingService.from_data_dir(Path(data_dir))


def load_document(path: Path) -> Any:
    """Read a YAML (or JSON) document from disk.

    Raises:
        SystemExit: If the file is missing or unparsable.
    """
    if not path.exists():
        fail(f"File not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        fail(f"Invalid YAML in {path}: {e}")
