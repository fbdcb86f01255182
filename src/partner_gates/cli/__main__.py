"""Allow ``python -m partner_gates.cli``."""

from partner_gates.cli import app

app()
