"""Partner onboarding questionnaire evaluation and gate progression engine."""

__version__ = "0.1.0"
