"""Candidate progression and evaluator assignment engine."""

__version__ = "0.1.0"
