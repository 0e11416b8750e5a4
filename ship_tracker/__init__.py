"""
Ship Tracker

Weekly proof-of-ship accountability: did a repository publish a release
before each weekly cutoff?
"""

__version__ = "0.1.0"

from .cli import main
from .evaluator import attach_evidence, evaluate_week
from .windows import compute_week_windows

__all__ = ["main", "compute_week_windows", "evaluate_week", "attach_evidence"]
