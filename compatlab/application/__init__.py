"""Application services.

``compatlab.application.service`` wires these together with the workers and
is imported directly to keep ``compatlab.workers`` free of import cycles.
"""

from .metrics import MetricsAggregator
from .registry import JobRegistry

__all__ = [
    "JobRegistry",
    "MetricsAggregator",
]
