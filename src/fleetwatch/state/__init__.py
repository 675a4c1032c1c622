"""State layer.

Derived, read-only views over the synchronized live sets.
"""

from fleetwatch.state.stats import DISPLAYED_STATUS_BUCKETS, DashboardStats, compute_stats
from fleetwatch.state.store import DashboardStateStore

__all__ = ["DISPLAYED_STATUS_BUCKETS", "DashboardStateStore", "DashboardStats", "compute_stats"]
