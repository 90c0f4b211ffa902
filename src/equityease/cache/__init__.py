"""equityease.cache: request-time cache orchestration."""

from equityease.cache.orchestrator import CacheOrchestrator
from equityease.cache.series import chart_from_bars, error_snapshot, snapshot_from_bars

__all__ = [
    "CacheOrchestrator",
    "chart_from_bars",
    "error_snapshot",
    "snapshot_from_bars",
]
