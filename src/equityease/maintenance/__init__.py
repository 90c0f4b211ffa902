"""equityease.maintenance: scheduled gap sweeping and backfill."""

from equityease.maintenance.sweeper import MaintenanceSweeper

__all__ = ["MaintenanceSweeper"]
