"""Admin - dashboard projections and admin actions."""

from shareguard.admin.dashboard import Dashboard, DashboardSnapshot, estimate_revenue_leakage

__all__ = ["Dashboard", "DashboardSnapshot", "estimate_revenue_leakage"]
