"""
Presentation coordination.

Owns everything a dashboard screen observes: the explicit view cache with
loading/ready/error handles, and one dashboard per record domain that holds
the active filter, refetches dependent views after mutations and exports
reports.
"""

from .dashboards import DashboardSnapshot, EmailDashboard, ListPage, PublicationDashboard
from .view_cache import ViewCache, ViewHandle, view_cache

__all__ = [
    "DashboardSnapshot",
    "EmailDashboard",
    "ListPage",
    "PublicationDashboard",
    "ViewCache",
    "ViewHandle",
    "view_cache",
]
