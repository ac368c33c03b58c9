"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place.
"""

from .results import router as results_router, get_report_aggregator
from .reports import router as reports_router

__all__ = [
    "results_router",
    "reports_router",
    "get_report_aggregator",
]
