# api/endpoints/__init__.py

"""Инициализация всех роутеров API."""

from .health import health_router
from .query import query_router
from .results import results_router
from .notifications import notifications_router

__all__ = [
    "health_router",
    "query_router",
    "results_router",
    "notifications_router",
]
