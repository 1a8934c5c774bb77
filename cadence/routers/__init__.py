"""Routers package for the recurring task API."""

from .recurring_tasks import router as recurring_tasks_router

__all__ = ["recurring_tasks_router"]
