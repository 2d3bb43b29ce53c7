"""Scheduler module for SEOMaster."""

from apps.scheduler.tasks import start_scheduler, stop_scheduler

__all__ = ["start_scheduler", "stop_scheduler"]
