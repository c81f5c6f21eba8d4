"""
Job runners for the event sync feature.
"""

from .sync_job import notubiz_sync_job, run_notubiz_sync_once, start_notubiz_sync_scheduler

__all__ = ["notubiz_sync_job", "run_notubiz_sync_once", "start_notubiz_sync_scheduler"]
