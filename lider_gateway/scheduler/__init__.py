"""
Scheduler module.
Contains the cron-driven queue processor.
"""

from lider_gateway.scheduler.cron import CronSchedule
from lider_gateway.scheduler.main import Scheduler

__all__ = ["CronSchedule", "Scheduler"]
