"""
Background Jobs Module

Handles scheduled tasks for:
- Caterer balance sync
- Payment reminder and bill status refresh
"""

from spice_ledger.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status
from spice_ledger.jobs.job_runner import CatererJobRunner, run_caterer_job

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
    "CatererJobRunner",
    "run_caterer_job",
]
