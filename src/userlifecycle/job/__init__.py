"""Account lifecycle batch job.

Usage:
    # Run as module
    python -m userlifecycle.job

    # Or via the console script
    userlifecycle-job
"""

from userlifecycle.job.main import JobRunResult, LifecycleJob, run

__all__ = ["JobRunResult", "LifecycleJob", "run"]
