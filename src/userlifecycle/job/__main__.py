"""Allow running the job with `python -m userlifecycle.job`."""

from userlifecycle.job.main import run

run()
