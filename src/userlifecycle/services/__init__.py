"""Account lifecycle service layer.

This package contains the steps of a lifecycle run:
- JobOptionsService: Run-time options read from the `config` table
- ExpirationService: Expired users and upcoming-expiration groups
- InactivityService: Users stale under their industry's inactivity window
- DeactivationService: Transactional single and bulk deactivation
- build_deactivation_report: CSV export for test-run review
- LifecycleMailer: SMTP notices and test-run reports
"""

from userlifecycle.services.candidates import DeactivationCandidate, DetectionError
from userlifecycle.services.deactivation import (
    BulkDeactivationResult,
    DeactivationError,
    DeactivationService,
    DeactivationStep,
)
from userlifecycle.services.email import LifecycleMailer, NotificationResult, NotificationStatus
from userlifecycle.services.expiration import (
    AccountSummary,
    ExpirationService,
    NotificationGroup,
    NotificationGroupBuilder,
)
from userlifecycle.services.inactivity import InactivityPolicy, InactivityService
from userlifecycle.services.job_options import JobOptions, JobOptionsService, OptionsError
from userlifecycle.services.report import ReportError, build_deactivation_report

__all__ = [
    "AccountSummary",
    "BulkDeactivationResult",
    "DeactivationCandidate",
    "DeactivationError",
    "DeactivationService",
    "DeactivationStep",
    "DetectionError",
    "ExpirationService",
    "InactivityPolicy",
    "InactivityService",
    "JobOptions",
    "JobOptionsService",
    "LifecycleMailer",
    "NotificationGroup",
    "NotificationGroupBuilder",
    "NotificationResult",
    "NotificationStatus",
    "OptionsError",
    "ReportError",
    "build_deactivation_report",
]
