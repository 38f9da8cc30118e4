"""Account lifecycle job entry point.

One run performs, in order:
1. Read the run-time options snapshot from the `config` table
2. Deactivate every expired user, one transaction per user
3. Email contacts about accounts expiring soon (if enabled)
4. Detect inactive users
5. Email the test-run report of expired and inactive users (if enabled)
6. Bulk-deactivate the inactive users (if enabled)

The process exits 0 when the run completes (individual deactivation or
email failures are logged, not fatal) and 1 on any fatal error.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, NoReturn

from userlifecycle.core.secrets import EnvironmentSecretResolver
from userlifecycle.core.settings import load_settings
from userlifecycle.db import connect_with_retry, create_session_factory, get_session
from userlifecycle.db.models.base import DeactivationReason
from userlifecycle.services.deactivation import DeactivationError, DeactivationService
from userlifecycle.services.email import LifecycleMailer, NotificationStatus
from userlifecycle.services.expiration import ExpirationService
from userlifecycle.services.inactivity import InactivityService
from userlifecycle.services.job_options import JobOptionsService
from userlifecycle.services.report import build_deactivation_report

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from userlifecycle.core.config import Settings
    from userlifecycle.services.candidates import DeactivationCandidate
    from userlifecycle.services.job_options import JobOptions

logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    """Counters for one run.

    Attributes:
        run_date: The date the run operated on.
        expired_found: Expired users detected.
        expired_deactivated: Expired users deactivated.
        expired_failed: User ids whose deactivation failed.
        notifications_sent: Expiration notices accepted by the relay.
        notifications_failed: Expiration notices that failed.
        inactive_found: Inactive users detected.
        inactive_deactivated: Inactive users deactivated in bulk.
        bulk_failed: Whether the bulk deactivation was rolled back.
        test_run_report_sent: Whether the test-run report went out.
    """

    run_date: date
    expired_found: int = 0
    expired_deactivated: int = 0
    expired_failed: list[int] = field(default_factory=list)
    notifications_sent: int = 0
    notifications_failed: int = 0
    inactive_found: int = 0
    inactive_deactivated: int = 0
    bulk_failed: bool = False
    test_run_report_sent: bool = False


class LifecycleJob:
    """Runs the account lifecycle steps against one session.

    Example:
        with get_session(factory) as session:
            result = LifecycleJob(session, mailer).run()
    """

    def __init__(
        self,
        session: Session,
        mailer: LifecycleMailer,
        today: date | None = None,
    ) -> None:
        """Initialize the job.

        Args:
            session: Session used for every step; must have no open transaction.
            mailer: Sender for notices and the test-run report.
            today: Run date; defaults to the current local date.
        """
        self.session = session
        self.mailer = mailer
        self.today = today or date.today()

        self.options_service = JobOptionsService(session)
        self.expiration_service = ExpirationService(session)
        self.inactivity_service = InactivityService(session)
        self.deactivation_service = DeactivationService(session)

    def run(self) -> JobRunResult:
        """Run all steps once.

        Returns:
            Counters for the run.

        Raises:
            OptionsError: If the options cannot be read or are malformed.
            DetectionError: If a detector query fails.
            ReportError: If the test-run report cannot be built.
        """
        result = JobRunResult(run_date=self.today)
        logger.info("Lifecycle job starting: today=%s", self.today)

        options = self.options_service.load()

        expired = self.expiration_service.find_expired_users(self.today)
        result.expired_found = len(expired)
        self._deactivate_expired(expired, result)

        if options.send_notification_on_upcoming_expiration:
            self._notify_upcoming(options, result)

        inactive = self.inactivity_service.find_inactive_users(
            self.today,
            options.healthcare_days_inactive,
            options.non_healthcare_days_inactive,
        )
        result.inactive_found = len(inactive)

        if options.enable_test_run and (inactive or expired):
            self._send_test_run_report(options, [*inactive, *expired], result)

        if options.enable_auto_inactive_deactivation and inactive:
            self._deactivate_inactive(inactive, result)

        logger.info(
            "Lifecycle job finished: expired=%d/%d, notices=%d (failed=%d), "
            "inactive=%d/%d, test_run_report=%s",
            result.expired_deactivated,
            result.expired_found,
            result.notifications_sent,
            result.notifications_failed,
            result.inactive_deactivated,
            result.inactive_found,
            result.test_run_report_sent,
        )
        return result

    def _deactivate_expired(
        self,
        expired: list[DeactivationCandidate],
        result: JobRunResult,
    ) -> None:
        for candidate in expired:
            logger.debug(
                "Deactivating expired user: user_id=%s, name=%s",
                candidate.user_id,
                candidate.display_name,
            )
            try:
                self.deactivation_service.deactivate(
                    candidate.user_id, DeactivationReason.EXPIRED, self.today
                )
            except DeactivationError as e:
                logger.error(
                    "Expired user not deactivated: user_id=%s, error=%s", candidate.user_id, e
                )
                result.expired_failed.append(candidate.user_id)
                continue
            result.expired_deactivated += 1

    def _notify_upcoming(self, options: JobOptions, result: JobRunResult) -> None:
        groups = self.expiration_service.find_upcoming_expirations(
            self.today, options.days_for_user_expire
        )
        for group in groups:
            outcome = self.mailer.send_expiration_notice(group)
            if outcome.success:
                result.notifications_sent += 1
            else:
                logger.error(
                    "Expiration notice not sent: user_auth_id=%s, error=%s",
                    group.user_auth_id,
                    outcome.error,
                )
                result.notifications_failed += 1

    def _send_test_run_report(
        self,
        options: JobOptions,
        candidates: list[DeactivationCandidate],
        result: JobRunResult,
    ) -> None:
        report = build_deactivation_report(candidates)
        outcome = self.mailer.send_test_run_report(options.test_run_recipients, report)
        if outcome.status is NotificationStatus.SENT:
            result.test_run_report_sent = True
        elif outcome.status is NotificationStatus.FAILED:
            logger.error("Test run report not sent: error=%s", outcome.error)

    def _deactivate_inactive(
        self,
        inactive: list[DeactivationCandidate],
        result: JobRunResult,
    ) -> None:
        logger.debug("Starting bulk deactivation of inactive users: count=%d", len(inactive))
        try:
            bulk = self.deactivation_service.deactivate_bulk(
                inactive, DeactivationReason.INACTIVE, self.today
            )
        except DeactivationError as e:
            logger.error("Bulk deactivation of inactive users rolled back: %s", e)
            result.bulk_failed = True
            return
        result.inactive_deactivated = bulk.updated


def run() -> NoReturn:
    """Run the lifecycle job once and exit.

    This is the main entry point. It:
    - Sets up logging
    - Loads and validates settings
    - Connects to the database (one retry)
    - Runs the job in a single session
    """
    settings = _setup_logging_and_settings()

    try:
        resolver = EnvironmentSecretResolver()
        engine = connect_with_retry(settings.database, resolver)
        try:
            factory = create_session_factory(engine)
            mailer = LifecycleMailer(settings.smtp, settings.notifications)
            with get_session(factory) as session:
                LifecycleJob(session, mailer).run()
        finally:
            engine.dispose()
    except Exception as e:
        logger.exception("Lifecycle job failed: %s", e)
        sys.exit(1)

    logger.info("Lifecycle job complete")
    sys.exit(0)


def _setup_logging_and_settings() -> Settings:
    """Configure logging, then load settings and apply their log level.

    `LOG_LEVEL` in the environment overrides the configured level.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()

    log_level = os.environ.get("LOG_LEVEL", settings.log_level).upper()
    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))
    return settings


if __name__ == "__main__":
    run()
