"""Inactivity detection.

An active user is stale when, for the window of their account's industry:
- they have not dispensed since the cutoff (or never dispensed), and
- they have not returned since the cutoff (or never returned), and
- they were added on or before the cutoff.

Healthcare accounts use HCDAYSINACTIVE, non-healthcare accounts use
NOHCDAYSINACTIVE; accounts of any other industry are never selected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError

from userlifecycle.db.models.accounts import AccountDescriptor, UserAccount
from userlifecycle.db.models.base import ACTIVE, DeactivationReason, IndustryType
from userlifecycle.services.candidates import DeactivationCandidate, DetectionError

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InactivityPolicy:
    """Staleness window for one industry type."""

    industry_type: IndustryType
    days: int

    def cutoff(self, today: date) -> datetime:
        """Start of the cutoff day; activity at or before it is stale."""
        return datetime.combine(today - timedelta(days=self.days), time.min)

    def condition(self, today: date) -> ColumnElement[bool]:
        """SQL condition selecting stale users of this industry."""
        cutoff = self.cutoff(today)
        return and_(
            AccountDescriptor.industry_type_id == self.industry_type.value,
            or_(
                UserAccount.last_dispense_date.is_(None),
                UserAccount.last_dispense_date <= cutoff,
            ),
            or_(
                UserAccount.last_return_date.is_(None),
                UserAccount.last_return_date <= cutoff,
            ),
            UserAccount.date_added <= cutoff,
        )


def build_policies(
    healthcare_days: int | None,
    non_healthcare_days: int | None,
) -> list[InactivityPolicy]:
    """Policies for the configured windows; unconfigured ones are skipped."""
    policies = []
    for industry_type, days in (
        (IndustryType.HEALTHCARE, healthcare_days),
        (IndustryType.NON_HEALTHCARE, non_healthcare_days),
    ):
        if days is None:
            logger.warning(
                "Inactivity window for %s accounts is not configured; skipping",
                industry_type.name.lower(),
            )
            continue
        policies.append(InactivityPolicy(industry_type=industry_type, days=days))
    return policies


class InactivityService:
    """Finds users with no qualifying activity within their industry window.

    Attributes:
        session: SQLAlchemy session for database operations.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_inactive_users(
        self,
        today: date,
        healthcare_days: int | None,
        non_healthcare_days: int | None,
    ) -> list[DeactivationCandidate]:
        """Find active users that are stale under their industry policy.

        Args:
            today: The run date.
            healthcare_days: Window for healthcare accounts (HCDAYSINACTIVE).
            non_healthcare_days: Window for other accounts (NOHCDAYSINACTIVE).

        Returns:
            Candidates tagged `Inactive`, ordered by user id.

        Raises:
            DetectionError: If the query fails.
        """
        policies = build_policies(healthcare_days, non_healthcare_days)
        if not policies:
            return []

        stmt = (
            select(UserAccount.user_id, UserAccount.first_name, UserAccount.last_name)
            .join(AccountDescriptor, AccountDescriptor.account_num == UserAccount.account_num)
            .where(
                UserAccount.active == ACTIVE,
                or_(*(policy.condition(today) for policy in policies)),
            )
            .order_by(UserAccount.user_id)
        )

        try:
            with self.session.begin():
                rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise DetectionError("inactive_users", str(e)) from e

        candidates = [
            DeactivationCandidate.from_row(
                row.user_id, row.first_name, row.last_name, DeactivationReason.INACTIVE
            )
            for row in rows
        ]
        logger.info(
            "Inactive users found: count=%d, healthcare_days=%s, non_healthcare_days=%s",
            len(candidates),
            healthcare_days,
            non_healthcare_days,
        )
        return candidates
