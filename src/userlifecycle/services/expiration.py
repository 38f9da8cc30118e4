"""Expiration detection and upcoming-expiration grouping.

This module finds:
- Active users whose expiration date has passed (deactivated with reason
  `Expired`, one user at a time)
- Users expiring exactly N days from today, grouped per administering
  contact so each contact receives a single email listing their accounts

All comparisons are by calendar date; `today` is supplied by the caller so
that a run uses one date throughout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from userlifecycle.db.models.accounts import (
    AccountDescriptor,
    AuthIdentity,
    UserAccount,
    UserAuthAccount,
)
from userlifecycle.db.models.base import ACTIVE, DeactivationReason
from userlifecycle.services.candidates import DeactivationCandidate, DetectionError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Access roles whose holders are notified about expiring accounts
PRIVILEGED_ACCESS_ROLES = (5, 6)

EXPIRATION_DATE_FORMAT = "%Y-%m-%d"

STATUS_ACTIVE = "Active"
STATUS_INACTIVE = "Inactive"


def format_status(active: int | None) -> str:
    """Map the numeric active flag to its display text."""
    return STATUS_ACTIVE if active == ACTIVE else STATUS_INACTIVE


def format_expiration_date(value: date | None) -> str:
    """Format an expiration date as YYYY-MM-DD, or "" when unset."""
    if value is None:
        return ""
    return value.strftime(EXPIRATION_DATE_FORMAT)


@dataclass(frozen=True, slots=True)
class AccountSummary:
    """One expiring account as shown in a contact's notification."""

    account_desc: str
    first_name: str
    last_name: str
    expiration_date: str
    card_id: int | None
    status: str

    def to_template_data(self) -> dict[str, Any]:
        """Keys as used by the notification template."""
        return {
            "AccountDesc": self.account_desc,
            "FirstName": self.first_name,
            "LastName": self.last_name,
            "ExpirationDate": self.expiration_date,
            "CardID": self.card_id,
            "Active": self.status,
        }


@dataclass(frozen=True, slots=True)
class NotificationGroup:
    """All expiring accounts administered by one contact.

    Attributes:
        user_auth_id: The contact's id (group key).
        email: Where the notification goes.
        last_name: Contact's last name, used as the recipient display name.
        accounts: Expiring accounts in query order; never empty.
    """

    user_auth_id: int
    email: str
    last_name: str
    accounts: tuple[AccountSummary, ...]


@dataclass
class _GroupAccumulator:
    user_auth_id: int
    email: str
    last_name: str
    accounts: list[AccountSummary] = field(default_factory=list)


class NotificationGroupBuilder:
    """Groups upcoming-expiration rows by contact.

    A group is created when the first row for its contact is added, so no
    group is ever empty. `build()` returns immutable groups; the builder's
    mutable state never leaves it.

    Example:
        builder = NotificationGroupBuilder()
        for row in rows:
            builder.add(user_auth_id=..., email=..., ...)
        groups = builder.build()
    """

    def __init__(self) -> None:
        self._groups: dict[int, _GroupAccumulator] = {}
        self._rows_added = 0

    def add(
        self,
        *,
        user_auth_id: int,
        email: str,
        auth_last_name: str | None,
        account_desc: str | None,
        first_name: str | None,
        last_name: str | None,
        expiration_date: date | None,
        card_id: int | None,
        active: int | None,
    ) -> None:
        """Append one query row to its contact's group."""
        group = self._groups.get(user_auth_id)
        if group is None:
            group = _GroupAccumulator(
                user_auth_id=user_auth_id,
                email=email,
                last_name=auth_last_name or "",
            )
            self._groups[user_auth_id] = group

        group.accounts.append(
            AccountSummary(
                account_desc=account_desc or "",
                first_name=first_name or "",
                last_name=last_name or "",
                expiration_date=format_expiration_date(expiration_date),
                card_id=card_id,
                status=format_status(active),
            )
        )
        self._rows_added += 1

    @property
    def rows_added(self) -> int:
        return self._rows_added

    def build(self) -> list[NotificationGroup]:
        """Finalize the groups, in order of first appearance."""
        return [
            NotificationGroup(
                user_auth_id=group.user_auth_id,
                email=group.email,
                last_name=group.last_name,
                accounts=tuple(group.accounts),
            )
            for group in self._groups.values()
        ]


class ExpirationService:
    """Queries for expired and soon-to-expire users.

    Attributes:
        session: SQLAlchemy session for database operations.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_expired_users(self, today: date) -> list[DeactivationCandidate]:
        """Find active users whose expiration date is before today.

        Args:
            today: The run date.

        Returns:
            Candidates tagged `Expired`, ordered by user id.

        Raises:
            DetectionError: If the query fails.
        """
        stmt = (
            select(UserAccount.user_id, UserAccount.first_name, UserAccount.last_name)
            .where(
                UserAccount.active == ACTIVE,
                UserAccount.expiration_date.isnot(None),
                UserAccount.expiration_date < today,
            )
            .order_by(UserAccount.user_id)
        )

        try:
            with self.session.begin():
                rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise DetectionError("expired_users", str(e)) from e

        candidates = [
            DeactivationCandidate.from_row(
                row.user_id, row.first_name, row.last_name, DeactivationReason.EXPIRED
            )
            for row in rows
        ]
        logger.info("Expired users found: count=%d, today=%s", len(candidates), today)
        return candidates

    def find_upcoming_expirations(
        self,
        today: date,
        days_ahead: int | None,
    ) -> list[NotificationGroup]:
        """Find users expiring exactly `days_ahead` days from today, grouped by contact.

        Only contacts holding a privileged access role are notified. A user
        whose account has several such contacts appears in each of their
        groups.

        Args:
            today: The run date.
            days_ahead: Warning lead time; None means the parameter is not
                configured and nothing is selected.

        Returns:
            One group per contact.

        Raises:
            DetectionError: If the query fails.
        """
        if days_ahead is None:
            logger.warning("DAYSFORUSEREXPIRE is not configured; no upcoming expirations selected")
            return []

        target_date = today + timedelta(days=days_ahead)
        stmt = (
            select(
                AccountDescriptor.account_desc,
                UserAccount.user_id,
                UserAccount.first_name,
                UserAccount.last_name,
                UserAccount.expiration_date,
                UserAccount.card_id,
                UserAccount.active,
                AuthIdentity.user_auth_id,
                AuthIdentity.email,
                AuthIdentity.last_name.label("auth_last_name"),
            )
            .join(AccountDescriptor, AccountDescriptor.account_num == UserAccount.account_num)
            .join(UserAuthAccount, UserAuthAccount.account_num == UserAccount.account_num)
            .join(AuthIdentity, AuthIdentity.user_auth_id == UserAuthAccount.user_auth_id)
            .where(
                UserAccount.expiration_date.isnot(None),
                UserAccount.expiration_date == target_date,
                AuthIdentity.user_access_role_id.in_(PRIVILEGED_ACCESS_ROLES),
            )
            .order_by(AuthIdentity.user_auth_id, UserAccount.user_id)
        )

        try:
            with self.session.begin():
                rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise DetectionError("upcoming_expirations", str(e)) from e

        builder = NotificationGroupBuilder()
        for row in rows:
            builder.add(
                user_auth_id=row.user_auth_id,
                email=row.email,
                auth_last_name=row.auth_last_name,
                account_desc=row.account_desc,
                first_name=row.first_name,
                last_name=row.last_name,
                expiration_date=row.expiration_date,
                card_id=row.card_id,
                active=row.active,
            )
        groups = builder.build()

        logger.info(
            "Upcoming expirations found: rows=%d, contacts=%d, expiring_on=%s",
            builder.rows_added,
            len(groups),
            target_date,
        )
        return groups
