"""Tests for expiration detection and upcoming-expiration grouping.

Tests cover:
- Expired user selection boundaries
- Upcoming expirations filtered by date and contact role
- Grouping: one group per contact, never empty, first-seen order
- Template data formatting
"""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from tests.factories import create_account, create_contact, create_user
from userlifecycle.db.models import INACTIVE, DeactivationReason
from userlifecycle.services.candidates import MISSING_NAME_PLACEHOLDER, DetectionError
from userlifecycle.services.expiration import (
    AccountSummary,
    ExpirationService,
    NotificationGroupBuilder,
    format_expiration_date,
    format_status,
)


def _add_row(builder: NotificationGroupBuilder, user_auth_id: int, first_name: str) -> None:
    builder.add(
        user_auth_id=user_auth_id,
        email=f"contact{user_auth_id}@example.com",
        auth_last_name=f"Admin{user_auth_id}",
        account_desc="Main",
        first_name=first_name,
        last_name="Doe",
        expiration_date=date(2026, 3, 29),
        card_id=1001,
        active=1,
    )


class TestFormatting:
    """Tests for display helpers."""

    def test_status(self):
        """Active flag renders as text."""
        assert format_status(1) == "Active"
        assert format_status(0) == "Inactive"
        assert format_status(None) == "Inactive"

    def test_expiration_date(self):
        """Dates render as YYYY-MM-DD."""
        assert format_expiration_date(date(2026, 3, 5)) == "2026-03-05"
        assert format_expiration_date(None) == ""

    def test_template_data_keys(self):
        """Template data uses the notice template's keys."""
        summary = AccountSummary(
            account_desc="Main",
            first_name="Jane",
            last_name="Doe",
            expiration_date="2026-03-29",
            card_id=1001,
            status="Active",
        )
        assert summary.to_template_data() == {
            "AccountDesc": "Main",
            "FirstName": "Jane",
            "LastName": "Doe",
            "ExpirationDate": "2026-03-29",
            "CardID": 1001,
            "Active": "Active",
        }


class TestNotificationGroupBuilder:
    """Tests for NotificationGroupBuilder."""

    def test_empty(self):
        """No rows, no groups."""
        builder = NotificationGroupBuilder()
        assert builder.build() == []
        assert builder.rows_added == 0

    def test_groups_by_contact(self):
        """Rows for the same contact share one group, in insertion order."""
        builder = NotificationGroupBuilder()
        _add_row(builder, 7, "Ann")
        _add_row(builder, 3, "Bob")
        _add_row(builder, 7, "Cid")

        groups = builder.build()

        assert [group.user_auth_id for group in groups] == [7, 3]
        assert [a.first_name for a in groups[0].accounts] == ["Ann", "Cid"]
        assert [a.first_name for a in groups[1].accounts] == ["Bob"]
        assert groups[0].email == "contact7@example.com"
        assert groups[0].last_name == "Admin7"
        assert builder.rows_added == 3

    def test_every_row_lands_in_exactly_one_group(self):
        """Account totals across groups equal the rows added."""
        builder = NotificationGroupBuilder()
        for index in range(10):
            _add_row(builder, index % 3, f"User{index}")

        groups = builder.build()

        assert all(group.accounts for group in groups)
        assert sum(len(group.accounts) for group in groups) == builder.rows_added

    def test_built_groups_are_immutable(self):
        """Finalized groups cannot be changed."""
        builder = NotificationGroupBuilder()
        _add_row(builder, 1, "Ann")
        group = builder.build()[0]

        assert isinstance(group.accounts, tuple)
        with pytest.raises(AttributeError):
            group.email = "other@example.com"  # type: ignore[misc]

    def test_missing_values(self):
        """NULL columns render as empty strings."""
        builder = NotificationGroupBuilder()
        builder.add(
            user_auth_id=1,
            email="c@example.com",
            auth_last_name=None,
            account_desc=None,
            first_name=None,
            last_name=None,
            expiration_date=None,
            card_id=None,
            active=0,
        )
        group = builder.build()[0]

        assert group.last_name == ""
        assert group.accounts[0].first_name == ""
        assert group.accounts[0].status == "Inactive"


class TestFindExpiredUsers:
    """Tests for ExpirationService.find_expired_users()."""

    def test_boundaries(self, session_factory, session, today):
        """Only active users with a date strictly before today qualify."""
        create_account(session_factory)
        create_user(session_factory, 1, expiration_date=today - timedelta(days=1))
        create_user(session_factory, 2, expiration_date=today)
        create_user(session_factory, 3, expiration_date=today + timedelta(days=1))
        create_user(session_factory, 4, expiration_date=None)
        create_user(
            session_factory, 5, expiration_date=today - timedelta(days=30), active=INACTIVE
        )
        create_user(session_factory, 6, expiration_date=date(2001, 1, 1))

        candidates = ExpirationService(session).find_expired_users(today)

        assert [c.user_id for c in candidates] == [1, 6]
        assert all(c.reason is DeactivationReason.EXPIRED for c in candidates)

    def test_missing_names_use_placeholder(self, session_factory, session, today):
        """NULL names are reported as the placeholder."""
        create_account(session_factory)
        create_user(
            session_factory,
            1,
            expiration_date=today - timedelta(days=1),
            first_name=None,
            last_name="Doe",
        )

        [candidate] = ExpirationService(session).find_expired_users(today)

        assert candidate.first_name == MISSING_NAME_PLACEHOLDER
        assert candidate.last_name == "Doe"

    def test_query_failure(self, today):
        """Query errors raise DetectionError."""
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        with pytest.raises(DetectionError) as exc_info:
            ExpirationService(session).find_expired_users(today)
        assert exc_info.value.detector == "expired_users"


class TestFindUpcomingExpirations:
    """Tests for ExpirationService.find_upcoming_expirations()."""

    @pytest.fixture
    def target(self, today) -> date:
        return today + timedelta(days=14)

    def test_selects_exact_date_for_privileged_contacts(
        self, session_factory, session, today, target
    ):
        """Users expiring on the target date are grouped per privileged contact."""
        create_account(session_factory, 1, account_desc="North")
        create_account(session_factory, 2, account_desc="South")
        create_user(session_factory, 10, 1, expiration_date=target, card_id=555)
        create_user(session_factory, 11, 1, expiration_date=target + timedelta(days=1))
        create_user(session_factory, 12, 2, expiration_date=target, active=INACTIVE)
        create_contact(session_factory, 100, [1, 2], role_id=5, last_name="Smith")
        create_contact(session_factory, 200, [2], role_id=6)
        create_contact(session_factory, 300, [1, 2], role_id=3)

        groups = ExpirationService(session).find_upcoming_expirations(today, 14)

        assert [g.user_auth_id for g in groups] == [100, 200]
        smith = groups[0]
        assert smith.last_name == "Smith"
        assert smith.email == "contact100@example.com"
        assert [a.account_desc for a in smith.accounts] == ["North", "South"]
        assert smith.accounts[0].card_id == 555
        assert smith.accounts[0].expiration_date == target.isoformat()
        assert smith.accounts[0].status == "Active"
        # No filter on the active flag; the status column reports it
        assert smith.accounts[1].status == "Inactive"
        assert [a.account_desc for a in groups[1].accounts] == ["South"]

    def test_none_days_selects_nothing(self, session_factory, session, today):
        """An unconfigured lead time returns no groups."""
        create_account(session_factory)
        create_user(session_factory, 1, expiration_date=today)
        create_contact(session_factory, 100, [1])

        assert ExpirationService(session).find_upcoming_expirations(today, None) == []

    def test_no_matches(self, session, today):
        """An empty database yields no groups."""
        assert ExpirationService(session).find_upcoming_expirations(today, 14) == []

    def test_query_failure(self, today):
        """Query errors raise DetectionError."""
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        with pytest.raises(DetectionError) as exc_info:
            ExpirationService(session).find_upcoming_expirations(today, 14)
        assert exc_info.value.detector == "upcoming_expirations"
