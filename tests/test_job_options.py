"""Tests for run-time options read from the `config` table.

Tests cover:
- Flag parsing (exactly 1.00 is on)
- Day thresholds (whole numbers only)
- Corrupted values abort the run
- Missing keys fall back to zero values
- Test-run recipient list splitting
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from tests.factories import set_config
from userlifecycle.services.job_options import (
    PARAM_BINDINGS,
    JobOptions,
    JobOptionsService,
    OptionsError,
    ParamKey,
    parse_days,
    parse_flag,
)


class TestParamBindings:
    """Tests for the key-to-field mapping."""

    def test_every_key_is_bound(self):
        """Each recognized key populates exactly one field."""
        assert set(PARAM_BINDINGS) == set(ParamKey)
        fields = [binding.field for binding in PARAM_BINDINGS.values()]
        assert len(fields) == len(set(fields))

    def test_bound_fields_exist(self):
        """Every bound field is a JobOptions attribute."""
        options = JobOptions()
        for binding in PARAM_BINDINGS.values():
            assert hasattr(options, binding.field)


class TestParseFlag:
    """Tests for parse_flag()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1.00", True),
            ("1", True),
            (" 1.0 ", True),
            (Decimal("1.00"), True),
            (1.0, True),
            ("0", False),
            ("0.00", False),
            ("0.5", False),
            ("1.01", False),
            ("-1", False),
            ("2", False),
        ],
    )
    def test_flag_values(self, raw, expected):
        """Only a value numerically equal to 1.00 enables a flag."""
        assert parse_flag("ENABLETESTRUN", raw) is expected

    @pytest.mark.parametrize("raw", ["yes", "", "1,00", None])
    def test_malformed_flag(self, raw):
        """Non-numeric or NULL values are corrupted configuration."""
        with pytest.raises(OptionsError) as exc_info:
            parse_flag("ENABLETESTRUN", raw)
        assert exc_info.value.param == "ENABLETESTRUN"
        assert exc_info.value.raw_value == raw


class TestParseDays:
    """Tests for parse_days()."""

    @pytest.mark.parametrize(("raw", "expected"), [("90", 90), ("30.00", 30), ("0", 0)])
    def test_whole_days(self, raw, expected):
        """Whole numbers parse to int."""
        assert parse_days("HCDAYSINACTIVE", raw) == expected

    @pytest.mark.parametrize("raw", ["90.5", "abc", "inf", "nan", None])
    def test_invalid_days(self, raw):
        """Fractional, non-finite or non-numeric values are rejected."""
        with pytest.raises(OptionsError):
            parse_days("HCDAYSINACTIVE", raw)


class TestJobOptions:
    """Tests for the JobOptions snapshot."""

    def test_defaults(self):
        """Missing parameters mean everything is off."""
        options = JobOptions()
        assert options.send_notification_on_upcoming_expiration is False
        assert options.enable_auto_inactive_deactivation is False
        assert options.enable_test_run is False
        assert options.test_run_email_list == ""
        assert options.days_for_user_expire is None
        assert options.test_run_recipients == []

    def test_recipients_split_and_trimmed(self):
        """Recipients are split on ';', trimmed, blanks dropped."""
        options = JobOptions(test_run_email_list=" ops@example.com ; ;qa@example.com;")
        assert options.test_run_recipients == ["ops@example.com", "qa@example.com"]

    def test_frozen(self):
        """The snapshot cannot be modified."""
        options = JobOptions()
        with pytest.raises(AttributeError):
            options.enable_test_run = True  # type: ignore[misc]

    def test_log_dict_hides_addresses(self):
        """Logged options carry the recipient count, not the addresses."""
        options = JobOptions(test_run_email_list="ops@example.com;qa@example.com")
        logged = options.to_log_dict()
        assert "ops@example.com" not in str(logged)
        assert logged["test_run_email_list"] == "<2 recipient(s)>"


class TestJobOptionsService:
    """Tests for JobOptionsService.load()."""

    def test_empty_table(self, session):
        """No rows yields the zero-value snapshot."""
        assert JobOptionsService(session).load() == JobOptions()

    def test_all_parameters(self, session_factory, session):
        """Every recognized key populates its field."""
        set_config(session_factory, "SENDNOTIFICATIONDEACTIVATE", "1.00")
        set_config(session_factory, "ENABLEAUTOINACTIVE", "1.00")
        set_config(session_factory, "ENABLETESTRUN", "0.00")
        set_config(session_factory, "DAYSFORUSEREXPIRE", "14")
        set_config(session_factory, "HCDAYSINACTIVE", "90")
        set_config(session_factory, "NOHCDAYSINACTIVE", "180")
        set_config(session_factory, "TESTRUNEMAIL", None, "ops@example.com;qa@example.com")

        options = JobOptionsService(session).load()

        assert options == JobOptions(
            send_notification_on_upcoming_expiration=True,
            enable_auto_inactive_deactivation=True,
            enable_test_run=False,
            test_run_email_list="ops@example.com;qa@example.com",
            days_for_user_expire=14,
            healthcare_days_inactive=90,
            non_healthcare_days_inactive=180,
        )

    def test_unrecognized_keys_ignored(self, session_factory, session):
        """Rows for other keys are not read."""
        set_config(session_factory, "SOMETHINGELSE", "not-a-number")
        set_config(session_factory, "ENABLETESTRUN", "1.00")

        options = JobOptionsService(session).load()

        assert options.enable_test_run is True

    def test_test_run_email_numeric_column_ignored(self, session_factory, session):
        """TESTRUNEMAIL uses stringValue; its value column is not parsed."""
        set_config(session_factory, "TESTRUNEMAIL", "garbage", "ops@example.com")

        options = JobOptionsService(session).load()

        assert options.test_run_email_list == "ops@example.com"

    def test_test_run_email_null_string(self, session_factory, session):
        """A NULL stringValue yields an empty list."""
        set_config(session_factory, "TESTRUNEMAIL", None, None)

        assert JobOptionsService(session).load().test_run_email_list == ""

    def test_corrupted_flag_is_fatal(self, session_factory, session):
        """A non-numeric flag aborts loading."""
        set_config(session_factory, "ENABLEAUTOINACTIVE", "true")

        with pytest.raises(OptionsError) as exc_info:
            JobOptionsService(session).load()
        assert exc_info.value.param == "ENABLEAUTOINACTIVE"

    def test_fractional_threshold_is_fatal(self, session_factory, session):
        """A fractional day count aborts loading."""
        set_config(session_factory, "HCDAYSINACTIVE", "90.5")

        with pytest.raises(OptionsError, match="whole number"):
            JobOptionsService(session).load()

    def test_leaves_no_open_transaction(self, session):
        """The read transaction is closed after loading."""
        JobOptionsService(session).load()
        assert not session.in_transaction()

    def test_unexpected_param_name_is_fatal(self):
        """A row whose name differs from the keys in case aborts loading."""
        session = MagicMock()
        session.execute.return_value.all.return_value = [("enabletestrun", Decimal(1), None)]

        with pytest.raises(OptionsError, match="Unexpected config parameter") as exc_info:
            JobOptionsService(session).load()
        assert exc_info.value.param == "enabletestrun"

    def test_database_error(self):
        """Query failures surface as OptionsError."""
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        with pytest.raises(OptionsError, match="Failed to read job options"):
            JobOptionsService(session).load()
