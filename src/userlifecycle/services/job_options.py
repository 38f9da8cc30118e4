"""Run-time options read from the `config` table.

The job's feature flags and thresholds are owned by operators and stored
in the database rather than in deployment settings. They are read once per
run into an immutable `JobOptions` snapshot, and every later step uses
that snapshot, so a parameter edited mid-run has no effect until the next
run.

Parsing rules:
- Flags are enabled only when the stored numeric value equals exactly 1.00.
- A value that does not parse as a number is corrupted configuration and
  aborts the run.
- Missing parameters leave their field at its zero value.

Usage:
    options = JobOptionsService(session).load()
    if options.enable_test_run:
        recipients = options.test_run_recipients
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from userlifecycle.db.models.config import ConfigParameter

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

FLAG_ENABLED_VALUE = 1.00
TEST_RUN_EMAIL_SEPARATOR = ";"


class ParamKey(str, Enum):
    """Recognized keys of the `config` table."""

    SEND_NOTIFICATION_DEACTIVATE = "SENDNOTIFICATIONDEACTIVATE"
    ENABLE_AUTO_INACTIVE = "ENABLEAUTOINACTIVE"
    ENABLE_TEST_RUN = "ENABLETESTRUN"
    DAYS_FOR_USER_EXPIRE = "DAYSFORUSEREXPIRE"
    HC_DAYS_INACTIVE = "HCDAYSINACTIVE"
    NO_HC_DAYS_INACTIVE = "NOHCDAYSINACTIVE"
    TEST_RUN_EMAIL = "TESTRUNEMAIL"


class ParamKind(str, Enum):
    """How a parameter's stored value is interpreted."""

    FLAG = "flag"
    DAYS = "days"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class ParamBinding:
    """Which `JobOptions` field a key populates, and how."""

    field: str
    kind: ParamKind


# Total mapping: every ParamKey has exactly one binding
PARAM_BINDINGS: dict[ParamKey, ParamBinding] = {
    ParamKey.SEND_NOTIFICATION_DEACTIVATE: ParamBinding(
        "send_notification_on_upcoming_expiration", ParamKind.FLAG
    ),
    ParamKey.ENABLE_AUTO_INACTIVE: ParamBinding(
        "enable_auto_inactive_deactivation", ParamKind.FLAG
    ),
    ParamKey.ENABLE_TEST_RUN: ParamBinding("enable_test_run", ParamKind.FLAG),
    ParamKey.DAYS_FOR_USER_EXPIRE: ParamBinding("days_for_user_expire", ParamKind.DAYS),
    ParamKey.HC_DAYS_INACTIVE: ParamBinding("healthcare_days_inactive", ParamKind.DAYS),
    ParamKey.NO_HC_DAYS_INACTIVE: ParamBinding("non_healthcare_days_inactive", ParamKind.DAYS),
    ParamKey.TEST_RUN_EMAIL: ParamBinding("test_run_email_list", ParamKind.TEXT),
}


@dataclass(frozen=True, slots=True)
class JobOptions:
    """Snapshot of the run-time options for one run.

    Attributes:
        send_notification_on_upcoming_expiration: Email contacts about
            accounts expiring in `days_for_user_expire` days.
        enable_auto_inactive_deactivation: Bulk-deactivate inactive users.
        enable_test_run: Email the would-be deactivations as a CSV report.
        test_run_email_list: Semicolon-delimited report recipients.
        days_for_user_expire: Warning lead time in days.
        healthcare_days_inactive: Inactivity window for healthcare accounts.
        non_healthcare_days_inactive: Inactivity window for other accounts.
    """

    send_notification_on_upcoming_expiration: bool = False
    enable_auto_inactive_deactivation: bool = False
    enable_test_run: bool = False
    test_run_email_list: str = ""
    days_for_user_expire: int | None = None
    healthcare_days_inactive: int | None = None
    non_healthcare_days_inactive: int | None = None

    @property
    def test_run_recipients(self) -> list[str]:
        """Report recipients, trimmed, empties dropped."""
        return [
            email.strip()
            for email in self.test_run_email_list.split(TEST_RUN_EMAIL_SEPARATOR)
            if email.strip()
        ]

    def to_log_dict(self) -> dict[str, Any]:
        """Options as a plain dict for logging (recipient addresses omitted)."""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["test_run_email_list"] = f"<{len(self.test_run_recipients)} recipient(s)>"
        return result


class OptionsError(Exception):
    """Raised when a stored parameter cannot be interpreted.

    Attributes:
        param: The offending key.
        raw_value: The stored value as read.
    """

    def __init__(self, message: str, param: str | None = None, raw_value: Any = None) -> None:
        self.message = message
        self.param = param
        self.raw_value = raw_value
        super().__init__(message)


def parse_numeric(param: str, raw_value: Any) -> float:
    """Parse a stored numeric value.

    Args:
        param: Key being parsed (for the error message).
        raw_value: Value as returned by the driver (str, Decimal, float...).

    Returns:
        The value as a float.

    Raises:
        OptionsError: If the value is NULL or not a number.
    """
    if raw_value is None:
        msg = f"Config parameter {param} has no numeric value"
        raise OptionsError(msg, param=param, raw_value=raw_value)
    try:
        return float(str(raw_value).strip())
    except ValueError as e:
        msg = f"Config parameter {param} has a non-numeric value: {raw_value!r}"
        raise OptionsError(msg, param=param, raw_value=raw_value) from e


def parse_flag(param: str, raw_value: Any) -> bool:
    """Interpret a stored value as a feature flag (exactly 1.00 is on)."""
    return parse_numeric(param, raw_value) == FLAG_ENABLED_VALUE


def parse_days(param: str, raw_value: Any) -> int:
    """Interpret a stored value as a whole number of days.

    Raises:
        OptionsError: If the value is not numeric, not finite or fractional.
    """
    number = parse_numeric(param, raw_value)
    if not math.isfinite(number) or not number.is_integer():
        msg = f"Config parameter {param} must be a whole number of days, got {raw_value!r}"
        raise OptionsError(msg, param=param, raw_value=raw_value)
    return int(number)


class JobOptionsService:
    """Reads the `JobOptions` snapshot from the `config` table.

    Attributes:
        session: SQLAlchemy session for database operations.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self) -> JobOptions:
        """Read all recognized parameters in one query.

        Returns:
            Immutable options snapshot.

        Raises:
            OptionsError: If the table cannot be read or a value is malformed.
        """
        stmt = select(
            ConfigParameter.param,
            ConfigParameter.value,
            ConfigParameter.string_value,
        ).where(ConfigParameter.param.in_([key.value for key in ParamKey]))

        try:
            with self.session.begin():
                rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            msg = f"Failed to read job options: {e}"
            raise OptionsError(msg) from e

        values: dict[str, Any] = {}
        for param, value, string_value in rows:
            try:
                key = ParamKey(param)
            except ValueError as e:
                msg = f"Unexpected config parameter {param!r} returned by the options query"
                raise OptionsError(msg, param=param) from e
            binding = PARAM_BINDINGS[key]
            values[binding.field] = self._interpret(key, binding.kind, value, string_value)

        options = JobOptions(**values)
        logger.info("Job options loaded: %s", options.to_log_dict())

        missing = [key.value for key in ParamKey if PARAM_BINDINGS[key].field not in values]
        if missing:
            logger.debug("Config parameters not set, using defaults: %s", missing)

        return options

    @staticmethod
    def _interpret(
        key: ParamKey,
        kind: ParamKind,
        value: Any,
        string_value: str | None,
    ) -> bool | int | str:
        if kind is ParamKind.FLAG:
            return parse_flag(key.value, value)
        if kind is ParamKind.DAYS:
            return parse_days(key.value, value)
        return string_value or ""
