"""Base model definitions and common types.

This module provides:
- SQLAlchemy declarative base with naming conventions
- Enum types used across multiple models and services
"""

import enum

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Naming convention for constraints ensures consistent DDL across dialects.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

# Values of the numeric `active` flag on user rows
ACTIVE = 1
INACTIVE = 0


class Base(DeclarativeBase):
    """Declarative base for all models.

    The tables already exist in the account database; the models mirror
    their column names so queries run against the live schema unchanged.
    """

    metadata = metadata


# =============================================================================
# Common Enums
# =============================================================================


class DeactivationReason(str, enum.Enum):
    """Reason code stored with every deactivation audit row.

    Values:
        EXPIRED: The account's expiration date has passed.
        INACTIVE: No dispense/return activity within the industry window.
    """

    EXPIRED = "Expired"
    INACTIVE = "Inactive"


class IndustryType(enum.IntEnum):
    """Account industry, selecting the inactivity policy.

    Values:
        NON_HEALTHCARE: Uses the NOHCDAYSINACTIVE window.
        HEALTHCARE: Uses the HCDAYSINACTIVE window.
    """

    NON_HEALTHCARE = 1
    HEALTHCARE = 2
