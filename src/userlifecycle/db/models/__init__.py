"""SQLAlchemy ORM models for the account database.

This package contains the models organized by domain:
- base: Common metadata and enums
- accounts: Users, accounts, contacts and their association
- config: Run-time parameters
- audit: Deactivation audit records
"""

from userlifecycle.db.models.accounts import (
    AccountDescriptor,
    AuthIdentity,
    UserAccount,
    UserAuthAccount,
)
from userlifecycle.db.models.audit import DeactivationRecord
from userlifecycle.db.models.base import (
    ACTIVE,
    INACTIVE,
    Base,
    DeactivationReason,
    IndustryType,
    metadata,
)
from userlifecycle.db.models.config import ConfigParameter

__all__ = [
    "ACTIVE",
    "INACTIVE",
    "AccountDescriptor",
    "AuthIdentity",
    "Base",
    "ConfigParameter",
    "DeactivationReason",
    "DeactivationRecord",
    "IndustryType",
    "UserAccount",
    "UserAuthAccount",
    "metadata",
]
