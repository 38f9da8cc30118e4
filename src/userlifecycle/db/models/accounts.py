"""Account-related models: users, accounts and their contacts.

A user (cardholder) belongs to one account. Accounts are linked to the
auth identities (contacts) that administer them through `userAuthAccounts`.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from userlifecycle.db.models.base import ACTIVE, Base


class AccountDescriptor(Base):
    """Per-account metadata; `industry_type_id` selects the staleness policy."""

    __tablename__ = "account"

    account_num: Mapped[int] = mapped_column("accountNum", Integer, primary_key=True)
    account_desc: Mapped[str | None] = mapped_column("accountDesc", String(255), nullable=True)
    industry_type_id: Mapped[int | None] = mapped_column(
        "industryTypeId", Integer, nullable=True
    )


class UserAccount(Base):
    """A user account whose lifecycle the job maintains.

    `active` is the numeric 1/0 flag; the job only ever flips it 1 -> 0.
    """

    __tablename__ = "user"

    user_id: Mapped[int] = mapped_column("userID", Integer, primary_key=True)
    first_name: Mapped[str | None] = mapped_column("FirstName", String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column("LastName", String(100), nullable=True)
    account_num: Mapped[int] = mapped_column(
        "accountNum",
        Integer,
        ForeignKey("account.accountNum"),
        nullable=False,
    )
    expiration_date: Mapped[date | None] = mapped_column("expirationDate", Date, nullable=True)
    active: Mapped[int] = mapped_column("active", SmallInteger, nullable=False, default=ACTIVE)

    # Activity timestamps; NULL means the user never dispensed/returned
    last_dispense_date: Mapped[datetime | None] = mapped_column(
        "lastDispenseDate", DateTime, nullable=True
    )
    last_return_date: Mapped[datetime | None] = mapped_column(
        "lastReturnDate", DateTime, nullable=True
    )
    date_added: Mapped[datetime] = mapped_column("dateAdded", DateTime, nullable=False)

    card_id: Mapped[int | None] = mapped_column("cardID", Integer, nullable=True)


class AuthIdentity(Base):
    """A contact who administers one or more accounts."""

    __tablename__ = "userAuth"

    user_auth_id: Mapped[int] = mapped_column("userAuthID", Integer, primary_key=True)
    email: Mapped[str] = mapped_column("email", String(255), nullable=False)
    last_name: Mapped[str | None] = mapped_column("LastName", String(100), nullable=True)
    user_access_role_id: Mapped[int] = mapped_column(
        "userAccessRoleID", Integer, nullable=False
    )


class UserAuthAccount(Base):
    """Association between accounts and the contacts who administer them."""

    __tablename__ = "userAuthAccounts"

    account_num: Mapped[int] = mapped_column(
        "accountNum",
        Integer,
        ForeignKey("account.accountNum"),
        primary_key=True,
    )
    user_auth_id: Mapped[int] = mapped_column(
        "userAuthID",
        Integer,
        ForeignKey("userAuth.userAuthID"),
        primary_key=True,
    )
