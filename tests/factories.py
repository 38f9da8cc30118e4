"""Test data factories for the account database.

These helpers insert rows through their own short-lived session and commit,
so the session under test starts without an open transaction.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from userlifecycle.db.models import (
    ACTIVE,
    AccountDescriptor,
    AuthIdentity,
    ConfigParameter,
    DeactivationRecord,
    IndustryType,
    UserAccount,
    UserAuthAccount,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker


def days_ago(today: date, days: int) -> datetime:
    """Midnight `days` days before `today`."""
    return datetime.combine(today - timedelta(days=days), time.min)


def create_account(
    factory: sessionmaker[Session],
    account_num: int = 1,
    industry_type: IndustryType | int | None = IndustryType.NON_HEALTHCARE,
    account_desc: str | None = None,
) -> None:
    """Insert an account."""
    industry_type_id = int(industry_type) if industry_type is not None else None
    with factory.begin() as session:
        session.add(
            AccountDescriptor(
                account_num=account_num,
                account_desc=account_desc or f"Account {account_num}",
                industry_type_id=industry_type_id,
            )
        )


def create_user(
    factory: sessionmaker[Session],
    user_id: int,
    account_num: int = 1,
    *,
    active: int = ACTIVE,
    expiration_date: date | None = None,
    last_dispense_date: datetime | None = None,
    last_return_date: datetime | None = None,
    date_added: datetime | None = None,
    first_name: str | None = "Test",
    last_name: str | None = None,
    card_id: int | None = None,
) -> None:
    """Insert a user.

    Args:
        factory: Session factory bound to the test engine.
        user_id: Primary key.
        account_num: Owning account; must already exist for join queries.
        active: Active flag (1/0).
        expiration_date: Expiration date, or None.
        last_dispense_date: Last dispense timestamp, or None.
        last_return_date: Last return timestamp, or None.
        date_added: Creation timestamp; defaults to 2020-01-01.
        first_name: First name, or None.
        last_name: Last name; defaults to "User<id>".
        card_id: Badge number, or None.
    """
    with factory.begin() as session:
        session.add(
            UserAccount(
                user_id=user_id,
                first_name=first_name,
                last_name=last_name if last_name is not None else f"User{user_id}",
                account_num=account_num,
                expiration_date=expiration_date,
                active=active,
                last_dispense_date=last_dispense_date,
                last_return_date=last_return_date,
                date_added=date_added or datetime(2020, 1, 1),
                card_id=card_id,
            )
        )


def create_users(
    factory: sessionmaker[Session],
    user_ids: range | list[int],
    account_num: int = 1,
    date_added: datetime | None = None,
) -> None:
    """Insert many active users with no activity in one transaction."""
    with factory.begin() as session:
        session.add_all(
            UserAccount(
                user_id=user_id,
                first_name="Bulk",
                last_name=f"User{user_id}",
                account_num=account_num,
                active=ACTIVE,
                date_added=date_added or datetime(2020, 1, 1),
            )
            for user_id in user_ids
        )


def create_contact(
    factory: sessionmaker[Session],
    user_auth_id: int,
    account_nums: list[int],
    *,
    email: str | None = None,
    last_name: str | None = "Admin",
    role_id: int = 5,
) -> None:
    """Insert a contact and link it to accounts."""
    with factory.begin() as session:
        session.add(
            AuthIdentity(
                user_auth_id=user_auth_id,
                email=email or f"contact{user_auth_id}@example.com",
                last_name=last_name,
                user_access_role_id=role_id,
            )
        )
        session.flush()
        session.add_all(
            UserAuthAccount(account_num=account_num, user_auth_id=user_auth_id)
            for account_num in account_nums
        )


def set_config(
    factory: sessionmaker[Session],
    param: str,
    value: str | None = None,
    string_value: str | None = None,
) -> None:
    """Insert a `config` parameter row."""
    with factory.begin() as session:
        session.add(ConfigParameter(param=param, value=value, string_value=string_value))


def get_user(factory: sessionmaker[Session], user_id: int) -> UserAccount | None:
    """Read a user back through a fresh session."""
    with factory() as session:
        return session.get(UserAccount, user_id)


def get_audit_rows(
    factory: sessionmaker[Session],
    user_id: int | None = None,
) -> list[DeactivationRecord]:
    """Read audit rows back through a fresh session, ordered by id."""
    stmt = select(DeactivationRecord).order_by(DeactivationRecord.id)
    if user_id is not None:
        stmt = stmt.where(DeactivationRecord.user_id == user_id)
    with factory() as session:
        return list(session.scalars(stmt))


def count_active(factory: sessionmaker[Session]) -> int:
    """Number of active users."""
    with factory() as session:
        return session.scalar(
            select(func.count()).select_from(UserAccount).where(UserAccount.active == ACTIVE)
        )
