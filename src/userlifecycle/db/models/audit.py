"""Deactivation audit trail."""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from userlifecycle.db.models.base import Base


class DeactivationRecord(Base):
    """One row per deactivated user.

    Written in the same transaction that flips the user's `active` flag,
    never updated or deleted afterwards.
    """

    __tablename__ = "deactivatedUser"

    id: Mapped[int] = mapped_column("id", Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column("userID", Integer, nullable=False)
    deactivated_date: Mapped[date] = mapped_column("deactivatedDate", Date, nullable=False)
    deactivated_by: Mapped[str] = mapped_column("deactivatedBy", String(100), nullable=False)
    reason: Mapped[str] = mapped_column("reason", String(50), nullable=False)

    __table_args__ = (Index("ix_deactivated_user_user_id", "userID"),)
