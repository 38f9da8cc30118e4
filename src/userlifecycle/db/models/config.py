"""Run-time parameters stored in the `config` table."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from userlifecycle.db.models.base import Base


class ConfigParameter(Base):
    """A key/value run-time parameter.

    `value` holds the numeric form (flags as 1.00/0.00, day counts), and
    `string_value` the textual form for string parameters such as the
    test-run distribution list. The column is read as text and parsed by
    the options service so that corrupted values are detected, not coerced.
    """

    __tablename__ = "config"

    param: Mapped[str] = mapped_column("param", String(100), primary_key=True)
    value: Mapped[str | None] = mapped_column("value", String(50), nullable=True)
    string_value: Mapped[str | None] = mapped_column("stringValue", String(1000), nullable=True)
