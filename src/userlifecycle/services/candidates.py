"""Deactivation candidates shared by the detectors, the engine and the report."""

from __future__ import annotations

from dataclasses import dataclass

from userlifecycle.db.models.base import DeactivationReason

# Rendered in place of a missing first/last name
MISSING_NAME_PLACEHOLDER = "NULL"


@dataclass(frozen=True, slots=True)
class DeactivationCandidate:
    """A user selected for deactivation and why.

    Attributes:
        user_id: The user's primary key.
        first_name: First name, or the placeholder if missing.
        last_name: Last name, or the placeholder if missing.
        reason: Why the user is due for deactivation.
    """

    user_id: int
    first_name: str
    last_name: str
    reason: DeactivationReason

    @classmethod
    def from_row(
        cls,
        user_id: int,
        first_name: str | None,
        last_name: str | None,
        reason: DeactivationReason,
    ) -> DeactivationCandidate:
        """Build a candidate from a query row, filling in missing names."""
        return cls(
            user_id=user_id,
            first_name=first_name if first_name is not None else MISSING_NAME_PLACEHOLDER,
            last_name=last_name if last_name is not None else MISSING_NAME_PLACEHOLDER,
            reason=reason,
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class DetectionError(Exception):
    """Raised when a detector query fails. Aborts the run."""

    def __init__(self, detector: str, message: str) -> None:
        self.detector = detector
        self.message = message
        super().__init__(f"{detector}: {message}")
