"""Deactivation engine: flips users inactive and writes their audit rows.

Every deactivation runs in one transaction covering both the flag update
and the audit insert, so a user is never deactivated without an audit row
and no audit row exists without its deactivation.

Two modes:
- `deactivate`: one user per transaction. Used for expired users so one
  failure does not block the rest of the batch.
- `deactivate_bulk`: one UPDATE for all users, then audit INSERTs of at
  most BULK_INSERT_BATCH_SIZE rows each, all in a single transaction. Any
  failure rolls the whole operation back.

Usage:
    service = DeactivationService(session)
    service.deactivate(user_id=42, reason=DeactivationReason.EXPIRED, today=today)
    result = service.deactivate_bulk(candidates, DeactivationReason.INACTIVE, today)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import insert, update
from sqlalchemy.exc import SQLAlchemyError

from userlifecycle.db.models.accounts import UserAccount
from userlifecycle.db.models.audit import DeactivationRecord
from userlifecycle.db.models.base import ACTIVE, INACTIVE, DeactivationReason

if TYPE_CHECKING:
    from datetime import date

    from sqlalchemy.orm import Session

    from userlifecycle.services.candidates import DeactivationCandidate

logger = logging.getLogger(__name__)

# Actor recorded on audit rows written by this job
SYSTEM_ACTOR = "DEACTIVATED_CRONJOB"

# Max audit rows per INSERT statement
BULK_INSERT_BATCH_SIZE = 1000


class DeactivationStep(str, Enum):
    """Step of a deactivation transaction, reported on failure."""

    BEGIN = "begin"
    UPDATE = "update"
    INSERT = "insert"
    COMMIT = "commit"


class DeactivationError(Exception):
    """Raised when a deactivation transaction fails and is rolled back.

    Attributes:
        step: The step that failed.
        user_ids: Users involved in the failed transaction.
        detail: Underlying error text.
    """

    def __init__(self, step: DeactivationStep, user_ids: Sequence[int], detail: str) -> None:
        self.step = step
        self.user_ids = list(user_ids)
        self.detail = detail
        super().__init__(
            f"Deactivation failed at {step.value} for {self._describe_users()}: {detail}"
        )

    def _describe_users(self) -> str:
        if len(self.user_ids) == 1:
            return f"user {self.user_ids[0]}"
        preview = ", ".join(str(user_id) for user_id in self.user_ids[:10])
        suffix = ", ..." if len(self.user_ids) > 10 else ""
        return f"{len(self.user_ids)} users [{preview}{suffix}]"


class _RowCountMismatch(Exception):
    """Internal: an UPDATE matched a different number of rows than expected."""


@dataclass(frozen=True, slots=True)
class BulkDeactivationResult:
    """Outcome of a committed bulk deactivation.

    Attributes:
        updated: Users whose active flag was flipped.
        audit_rows: Audit rows inserted.
        insert_batches: INSERT statements issued.
    """

    updated: int
    audit_rows: int
    insert_batches: int


class _StepTracker:
    """Remembers which step a transaction is in."""

    def __init__(self) -> None:
        self.step = DeactivationStep.BEGIN


def batched(items: Sequence[int], size: int) -> Iterator[Sequence[int]]:
    """Yield consecutive slices of at most `size` items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class DeactivationService:
    """Applies deactivations with their audit records.

    Attributes:
        session: SQLAlchemy session; must not have a transaction open.
        actor: Value written to `deactivatedBy`.
        batch_size: Max audit rows per INSERT in bulk mode.
    """

    def __init__(
        self,
        session: Session,
        actor: str = SYSTEM_ACTOR,
        batch_size: int = BULK_INSERT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            msg = "batch_size must be at least 1"
            raise ValueError(msg)
        self.session = session
        self.actor = actor
        self.batch_size = batch_size

    @contextmanager
    def _transaction(self, user_ids: Sequence[int]) -> Iterator[_StepTracker]:
        """Run the body in one transaction; commit on success, roll back on any error.

        Errors are re-raised as DeactivationError naming the failed step.
        """
        tracker = _StepTracker()
        try:
            with self.session.begin():
                tracker.step = DeactivationStep.UPDATE
                yield tracker
                tracker.step = DeactivationStep.COMMIT
        except _RowCountMismatch as e:
            raise DeactivationError(tracker.step, user_ids, str(e)) from e
        except SQLAlchemyError as e:
            raise DeactivationError(tracker.step, user_ids, str(e)) from e

    def _audit_rows(
        self,
        user_ids: Sequence[int],
        reason: DeactivationReason,
        today: date,
    ) -> list[dict[str, object]]:
        return [
            {
                "user_id": user_id,
                "deactivated_date": today,
                "deactivated_by": self.actor,
                "reason": reason.value,
            }
            for user_id in user_ids
        ]

    def deactivate(self, user_id: int, reason: DeactivationReason, today: date) -> None:
        """Deactivate one user and record why.

        Args:
            user_id: User to deactivate; must currently be active.
            reason: Reason code for the audit row.
            today: Date recorded on the audit row.

        Raises:
            DeactivationError: If any step fails; nothing is persisted.
        """
        with self._transaction([user_id]) as tx:
            result = self.session.execute(
                update(UserAccount)
                .where(UserAccount.user_id == user_id, UserAccount.active == ACTIVE)
                .values(active=INACTIVE)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                msg = f"expected 1 active user row, matched {result.rowcount}"
                raise _RowCountMismatch(msg)

            tx.step = DeactivationStep.INSERT
            self.session.execute(
                insert(DeactivationRecord).values(self._audit_rows([user_id], reason, today))
            )

        logger.debug("User deactivated: user_id=%s, reason=%s", user_id, reason.value)

    def deactivate_bulk(
        self,
        candidates: Sequence[DeactivationCandidate],
        reason: DeactivationReason,
        today: date,
    ) -> BulkDeactivationResult:
        """Deactivate many users in a single transaction.

        Candidates listed more than once are deactivated (and audited) once.

        Args:
            candidates: Users to deactivate; all must currently be active.
            reason: Reason code for the audit rows.
            today: Date recorded on the audit rows.

        Returns:
            Counts of the committed operation.

        Raises:
            DeactivationError: If any step fails; nothing is persisted.
        """
        user_ids = list(dict.fromkeys(candidate.user_id for candidate in candidates))
        if len(user_ids) != len(candidates):
            logger.warning(
                "Duplicate candidates dropped from bulk deactivation: %d",
                len(candidates) - len(user_ids),
            )
        if not user_ids:
            return BulkDeactivationResult(updated=0, audit_rows=0, insert_batches=0)

        insert_batches = 0
        with self._transaction(user_ids) as tx:
            result = self.session.execute(
                update(UserAccount)
                .where(UserAccount.user_id.in_(user_ids), UserAccount.active == ACTIVE)
                .values(active=INACTIVE)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != len(user_ids):
                msg = f"expected {len(user_ids)} active user rows, matched {result.rowcount}"
                raise _RowCountMismatch(msg)

            tx.step = DeactivationStep.INSERT
            for batch in batched(user_ids, self.batch_size):
                self.session.execute(
                    insert(DeactivationRecord).values(self._audit_rows(batch, reason, today))
                )
                insert_batches += 1
                logger.debug(
                    "Audit batch inserted: batch=%d, rows=%d", insert_batches, len(batch)
                )

        logger.info(
            "Bulk deactivation committed: users=%d, reason=%s, insert_batches=%d",
            len(user_ids),
            reason.value,
            insert_batches,
        )
        return BulkDeactivationResult(
            updated=len(user_ids),
            audit_rows=len(user_ids),
            insert_batches=insert_batches,
        )
