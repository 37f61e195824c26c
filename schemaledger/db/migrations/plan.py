"""Run plans and results for migration operations.

Pure helpers that reconcile the loaded units against the ledger:
which units are pending, which of them a failed run actually
committed, and which one broke.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .base import BaseMigration


class ListStatus(str, Enum):
    """Which migrations a listing shows."""

    PENDING = "pending"
    EXECUTED = "executed"


@dataclass
class RunPlan:
    """Units, applied names, and the pending names derived from them.

    pending_names keeps the order of all_units, never ledger order.
    """

    all_units: list[BaseMigration]
    applied_names: set[str]
    pending_names: list[str]

    @property
    def pending(self) -> list[BaseMigration]:
        pending = set(self.pending_names)
        return [u for u in self.all_units if u.name in pending]


@dataclass
class FailureReport:
    """Diagnosis of a failed apply.

    Attributes:
        committed_before_failure: Pending names the ledger confirms, in pending order
        first_broken_name: First pending name the ledger does not confirm
        failed_name: Unit whose step raised
        error: Error message from the failed step
        reverted: Names undone by auto-revert, in execution order
        revert_error: Error that stopped auto-revert, if any
        broken_recorded: The ledger holds a record for first_broken_name even
            though its step raised; the record is left for manual review
    """

    committed_before_failure: list[str]
    first_broken_name: str
    failed_name: Optional[str] = None
    error: Optional[str] = None
    reverted: list[str] = field(default_factory=list)
    revert_error: Optional[str] = None
    broken_recorded: bool = False


@dataclass
class ApplyResult:
    """Result of an apply operation."""

    success: bool
    applied: list[str]
    failure: Optional[FailureReport] = None
    dry_run: bool = False


def build_plan(units: Sequence[BaseMigration], applied_names: Iterable[str]) -> RunPlan:
    """Compute the run plan for a set of units and the ledger's applied names."""
    applied = set(applied_names)
    return RunPlan(
        all_units=list(units),
        applied_names=applied,
        pending_names=[u.name for u in units if u.name not in applied],
    )


def committed_subset(pending_names: Sequence[str], applied_names: Iterable[str]) -> list[str]:
    """Pending names the ledger now records as applied, in pending order."""
    applied = set(applied_names)
    return [name for name in pending_names if name in applied]


def find_first_broken(pending_names: Sequence[str], committed: Sequence[str]) -> Optional[str]:
    """First pending name that did not commit.

    Uses ordered set difference, so a gap left by a failed ledger write
    is reported rather than the name at index len(committed).
    """
    if not pending_names:
        return None
    if not committed:
        return pending_names[0]

    done = set(committed)
    for name in pending_names:
        if name not in done:
            return name
    return None


def revert_selection(applied_names: Sequence[str], times: Optional[int] = None) -> list[str]:
    """Names to revert, newest first.

    Args:
        applied_names: Applied names, oldest first
        times: How many to take; None takes all. Clamped to what is applied.
    """
    newest_first = list(reversed(applied_names))
    if times is None:
        return newest_first
    return newest_first[:times]
