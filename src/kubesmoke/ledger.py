"""Append-only record of check outcomes for one audit run."""

from __future__ import annotations

import threading

from .models import CheckOutcome, CheckStatus, LedgerSummary, RecordedOutcome


class ResultLedger:
    """Accumulates outcomes in insertion order and derives the exit signal.

    Created empty at run start, appended to only by the check runner, and
    closed when the run completes. Appends are serialised with a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[RecordedOutcome] = []
        self._counts: dict[CheckStatus, int] = {status: 0 for status in CheckStatus}
        self._closed = False

    def record(
        self,
        outcome: CheckOutcome,
        group: str,
        check: str = "",
        section: str | None = None,
        invocation: int = 0,
    ) -> None:
        """Append one outcome.

        Args:
            outcome: What the check reported.
            group: Title of the group the check belongs to.
            check: Check name; defaults to the outcome label.
            section: Optional heading within the group.
            invocation: Number of the check evaluation that emitted ``outcome``.

        Raises:
            RuntimeError: If the ledger has been closed.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot record outcomes on a closed ledger")
            self._entries.append(
                RecordedOutcome(
                    group=group,
                    check=check or outcome.label,
                    outcome=outcome,
                    section=section,
                    invocation=invocation,
                ),
            )
            self._counts[outcome.status] += 1

    def close(self) -> None:
        """Make the ledger read-only."""
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failed(self) -> int:
        return self._counts[CheckStatus.FAIL]

    def summary(self) -> LedgerSummary:
        """Counts per status and the full outcome log in insertion order."""
        with self._lock:
            return LedgerSummary(
                passed=self._counts[CheckStatus.PASS],
                failed=self._counts[CheckStatus.FAIL],
                warnings=self._counts[CheckStatus.WARNING],
                outcomes=tuple(self._entries),
            )

    def exit_signal(self) -> int:
        """1 if any outcome failed, else 0. Warnings never affect the signal."""
        return 1 if self.failed > 0 else 0

    def __len__(self) -> int:
        return len(self._entries)
