"""Drives the declared check groups, top to bottom, into one ledger."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Sequence

from .check_runner import CheckRunner
from .ledger import ResultLedger
from .models import DEFAULT_THREAD_POOL_WORKERS, CheckGroup, OrchestratorState
from .reachability import ReachabilityProbe
from .resource_accessor import ResourceAccessor


class Orchestrator:
    """Runs every check group once and owns the run's :class:`ResultLedger`.

    Groups never short-circuit each other: every group always runs so the
    operator sees the complete picture in one pass. With ``max_workers > 1``
    groups are evaluated concurrently, but outcomes are still recorded in
    group-declaration order.

    Args:
        groups: Check groups in display order.
        accessor: Resource queries for the checks.
        probe: Reachability probe for the checks.
        max_workers: Number of groups evaluated at once.

    Attributes:
        state: ``None`` until :meth:`run` is called (not started), then
            ``RUNNING`` and finally ``COMPLETE``. It never goes back.
    """

    def __init__(
        self,
        groups: Sequence[CheckGroup],
        accessor: ResourceAccessor,
        probe: ReachabilityProbe,
        max_workers: int = DEFAULT_THREAD_POOL_WORKERS,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.groups = list(groups)
        self.max_workers = max(1, max_workers)
        self.ledger = ResultLedger()
        self.runner = CheckRunner(accessor=accessor, probe=probe, ledger=self.ledger)
        self.state: OrchestratorState | None = None
        self._start_lock = threading.Lock()

    def run(self) -> ResultLedger:
        """Execute all groups and return the closed ledger.

        Raises:
            RuntimeError: If this orchestrator has already been run.
        """
        with self._start_lock:
            if self.state is not None:
                raise RuntimeError(f"Audit already {self.state.value}; an orchestrator runs exactly once")
            self.state = OrchestratorState.RUNNING

        if self.max_workers > 1 and len(self.groups) > 1:
            self._run_parallel()
        else:
            for group in self.groups:
                self.runner.run_and_record(group)

        self.ledger.close()
        self.state = OrchestratorState.COMPLETE
        summary = self.ledger.summary()
        self.logger.info(
            f"Audit complete: {summary.passed} passed, {summary.failed} failed, {summary.warnings} warnings "
            f"({self.runner.invocations} checks)"
        )
        return self.ledger

    def _run_parallel(self) -> None:
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self.runner.run, group) for group in self.groups]
            # Reassemble by declaration index, not completion order
            for group, future in zip(self.groups, futures):
                self.runner.record(group, future.result())
