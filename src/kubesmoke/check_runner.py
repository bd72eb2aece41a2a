"""Executes check groups and records their outcomes."""

from __future__ import annotations

import logging
import threading

from .kubernetes_controller import KubernetesControllerException
from .ledger import ResultLedger
from .models import CheckDefinition, CheckGroup, CheckOutcome, CheckStatus
from .reachability import ReachabilityProbe
from .resource_accessor import ResourceAccessor

GroupResults = list[tuple[int, CheckDefinition, list[CheckOutcome]]]


class CheckRunner:
    """Runs the checks of a group in order and records what they report.

    Every invocation yields at least one outcome. An evaluation that raises is
    converted into one outcome with the definition's ``on_error`` status, and
    never stops the remaining checks. Invocations are numbered from 1 and the
    number is recorded with every outcome the invocation emits, so the ledger
    holds exactly ``invocations`` distinct numbers.

    Args:
        accessor: Resource queries handed to each check.
        probe: Reachability probe handed to each check.
        ledger: Destination for recorded outcomes.
    """

    def __init__(self, accessor: ResourceAccessor, probe: ReachabilityProbe, ledger: ResultLedger) -> None:
        self.logger = logging.getLogger(__name__)
        self.accessor = accessor
        self.probe = probe
        self.ledger = ledger
        self.invocations = 0
        self._invocations_lock = threading.Lock()

    def evaluate(self, check: CheckDefinition) -> list[CheckOutcome]:
        """Evaluate one check, isolating its failures."""
        _, outcomes = self._invoke(check)
        return outcomes

    def _invoke(self, check: CheckDefinition) -> tuple[int, list[CheckOutcome]]:
        with self._invocations_lock:
            self.invocations += 1
            invocation = self.invocations

        try:
            result = check.evaluate(self.accessor, self.probe)
        except KubernetesControllerException as e:
            self.logger.warning(f"Check '{check.name}' could not be evaluated: {e}")
            return invocation, [CheckOutcome(check.on_error, check.name, str(e))]
        except Exception as e:
            self.logger.error(f"Check '{check.name}' raised unexpectedly: {e}", exc_info=True)
            return invocation, [CheckOutcome(check.on_error, check.name, f"{type(e).__name__}: {e}")]

        if isinstance(result, CheckOutcome):
            return invocation, [result]
        outcomes = list(result or [])
        if not outcomes:
            return invocation, [CheckOutcome(CheckStatus.WARNING, check.name, "check produced no result")]
        return invocation, outcomes

    def run(self, group: CheckGroup) -> GroupResults:
        """Evaluate every check of ``group`` sequentially, without recording.

        Returns:
            ``(invocation, definition, outcomes)`` triples in declaration order.
        """
        self.logger.info(f"Running check group '{group.title}' ({len(group)} checks)")
        results: GroupResults = []
        for check in group.checks:
            invocation, outcomes = self._invoke(check)
            results.append((invocation, check, outcomes))
        return results

    def record(self, group: CheckGroup, results: GroupResults) -> list[CheckOutcome]:
        """Append a group's results to the ledger in order."""
        recorded: list[CheckOutcome] = []
        for invocation, check, outcomes in results:
            for outcome in outcomes:
                self.ledger.record(
                    outcome, group=group.title, check=check.name, section=check.section, invocation=invocation,
                )
                recorded.append(outcome)
        return recorded

    def run_and_record(self, group: CheckGroup) -> list[CheckOutcome]:
        return self.record(group, self.run(group))
