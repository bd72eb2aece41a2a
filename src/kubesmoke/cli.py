"""kubesmoke — post-deployment platform audit.

Verifies that a deployed cluster matches the expected platform topology and
reports one verdict.  Checks cover:

1. Cluster connectivity, nodes and system pods
2. Helm releases and installed CRDs
3. Security posture (secret stores, policies, certificates)
4. Per-application groups (Backstage, ArgoCD, Argo Workflows/Events/Rollouts)
5. Observability stack

Every group always runs; the process exits non-zero only if a check failed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone

from .kubernetes_controller import KubernetesController
from .ledger import ResultLedger
from .models import (
    DEFAULT_API_TIMEOUT_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_THREAD_POOL_WORKERS,
    AuditReport,
    AuditStatus,
    CheckStatus,
    GroupReport,
    OutcomeReport,
    ReportSummary,
)
from .orchestrator import Orchestrator
from .reachability import ReachabilityProbe
from .resource_accessor import ResourceAccessor
from .topology import build_platform_groups

logger = logging.getLogger(__name__)

RULE = "━" * 64


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI usage. Only called from main()."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s : %(name)-13s : %(levelname)s :: %(message)s",
    )


# ---------------------------------------------------------------------------
# Report generation
# ---------------------------------------------------------------------------


def generate_report(ledger: ResultLedger, context: str) -> AuditReport:
    """Build the final audit report from a completed ledger.

    Args:
        ledger: Ledger of the finished run.
        context: Kubeconfig context name or identifier.

    Returns:
        A fully populated ``AuditReport`` with groups in execution order.
    """
    summary = ledger.summary()
    report = AuditReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        context=context,
        status=AuditStatus.FAIL if ledger.exit_signal() else AuditStatus.PASS,
        summary=ReportSummary(
            passed=summary.passed,
            failed=summary.failed,
            warnings=summary.warnings,
            total=summary.total,
        ),
    )

    groups: dict[str, GroupReport] = {}
    for entry in summary.outcomes:
        group = groups.get(entry.group)
        if group is None:
            group = groups[entry.group] = GroupReport(title=entry.group)
            report.groups.append(group)
        group.outcomes.append(
            OutcomeReport(
                status=entry.outcome.status.value,
                label=entry.outcome.label,
                check=entry.check,
                section=entry.section,
                detail=entry.outcome.detail,
            )
        )

    return report


def render_text(report: AuditReport) -> str:
    """Render the report as plain text, grouped by check group then section."""
    lines: list[str] = []
    for group in report.groups:
        lines.extend(["", RULE, f"  {group.title}", RULE])
        section: str | None = None
        for outcome in group.outcomes:
            if outcome.section and outcome.section != section:
                section = outcome.section
                lines.extend(["", f"▶ {section}"])
            marker = CheckStatus(outcome.status).symbol
            detail = f" ({outcome.detail})" if outcome.detail and outcome.status != "PASS" else ""
            lines.append(f"  {marker} {outcome.label}{detail}")

    summary = report.summary
    lines.extend([
        "",
        RULE,
        "  SUMMARY",
        RULE,
        f"  ✓ Passed:   {summary.passed}",
        f"  ✗ Failed:   {summary.failed}",
        f"  ⚠ Warnings: {summary.warnings}",
        "  ─────────────────",
        f"  Total:      {summary.total}",
        "",
        "✓ All critical checks passed!" if report.status == AuditStatus.PASS
        else "✗ Some checks failed. Review output above.",
    ])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of argument strings (defaults to ``sys.argv``).

    Returns:
        Parsed ``argparse.Namespace``.
    """
    parser = argparse.ArgumentParser(
        description="kubesmoke — Verify a deployed platform matches its expected topology",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--context",
        help="Kubeconfig context name to use for cluster connection (default: in-cluster, then current context)",
    )
    parser.add_argument("--insecure", action="store_true", help="Disable TLS verification for the Kubernetes API")
    parser.add_argument(
        "--api-timeout",
        type=int,
        default=DEFAULT_API_TIMEOUT_SECONDS,
        help="Timeout in seconds for each Kubernetes API request",
    )
    parser.add_argument(
        "--probe-timeout",
        type=float,
        default=DEFAULT_PROBE_TIMEOUT_SECONDS,
        help="Timeout in seconds for each ingress reachability probe",
    )
    parser.add_argument(
        "--parallel-groups",
        type=int,
        default=DEFAULT_THREAD_POOL_WORKERS,
        help="Number of check groups evaluated concurrently (report order is unaffected)",
    )
    parser.add_argument("--output", choices=["text", "json"], default="text", help="Report format")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(args)


# ---------------------------------------------------------------------------
# Main execution
# ---------------------------------------------------------------------------


def run_audit(args: argparse.Namespace) -> int:
    """Main execution flow.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Process exit code (0 = no failed checks, 1 = at least one failure or
        initialisation error).
    """
    try:
        k8s_controller = KubernetesController(
            context=args.context,
            insecure=args.insecure,
            request_timeout=args.api_timeout,
        )
        accessor = ResourceAccessor(k8s_controller=k8s_controller)
        probe = ReachabilityProbe(timeout=args.probe_timeout)
    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        return 1

    orchestrator = Orchestrator(
        groups=build_platform_groups(),
        accessor=accessor,
        probe=probe,
        max_workers=args.parallel_groups,
    )
    ledger = orchestrator.run()

    try:
        report = generate_report(ledger=ledger, context=k8s_controller.context_name)
        if args.output == "json":
            print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(render_text(report))
    except Exception as e:
        logger.error(f"Failed to generate report: {e}")
        return 1

    return ledger.exit_signal()


def main() -> None:
    """CLI entry point for kubesmoke."""
    try:
        parsed_args = parse_args()
        _setup_logging(verbose=parsed_args.verbose)
        sys.exit(run_audit(args=parsed_args))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
