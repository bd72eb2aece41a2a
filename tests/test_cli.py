"""Unit tests for the CLI argument parsing and report helpers in kubesmoke.cli."""

from __future__ import annotations

import argparse
import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from kubesmoke.cli import _setup_logging, generate_report, main, parse_args, render_text, run_audit
from kubesmoke.kubernetes_controller import KubernetesControllerException
from kubesmoke.ledger import ResultLedger
from kubesmoke.models import (
    DEFAULT_API_TIMEOUT_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    AuditStatus,
    CheckOutcome,
)


def _make_ledger(*entries: tuple[str, CheckOutcome, str | None]) -> ResultLedger:
    ledger = ResultLedger()
    for group, outcome, section in entries:
        ledger.record(outcome, group=group, section=section)
    ledger.close()
    return ledger


def _make_args(**overrides) -> argparse.Namespace:
    args = parse_args([])
    for key, value in overrides.items():
        setattr(args, key, value)
    return args


# ---------------------------------------------------------------------------
# Argument parsing tests
# ---------------------------------------------------------------------------


class TestParseArgs:
    """Tests for CLI argument parsing via ``parse_args``."""

    def test_parse_args_defaults(self) -> None:
        """Verify default values for every optional argument."""
        args = parse_args([])

        assert args.context is None
        assert args.insecure is False
        assert args.api_timeout == DEFAULT_API_TIMEOUT_SECONDS
        assert args.probe_timeout == DEFAULT_PROBE_TIMEOUT_SECONDS
        assert args.parallel_groups == 1
        assert args.output == "text"
        assert args.verbose is False

    def test_parse_args_explicit_values(self) -> None:
        args = parse_args(
            [
                "--context",
                "prod-eks",
                "--insecure",
                "--api-timeout",
                "20",
                "--probe-timeout",
                "2.5",
                "--parallel-groups",
                "4",
                "--output",
                "json",
            ]
        )

        assert args.context == "prod-eks"
        assert args.insecure is True
        assert args.api_timeout == 20
        assert args.probe_timeout == 2.5
        assert args.parallel_groups == 4
        assert args.output == "json"

    def test_parse_args_invalid_output(self) -> None:
        """Verify an unknown --output value raises SystemExit."""
        with pytest.raises(SystemExit):
            parse_args(["--output", "yaml"])


class TestSetupLogging:
    """Tests for ``_setup_logging``."""

    def test_setup_logging(self) -> None:
        """Verify basicConfig is called with DEBUG level when verbose=True."""
        with patch("kubesmoke.cli.logging.basicConfig") as mock_basic:
            _setup_logging(verbose=True)

        mock_basic.assert_called_once()
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG


# ---------------------------------------------------------------------------
# Report generation
# ---------------------------------------------------------------------------


class TestGenerateReport:
    """Tests for ``generate_report`` and ``render_text``."""

    def test_groups_keep_execution_order(self) -> None:
        ledger = _make_ledger(
            ("EKS CLUSTER HEALTH", CheckOutcome.passed("CoreDNS: 3 running"), "System Pods"),
            ("ARGOCD", CheckOutcome.failed("argocd-server: 2/3 ready"), "Deployment Status"),
            ("ARGOCD", CheckOutcome.warning("ArgoCD: not reachable (DNS/network)", "ConnectTimeout"), "Ingress"),
        )

        report = generate_report(ledger=ledger, context="prod-eks")

        assert report.context == "prod-eks"
        assert report.status == AuditStatus.FAIL
        assert [group.title for group in report.groups] == ["EKS CLUSTER HEALTH", "ARGOCD"]
        assert [outcome.status for outcome in report.groups[1].outcomes] == ["FAIL", "WARNING"]
        assert (report.summary.passed, report.summary.failed, report.summary.warnings, report.summary.total) == (
            1, 1, 1, 3,
        )

    def test_warnings_only_pass(self) -> None:
        ledger = _make_ledger(("OBSERVABILITY", CheckOutcome.warning("Metrics API not available"), None))

        assert generate_report(ledger=ledger, context="dev").status == AuditStatus.PASS

    def test_report_is_json_serialisable(self) -> None:
        ledger = _make_ledger(("G", CheckOutcome.passed("ok"), None))

        data = json.loads(json.dumps(generate_report(ledger=ledger, context="dev").to_dict()))

        assert data["status"] == "PASS"
        assert data["groups"][0]["outcomes"][0]["label"] == "ok"

    def test_render_text(self) -> None:
        """Verify markers, section headings, failure details and the verdict line."""
        ledger = _make_ledger(
            ("ARGOCD", CheckOutcome.passed("ArgoCD ingress: argocd.example.com", "detail hidden"), "Ingress"),
            ("ARGOCD", CheckOutcome.failed("argocd-server deployment", "argocd-server not found"), "Deployment"),
        )

        text = render_text(generate_report(ledger=ledger, context="dev"))

        assert "  ARGOCD" in text
        assert "▶ Ingress" in text
        assert "✓ ArgoCD ingress: argocd.example.com\n" in text
        assert "detail hidden" not in text
        assert "✗ argocd-server deployment (argocd-server not found)" in text
        assert "✗ Failed:   1" in text
        assert text.endswith("✗ Some checks failed. Review output above.")


# ---------------------------------------------------------------------------
# Main execution
# ---------------------------------------------------------------------------


class TestRunAudit:
    """Tests for ``run_audit``."""

    @patch("kubesmoke.cli.build_platform_groups", return_value=[])
    @patch("kubesmoke.cli.KubernetesController")
    def test_run_audit_clean_cluster(
        self,
        mock_controller_cls: MagicMock,
        mock_groups: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Verify a run without failures exits 0 and prints JSON when asked."""
        mock_controller_cls.return_value.context_name = "prod-eks"

        exit_code = run_audit(_make_args(output="json", context="prod-eks", api_timeout=20))

        assert exit_code == 0
        mock_controller_cls.assert_called_once_with(context="prod-eks", insecure=False, request_timeout=20)
        output = json.loads(capsys.readouterr().out)
        assert output["context"] == "prod-eks"
        assert output["status"] == "PASS"

    @patch("kubesmoke.cli.Orchestrator")
    @patch("kubesmoke.cli.KubernetesController")
    def test_run_audit_with_failures(
        self,
        mock_controller_cls: MagicMock,
        mock_orchestrator_cls: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_controller_cls.return_value.context_name = "prod-eks"
        mock_orchestrator_cls.return_value.run.return_value = _make_ledger(
            ("BACKSTAGE", CheckOutcome.failed("Backstage deployment not found"), "Deployment Status"),
        )

        exit_code = run_audit(_make_args(parallel_groups=3))

        assert exit_code == 1
        assert mock_orchestrator_cls.call_args.kwargs["max_workers"] == 3
        assert "✗ Backstage deployment not found" in capsys.readouterr().out

    @patch(
        "kubesmoke.cli.KubernetesController",
        side_effect=KubernetesControllerException("Failed to initialize Kubernetes client"),
    )
    def test_run_audit_init_failure(self, mock_controller_cls: MagicMock) -> None:
        """Verify a client initialisation error exits 1 without running checks."""
        with patch("kubesmoke.cli.Orchestrator") as mock_orchestrator_cls:
            assert run_audit(_make_args()) == 1
        mock_orchestrator_cls.assert_not_called()

    @patch("kubesmoke.cli.run_audit", return_value=1)
    @patch("kubesmoke.cli._setup_logging")
    def test_main_exits_with_audit_code(self, mock_setup_logging: MagicMock, mock_run_audit: MagicMock) -> None:
        with patch("sys.argv", ["kubesmoke", "--verbose"]), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        mock_setup_logging.assert_called_once_with(verbose=True)
