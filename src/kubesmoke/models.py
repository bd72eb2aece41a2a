"""Data models for kubesmoke resource queries, check outcomes and reports."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from .reachability import ReachabilityProbe
    from .resource_accessor import ResourceAccessor

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_API_TIMEOUT_SECONDS: int = 10  # Per-request timeout for every Kubernetes API call.

DEFAULT_PROBE_TIMEOUT_SECONDS: int = 5  # Connect/read timeout for ingress reachability probes.

DEFAULT_THREAD_POOL_WORKERS: int = 1  # Check groups evaluated concurrently; 1 keeps the run sequential.

ALL_NAMESPACES: str = "*"  # Explicit marker for namespace-scoped queries across every namespace.

IRSA_ROLE_ANNOTATION: str = "eks.amazonaws.com/role-arn"


class CheckStatus(str, Enum):
    """Severity of a single check outcome."""

    PASS = "PASS"  # noqa: S105
    FAIL = "FAIL"
    WARNING = "WARNING"

    @property
    def symbol(self) -> str:
        """Console marker for this status."""
        return {CheckStatus.PASS: "✓", CheckStatus.FAIL: "✗", CheckStatus.WARNING: "⚠"}[self]


class AuditStatus(str, Enum):
    """Overall verdict of an audit run."""

    PASS = "PASS"  # noqa: S105
    FAIL = "FAIL"

    @property
    def exit_code(self) -> int:
        """Return the process exit code for this verdict.

        Returns:
            0 for PASS, 1 for FAIL.
        """
        return 0 if self is AuditStatus.PASS else 1


class OrchestratorState(str, Enum):
    """Lifecycle of a single audit run."""

    RUNNING = "running"
    COMPLETE = "complete"


class FieldState(str, Enum):
    """Result classification of a nested-field read."""

    FOUND = "found"
    WRONG_TYPE = "wrong_type"
    ABSENT = "absent"


# ---------------------------------------------------------------------------
# Resource addressing
# ---------------------------------------------------------------------------


def parse_label_selector(selector: str) -> list[tuple[str, str, str]]:
    """Parse an equality-based label selector into ``(key, operator, value)`` terms.

    Terms are comma-separated and ANDed. Supported operators are ``=``, ``==``
    and ``!=``; ``==`` is normalised to ``=``.

    Args:
        selector: Selector string such as ``"app=web,tier!=cache"``. Empty means "match everything".

    Returns:
        List of parsed terms, empty for an empty selector.

    Raises:
        ValueError: If a term has no operator, an empty key, or is empty.
    """
    terms: list[tuple[str, str, str]] = []
    if not selector or not selector.strip():
        return terms

    for raw_term in selector.split(","):
        term = raw_term.strip()
        if not term:
            raise ValueError(f"Empty term in label selector '{selector}'")
        for operator in ("!=", "==", "="):
            if operator in term:
                key, value = term.split(operator, 1)
                key, value = key.strip(), value.strip()
                if not key:
                    raise ValueError(f"Label selector term '{term}' has an empty key")
                terms.append((key, "=" if operator == "==" else operator, value))
                break
        else:
            raise ValueError(f"Label selector term '{term}' is not equality-based")
    return terms


@dataclass(frozen=True)
class ResourceKind:
    """API coordinates of a resource type (group, version, plural resource name)."""

    group: str
    version: str
    resource: str
    namespaced: bool = True

    @property
    def group_version(self) -> str:
        """``v1`` for the core group, ``group/version`` otherwise."""
        return f"{self.group}/{self.version}" if self.group else self.version

    def with_version(self, version: str) -> ResourceKind:
        return replace(self, version=version)

    def at(
        self,
        namespace: str | None = None,
        name: str | None = None,
        label_selector: str = "",
    ) -> ResourceCoordinate:
        """Build a :class:`ResourceCoordinate` for this kind."""
        return ResourceCoordinate(kind=self, namespace=namespace, name=name, label_selector=label_selector)

    def __str__(self) -> str:
        return f"{self.resource}.{self.group_version}"


@dataclass(frozen=True)
class ResourceCoordinate:
    """Identifies a query target: a kind plus optional namespace, name and label selector.

    Namespace-scoped kinds must carry either a concrete namespace or
    :data:`ALL_NAMESPACES`; cluster-scoped kinds carry none. The empty string
    is never a valid namespace.
    """

    kind: ResourceKind
    namespace: str | None = None
    name: str | None = None
    label_selector: str = ""

    def __post_init__(self) -> None:
        if self.namespace == "":
            raise ValueError(f"Empty namespace for {self.kind}; use a namespace name or ALL_NAMESPACES")
        if self.kind.namespaced and self.namespace is None:
            raise ValueError(f"{self.kind} is namespace-scoped; a namespace or ALL_NAMESPACES is required")
        if not self.kind.namespaced and self.namespace is not None:
            raise ValueError(f"{self.kind} is cluster-scoped and cannot be queried in namespace '{self.namespace}'")
        if self.name is not None and self.namespace == ALL_NAMESPACES:
            raise ValueError(f"Cannot get {self.kind} '{self.name}' across all namespaces")
        parse_label_selector(self.label_selector)

    @property
    def all_namespaces(self) -> bool:
        return self.namespace == ALL_NAMESPACES

    def with_version(self, version: str) -> ResourceCoordinate:
        """Return the same coordinate addressed at a different API version."""
        return replace(self, kind=self.kind.with_version(version))

    def __str__(self) -> str:
        location = "" if self.namespace is None else f"{self.namespace}/"
        target = self.name or (f"[{self.label_selector}]" if self.label_selector else "*")
        return f"{self.kind} {location}{target}"


# ---------------------------------------------------------------------------
# Nested-field reads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldLookup:
    """Tri-state outcome of reading a nested field from a resource payload."""

    state: FieldState
    value: Any = None

    @property
    def found(self) -> bool:
        return self.state is FieldState.FOUND


def _split_path(path: str | Sequence[str | int]) -> list[str | int]:
    if isinstance(path, str):
        return [int(part) if part.isdigit() else part for part in path.split(".") if part]
    return list(path)


def read_nested_field(
    payload: Any,
    path: str | Sequence[str | int],
    expected_type: type | tuple[type, ...] | None = None,
) -> FieldLookup:
    """Walk ``payload`` along ``path`` and classify what was found.

    Args:
        payload: Nested dict/list structure (a resource in API JSON form).
        path: Dotted path (``"status.conditions.0.type"``) or explicit segments.
            Integer segments index into lists.
        expected_type: When given, a value of any other type yields ``WRONG_TYPE``.

    Returns:
        ``FieldLookup`` with ``FOUND`` and the value, ``WRONG_TYPE`` with the
        offending value, or ``ABSENT``.
    """
    current = payload
    for segment in _split_path(path):
        if isinstance(segment, int):
            if not isinstance(current, list):
                return FieldLookup(FieldState.WRONG_TYPE if current is not None else FieldState.ABSENT, current)
            if segment >= len(current):
                return FieldLookup(FieldState.ABSENT)
            current = current[segment]
            continue
        if not isinstance(current, dict):
            return FieldLookup(FieldState.WRONG_TYPE if current is not None else FieldState.ABSENT, current)
        if segment not in current:
            return FieldLookup(FieldState.ABSENT)
        current = current[segment]

    if current is None:
        return FieldLookup(FieldState.ABSENT)
    # bool is an int subclass; reject it explicitly when ints are requested
    if expected_type is not None and (
        not isinstance(current, expected_type) or (isinstance(current, bool) and expected_type is int)
    ):
        return FieldLookup(FieldState.WRONG_TYPE, current)
    return FieldLookup(FieldState.FOUND, current)


@dataclass
class ResourceRecord:
    """A single resource in API JSON form (camelCase keys), typed or custom.

    Typed objects are serialised with the client's own serializer before being
    wrapped, so every accessor here reads the same structure regardless of
    whether the record came from a typed or a custom-object endpoint.
    """

    kind: ResourceKind
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.raw.get("metadata", {}).get("name", "")

    @property
    def namespace(self) -> str | None:
        return self.raw.get("metadata", {}).get("namespace")

    @property
    def labels(self) -> dict[str, str]:
        return self.raw.get("metadata", {}).get("labels") or {}

    @property
    def annotations(self) -> dict[str, str]:
        return self.raw.get("metadata", {}).get("annotations") or {}

    def get_field(
        self, path: str | Sequence[str | int], expected_type: type | tuple[type, ...] | None = None,
    ) -> FieldLookup:
        """Read a nested field; see :func:`read_nested_field`."""
        return read_nested_field(self.raw, path, expected_type)

    def string_field(self, path: str | Sequence[str | int]) -> str | None:
        """Return the string at ``path``, or ``None`` when absent or not a string."""
        lookup = self.get_field(path, str)
        return lookup.value if lookup.found else None

    @property
    def replicas(self) -> int | None:
        lookup = self.get_field("spec.replicas", int)
        return lookup.value if lookup.found else None

    @property
    def ready_replicas(self) -> int:
        lookup = self.get_field("status.readyReplicas", int)
        return lookup.value if lookup.found else 0

    @property
    def phase(self) -> str | None:
        return self.string_field("status.phase")

    @property
    def conditions(self) -> list[dict[str, Any]]:
        lookup = self.get_field("status.conditions", list)
        return [c for c in lookup.value if isinstance(c, dict)] if lookup.found else []

    def condition_status(self, condition_type: str) -> str | None:
        """Return the ``status`` of the first condition of ``condition_type``, if any."""
        condition = next((c for c in self.conditions if c.get("type") == condition_type), None)
        return condition.get("status") if condition else None

    def secret_value(self, key: str) -> FieldLookup:
        """Decode a Secret ``data`` entry.

        Returns:
            ``FOUND`` with the decoded text, ``WRONG_TYPE`` if the entry is not
            valid base64/UTF-8, or ``ABSENT`` if the key does not exist.
        """
        lookup = self.get_field(["data", key], str)
        if not lookup.found:
            return lookup
        try:
            return FieldLookup(FieldState.FOUND, base64.b64decode(lookup.value, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError):
            return FieldLookup(FieldState.WRONG_TYPE, lookup.value)


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a reachability probe: reachable with a status code, or unreachable with a reason."""

    hostname: str
    reachable: bool
    status_code: int | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Checks and outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CheckOutcome:
    """Immutable result of one check evaluation."""

    status: CheckStatus
    label: str
    detail: str | None = None

    @classmethod
    def passed(cls, label: str, detail: str | None = None) -> CheckOutcome:
        return cls(CheckStatus.PASS, label, detail)

    @classmethod
    def failed(cls, label: str, detail: str | None = None) -> CheckOutcome:
        return cls(CheckStatus.FAIL, label, detail)

    @classmethod
    def warning(cls, label: str, detail: str | None = None) -> CheckOutcome:
        return cls(CheckStatus.WARNING, label, detail)


CheckResult: TypeAlias = "CheckOutcome | Sequence[CheckOutcome]"

CheckFunction: TypeAlias = "Callable[[ResourceAccessor, ReachabilityProbe], CheckResult]"


@dataclass(frozen=True)
class CheckDefinition:
    """A named, read-only unit of work producing one or more outcomes.

    Attributes:
        name: Label used when the evaluation itself fails.
        evaluate: Function of ``(accessor, probe)`` returning outcome(s).
        on_error: Status recorded when ``evaluate`` raises; ``WARNING`` marks an advisory check.
        section: Optional sub-heading inside the group for report rendering.
    """

    name: str
    evaluate: CheckFunction
    on_error: CheckStatus = CheckStatus.FAIL
    section: str | None = None


@dataclass(frozen=True)
class CheckGroup:
    """Ordered sequence of check definitions under a display title."""

    title: str
    checks: tuple[CheckDefinition, ...] = ()

    def __len__(self) -> int:
        return len(self.checks)


@dataclass(frozen=True)
class RecordedOutcome:
    """A ledger entry: an outcome tagged with where it came from.

    ``invocation`` numbers the check evaluation that produced the outcome;
    outcomes emitted by one evaluation share it.
    """

    group: str
    check: str
    outcome: CheckOutcome
    section: str | None = None
    invocation: int = 0


@dataclass(frozen=True)
class LedgerSummary:
    """Counts per status plus the full ordered outcome log."""

    passed: int
    failed: int
    warnings: int
    outcomes: tuple[RecordedOutcome, ...] = ()

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.warnings

    @property
    def invocations(self) -> int:
        """Number of distinct check evaluations that contributed outcomes."""
        return len({entry.invocation for entry in self.outcomes})


# ---------------------------------------------------------------------------
# Cross-resource consistency
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecretComparison:
    """Equality of one data field across two secrets.

    ``None`` for either value means the secret or the field was unavailable,
    which is insufficient information to conclude a mismatch.
    """

    key: str
    first: str | None
    second: str | None

    @property
    def conclusive(self) -> bool:
        return self.first is not None and self.second is not None

    @property
    def matches(self) -> bool:
        return self.conclusive and self.first == self.second

    @property
    def status(self) -> CheckStatus:
        if not self.conclusive:
            return CheckStatus.WARNING
        return CheckStatus.PASS if self.matches else CheckStatus.FAIL


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass
class OutcomeReport:
    """Report entry for a single outcome."""

    status: str
    label: str
    check: str
    section: str | None = None
    detail: str | None = None


@dataclass
class GroupReport:
    """Outcomes of one check group, in execution order."""

    title: str
    outcomes: list[OutcomeReport] = field(default_factory=list)


@dataclass
class ReportSummary:
    """Aggregated counts for the audit report."""

    passed: int = 0
    failed: int = 0
    warnings: int = 0
    total: int = 0


@dataclass
class AuditReport:
    """Top-level audit report produced by ``generate_report``.

    Attributes:
        timestamp: ISO 8601 UTC timestamp of report generation.
        context: Kubeconfig context name of the audited cluster.
        status: Overall verdict (PASS / FAIL).
        summary: Counts of passed, failed and warning outcomes.
        groups: Per-group outcomes in declaration order.
    """

    timestamp: str
    context: str
    status: AuditStatus
    summary: ReportSummary = field(default_factory=ReportSummary)
    groups: list[GroupReport] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Serialise the report to a plain dict suitable for JSON output."""
        return asdict(self)
