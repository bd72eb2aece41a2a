"""kubesmoke — post-deployment platform audit for Kubernetes.

Verify that a deployed cluster matches an expected topology of workloads,
custom resources and cross-component configuration, with one
pass/fail/warning verdict.
"""

import logging

from kubesmoke._version import __version__
from kubesmoke.ledger import ResultLedger
from kubesmoke.models import CheckDefinition, CheckGroup, CheckOutcome, CheckStatus
from kubesmoke.orchestrator import Orchestrator

__all__ = [
    "CheckDefinition",
    "CheckGroup",
    "CheckOutcome",
    "CheckStatus",
    "Orchestrator",
    "ResultLedger",
    "__version__",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
