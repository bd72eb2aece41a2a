"""HTTPS reachability probe for ingress hostnames."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

import requests

from .models import DEFAULT_PROBE_TIMEOUT_SECONDS, ProbeResult

DEADLINE_EXCEEDED = "DeadlineExceeded"


class ReachabilityProbe:
    """Issue one HTTPS GET per hostname within a wall-clock deadline and classify the outcome.

    Timeouts, DNS, TLS and connection failures are reported as unreachable
    results rather than raised: external reachability is outside the audited
    platform's control. The response body is never read.

    The request runs on a daemon worker thread so that name resolution, slow
    responses and redirect chains all count against the same ``timeout``. A
    request still in flight when the deadline passes is abandoned and the
    host reported unreachable.

    Each request uses its own session from ``session_factory``, so concurrent
    callers never share a ``requests.Session``.

    Args:
        timeout: Total seconds allowed for one request, redirects included.
        session_factory: Callable returning a fresh ``requests.Session``.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.timeout = timeout
        self.session_factory = session_factory

    def probe(self, hostname: str) -> ProbeResult:
        """Probe ``https://<hostname>``.

        Args:
            hostname: Bare host name, e.g. ``argocd.example.com``.

        Returns:
            A reachable ``ProbeResult`` with the HTTP status code, or an
            unreachable one with the failure reason.

        Raises:
            ValueError: If ``hostname`` is empty.
        """
        if not hostname:
            raise ValueError("Hostname must not be empty")

        url = f"https://{hostname}"
        outcome: list[ProbeResult | BaseException] = []
        worker = threading.Thread(
            target=self._fetch, args=(hostname, url, outcome), name=f"reachability-{hostname}", daemon=True,
        )
        worker.start()
        worker.join(self.timeout)

        if not outcome:
            self.logger.debug(f"Probe of {url} exceeded its {self.timeout}s deadline")
            return ProbeResult(hostname=hostname, reachable=False, reason=DEADLINE_EXCEEDED)
        if isinstance(outcome[0], BaseException):
            raise outcome[0]
        return outcome[0]

    def _fetch(self, hostname: str, url: str, outcome: list[ProbeResult | BaseException]) -> None:
        session = self.session_factory()
        try:
            try:
                response = session.get(url, timeout=(self.timeout, self.timeout), stream=True)
            except requests.RequestException as e:
                self.logger.debug(f"Probe of {url} failed: {e}")
                outcome.append(ProbeResult(hostname=hostname, reachable=False, reason=type(e).__name__))
                return

            try:
                outcome.append(ProbeResult(hostname=hostname, reachable=True, status_code=response.status_code))
            finally:
                response.close()
        except Exception as e:
            # Handed back to the calling thread, which re-raises it
            outcome.append(e)
        finally:
            session.close()
