"""API-version fallback for custom-resource lookups.

Custom-resource APIs evolve (``v1beta1`` → ``v1``) and a cluster may serve
either during a migration window. :class:`VersionResolver` tries the caller's
candidate versions in order and returns the first answer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from .kubernetes_controller import KubernetesControllerException
from .models import ResourceCoordinate, ResourceRecord
from .resource_accessor import ResourceAccessor

T = TypeVar("T")


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """A successful lookup and the API version that served it."""

    version: str
    value: T


class VersionResolver:
    """Resolve ``get``/``list`` calls across a prioritised list of API versions.

    The first version that succeeds wins and later versions are never tried.
    Any :class:`KubernetesControllerException` (including "kind not found")
    moves on to the next version; when all fail, the error from the *last*
    attempted version is raised.
    """

    def __init__(self, accessor: ResourceAccessor) -> None:
        self.logger = logging.getLogger(__name__)
        self.accessor = accessor

    def get(self, coordinate: ResourceCoordinate, versions: Sequence[str]) -> Resolution[ResourceRecord]:
        """Read a named resource using the first API version that answers."""
        return self._resolve(self.accessor.get, coordinate, versions)

    def list(self, coordinate: ResourceCoordinate, versions: Sequence[str]) -> Resolution[list[ResourceRecord]]:
        """List resources using the first API version that answers."""
        return self._resolve(self.accessor.list, coordinate, versions)

    def _resolve(
        self,
        lookup: Callable[[ResourceCoordinate], T],
        coordinate: ResourceCoordinate,
        versions: Sequence[str],
    ) -> Resolution[T]:
        if not versions:
            raise ValueError(f"No candidate API versions given for {coordinate}")

        last_error: KubernetesControllerException | None = None
        for version in versions:
            candidate = coordinate.with_version(version)
            try:
                return Resolution(version=version, value=lookup(candidate))
            except KubernetesControllerException as e:
                self.logger.debug(f"Lookup of {candidate} failed, trying next version: {e}")
                last_error = e

        raise last_error
