"""Cached CouchDB capability tier.

The connected server's version decides which tools are advertised and callable.
It is detected with a single ``GET /`` and cached on the CapabilityCache instance
for the lifetime of the process.

- A successful detection is never repeated (until ``reset()``).
- A failed detection is not cached; the next lookup retries.
- Two concurrent first lookups may both detect. Both write the same tier, so the
  last write winning is harmless and no lock is needed on a single event loop.

Example:
    >>> cache = CapabilityCache(client.info)
    >>> await cache.meets_minimum()          # gating: raises if detection fails
    True
    >>> await cache.meets_minimum_or_false() # advertising: never raises
    True
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import total_ordering
from typing import Any

from ..exceptions import CapabilityDetectionError, CouchMCPError

logger = logging.getLogger(__name__)

# Mango indexes and _find are only exposed from CouchDB 3.x onwards
MINIMUM_MAJOR_VERSION = 3

_LEADING_INTEGER = re.compile(r"^\s*(\d+)")


def parse_major_version(version: str) -> int | None:
    """Leading integer of the first dot-separated segment, or None if there is none.

    >>> parse_major_version("3.3.3")
    3
    >>> parse_major_version("2.3.1-alpha")
    2
    >>> parse_major_version("v3.1") is None
    True
    """
    match = _LEADING_INTEGER.match(version.split(".", 1)[0])
    return int(match.group(1)) if match else None


@total_ordering
@dataclass(frozen=True)
class CapabilityTier:
    """Server classification derived from its version string.

    Ordered by major version; a version with no parseable major sorts below
    every parseable one and never meets a minimum.
    """

    version: str
    major: int | None

    @classmethod
    def from_version(cls, version: str) -> "CapabilityTier":
        return cls(version=version, major=parse_major_version(version))

    def meets(self, minimum_major: int) -> bool:
        return self.major is not None and self.major >= minimum_major

    def _sort_key(self) -> tuple[int, int]:
        return (0, 0) if self.major is None else (1, self.major)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CapabilityTier):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CapabilityTier):
            return NotImplemented
        return self._sort_key() == other._sort_key()

    def __hash__(self) -> int:
        return hash(self._sort_key())


class CapabilityCache:
    """Get-or-detect cache for the connected server's CapabilityTier.

    Args:
        fetch_info: Coroutine function returning the CouchDB welcome document
            (``CouchDBClient.info``)
        minimum_major_version: Major version required for gated tools
    """

    def __init__(
        self,
        fetch_info: Callable[[], Awaitable[dict[str, Any]]],
        minimum_major_version: int = MINIMUM_MAJOR_VERSION,
    ) -> None:
        self._fetch_info = fetch_info
        self.minimum_major_version = minimum_major_version
        self._tier: CapabilityTier | None = None

    @property
    def cached_tier(self) -> CapabilityTier | None:
        """The detected tier, or None if detection has not succeeded yet."""
        return self._tier

    async def get_or_detect(self) -> CapabilityTier:
        """Return the cached tier, detecting it on first use.

        Raises:
            CapabilityDetectionError: If the server could not be queried or its
                answer carries no version string. Nothing is cached.
        """
        if self._tier is not None:
            return self._tier

        try:
            info = await self._fetch_info()
        except CouchMCPError as e:
            raise CapabilityDetectionError(
                message=f"Unable to determine CouchDB version: {e.message}",
                original_exception=e,
            ) from e

        version = info.get("version") if isinstance(info, dict) else None
        if not isinstance(version, str):
            raise CapabilityDetectionError(
                message="Unable to determine CouchDB version: server info has no version",
                details={"info": info},
            )

        tier = CapabilityTier.from_version(version)
        if tier.major is None:
            logger.warning(f"Unrecognized CouchDB version '{version}', gated tools disabled")
        else:
            logger.info(f"Detected CouchDB version {version} (major {tier.major})")

        self._tier = tier
        return tier

    async def meets_minimum(self) -> bool:
        """Whether the server supports gated tools.

        Raises:
            CapabilityDetectionError: If detection fails
        """
        tier = await self.get_or_detect()
        return tier.meets(self.minimum_major_version)

    async def meets_minimum_or_false(self) -> bool:
        """Advertise-time variant of meets_minimum: detection failure means False."""
        try:
            return await self.meets_minimum()
        except CapabilityDetectionError as e:
            logger.warning(f"Capability detection failed, advertising base tools only: {e.message}")
            return False

    def reset(self) -> None:
        """Forget the detected tier so the next lookup detects again."""
        self._tier = None
