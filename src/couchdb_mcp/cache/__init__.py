"""Process-lifetime caches for the CouchDB MCP server.

Core Components:
- capability_cache: CouchDB version detection and tier gating

Design Principles:
- Caches are plain objects injected where needed, never module singletons
- Failed lookups are not cached
"""

from .capability_cache import (
    MINIMUM_MAJOR_VERSION,
    CapabilityCache,
    CapabilityTier,
    parse_major_version,
)

__all__ = [
    "MINIMUM_MAJOR_VERSION",
    "CapabilityCache",
    "CapabilityTier",
    "parse_major_version",
]
