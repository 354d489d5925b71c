"""Manifest migrations."""

from .engine import Migration, MigrationEngine, apply_migrations
from .versions import (
    CURRENT_SPEC_VERSION,
    KNOWN_SPEC_VERSIONS,
    MIGRATIONS,
    canonical_event_signature,
    detect_spec_version,
)

__all__ = [
    "Migration",
    "MigrationEngine",
    "apply_migrations",
    "CURRENT_SPEC_VERSION",
    "KNOWN_SPEC_VERSIONS",
    "MIGRATIONS",
    "canonical_event_signature",
    "detect_spec_version",
]
