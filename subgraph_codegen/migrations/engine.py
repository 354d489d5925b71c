"""
Versioned manifest migration engine.

The engine is a small state machine over manifest shape: detect the
version, apply the migration registered for that version, detect again,
and stop when the manifest is current. A bounded step count turns a
cyclic migration table into a MigrationError instead of a hang.
"""

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from subgraph_codegen.codegen.gen_logging import get_logger
from subgraph_codegen.errors import MigrationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class Migration:
    """Upgrades a raw manifest from one spec version to the next."""
    name: str
    from_version: str
    to_version: str
    transform: Callable[[dict], dict]


class MigrationEngine:
    """Applies an ordered sequence of version-scoped migrations."""

    def __init__(
        self,
        migrations: Sequence[Migration],
        current_version: str,
        known_versions: Sequence[str],
        detect_version: Callable[[dict], str],
        max_steps: Optional[int] = None,
    ):
        self.migrations = tuple(migrations)
        self.current_version = current_version
        self.known_versions = frozenset(known_versions) | {current_version}
        self.detect_version = detect_version
        self.max_steps = len(self.migrations) if max_steps is None else max_steps

    @classmethod
    def default(cls) -> "MigrationEngine":
        from subgraph_codegen.migrations.versions import (
            MIGRATIONS,
            CURRENT_SPEC_VERSION,
            KNOWN_SPEC_VERSIONS,
            detect_spec_version,
        )
        return cls(MIGRATIONS, CURRENT_SPEC_VERSION, KNOWN_SPEC_VERSIONS, detect_spec_version)

    def _find(self, version: str) -> Optional[Migration]:
        for migration in self.migrations:
            if migration.from_version == version:
                return migration
        return None

    def check_version(self, raw: dict) -> str:
        """Return the manifest's version; unknown versions are a MigrationError."""
        version = self.detect_version(raw)
        if version not in self.known_versions:
            raise MigrationError(
                f"Unsupported specVersion '{version}' "
                f"(this tool understands up to '{self.current_version}')."
            )
        return version

    def migrate(self, raw: dict) -> Tuple[dict, List[Migration]]:
        """
        Bring a raw manifest up to the current version.

        Returns the (possibly unchanged) manifest and the migrations that
        were applied, in order. The input document is never mutated.
        """
        applied = []
        version = self.check_version(raw)

        while version != self.current_version:
            migration = self._find(version)
            if migration is None:
                raise MigrationError(
                    f"No migration upgrades specVersion '{version}' "
                    f"towards '{self.current_version}'."
                )
            if len(applied) >= self.max_steps:
                trail = " -> ".join([m.from_version for m in applied] + [version])
                raise MigrationError(
                    f"Manifest did not reach specVersion '{self.current_version}' "
                    f"within {self.max_steps} migration steps ({trail})."
                )

            raw = migration.transform(copy.deepcopy(raw))
            applied.append(migration)
            version = self.detect_version(raw)
            logger.info(
                f"[MIGRATE] {migration.name}: {migration.from_version} -> {version}"
            )

        return raw, applied


def apply_migrations(
    manifest_file,
    write_back: bool = True,
    engine: Optional[MigrationEngine] = None,
) -> Tuple[dict, List[Migration]]:
    """
    Migrate the manifest file in place.

    When any migration fired and write_back is set, the upgraded document
    replaces the file contents before returning, so every later stage
    reads a current manifest. With write_back unset the caller gets the
    upgraded document in memory only.
    """
    from subgraph_codegen.manifest.loader import read_raw_manifest, write_raw_manifest

    engine = engine or MigrationEngine.default()
    manifest_file = Path(manifest_file)

    raw, applied = engine.migrate(read_raw_manifest(manifest_file))
    if applied and write_back:
        try:
            write_raw_manifest(manifest_file, raw)
        except OSError as e:
            raise MigrationError(
                f"Cannot write migrated manifest '{manifest_file}': {e.strerror or e}"
            ) from e
        logger.info(f"[MIGRATE] Wrote migrated manifest: {manifest_file}")
    elif applied:
        logger.info(f"[MIGRATE] Migrated in memory only (write-back disabled): {manifest_file}")
    else:
        logger.debug(f"[MIGRATE] Manifest is current: {manifest_file}")
    return raw, applied
