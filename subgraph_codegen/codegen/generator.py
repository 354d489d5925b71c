"""
Type generation orchestrator.

One run loads (and migrates) the manifest, then generates every unit
independently: each ABI of each data source, each ABI of each template,
the combined templates file of each data source, and the schema. Units
run concurrently on a thread pool; their results are collected in
submission order so the reported errors and outputs never depend on
which unit finished first.

Architecture:
    - manifest/:     manifest tree and loader
    - migrations/:   spec version migrations
    - lib/:          ABI and schema documents
    - mappers/:      documents -> linked IR modules
    - emitter.py:    IR modules -> formatted TypeScript
    - watcher.py:    regeneration on dependency changes
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from subgraph_codegen.codegen.emitter import CodeEmitter
from subgraph_codegen.codegen.gen_logging import get_logger, unit_context
from subgraph_codegen.codegen.mappers import (
    bind_event_handlers,
    map_abi,
    map_schema,
    map_templates,
)
from subgraph_codegen.codegen.utils import (
    abi_output_path,
    display_path,
    schema_output_path,
    template_abi_output_path,
    templates_output_path,
)
from subgraph_codegen.codegen.watcher import DEFAULT_DEBOUNCE, Watcher
from subgraph_codegen.errors import CodegenError
from subgraph_codegen.language import load_schema
from subgraph_codegen.lib.abi import load_abi
from subgraph_codegen.manifest import Manifest, parse_manifest, read_raw_manifest
from subgraph_codegen.migrations import MigrationEngine, apply_migrations

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeneratorOptions:
    manifest: Path
    output_dir: Path = Path("generated")
    skip_migrations: bool = False
    write_migrations: bool = True
    max_workers: Optional[int] = None


@dataclass(frozen=True)
class UnitError:
    """A failure attributed to one generation unit ("Token > ERC20", "schema", ...)."""
    context: str
    error: Exception

    def __str__(self):
        return f"{self.context}: {self.error}"


@dataclass(frozen=True)
class GenerationResult:
    success: bool
    errors: Tuple[UnitError, ...] = ()
    outputs: Tuple[Path, ...] = ()


@dataclass(frozen=True)
class _Unit:
    context: str
    run: Callable[[], Path]


class TypeGenerator:
    """Generates TypeScript types for every ABI, template and the schema of a manifest."""

    def __init__(
        self,
        options: GeneratorOptions,
        emitter: Optional[CodeEmitter] = None,
        engine: Optional[MigrationEngine] = None,
    ):
        self.options = options
        self.emitter = emitter or CodeEmitter()
        self.engine = engine

    @property
    def manifest_path(self) -> Path:
        return Path(self.options.manifest).resolve()

    # -- manifest ------------------------------------------------------------

    def load_manifest(self, write_back: Optional[bool] = None) -> Manifest:
        """Load the manifest, migrating it first unless migrations are skipped."""
        path = self.manifest_path
        if self.options.skip_migrations:
            raw = read_raw_manifest(path)
            # Skipping migrations never admits a version this tool does not know
            (self.engine or MigrationEngine.default()).check_version(raw)
        else:
            if write_back is None:
                write_back = self.options.write_migrations
            raw, _ = apply_migrations(path, write_back=write_back, engine=self.engine)
        return parse_manifest(raw, path)

    # -- units ---------------------------------------------------------------

    def _abi_unit(self, context, abi_ref, mapping, output_path, bind_handlers):
        def run():
            abi = load_abi(abi_ref.name, abi_ref.file)
            module = map_abi(abi)
            if bind_handlers:
                bind_event_handlers(module, mapping.event_handlers, abi_ref.name)
            return self.emitter.emit(module, output_path)
        return _Unit(context, run)

    def _collect_units(self, manifest: Manifest) -> List[_Unit]:
        out = Path(self.options.output_dir)
        units = []

        for ds in manifest.data_sources:
            for abi_ref in ds.mapping.abis:
                units.append(self._abi_unit(
                    f"{ds.name} > {abi_ref.name}",
                    abi_ref,
                    ds.mapping,
                    abi_output_path(out, ds.name, abi_ref.name),
                    abi_ref.name == ds.source.abi,
                ))

        for ds, template in manifest.templates():
            for abi_ref in template.mapping.abis:
                units.append(self._abi_unit(
                    f"{ds.name} > {template.name} > {abi_ref.name}",
                    abi_ref,
                    template.mapping,
                    template_abi_output_path(out, ds.name, template.name, abi_ref.name),
                    abi_ref.name == template.source.abi,
                ))

        for ds in manifest.data_sources:
            if ds.templates:
                units.append(_Unit(
                    f"{ds.name} > templates",
                    _bind(self.emitter.emit, map_templates, ds, templates_output_path(out, ds.name)),
                ))

        units.append(_Unit(
            "schema",
            _bind(self.emitter.emit, map_schema, manifest.schema_file, schema_output_path(out), load_schema),
        ))
        return units

    @staticmethod
    def _run_unit(unit: _Unit):
        logger.debug(f"Generate types for {unit.context}")
        try:
            with unit_context(unit.context):
                return unit.run(), None
        except CodegenError as e:
            return None, UnitError(unit.context, e)

    # -- public API ----------------------------------------------------------

    def generate_types(self) -> GenerationResult:
        """
        Run one generation.

        Manifest and migration failures end the run before any unit is
        attempted. Unit failures are collected; sibling units still run.
        """
        try:
            manifest = self.load_manifest()
        except CodegenError as e:
            error = UnitError("manifest", e)
            logger.error(f"[FAILED] {error}")
            return GenerationResult(success=False, errors=(error,))

        units = self._collect_units(manifest)
        errors = []
        outputs = []

        pool = ThreadPoolExecutor(max_workers=self.options.max_workers)
        try:
            futures = [pool.submit(self._run_unit, unit) for unit in units]
            for future in futures:
                output, error = future.result()
                if error is not None:
                    logger.error(f"[FAILED] {error}")
                    errors.append(error)
                else:
                    outputs.append(output)
        except KeyboardInterrupt:
            # Not-yet-started units are dropped; running ones finish their writes
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        finally:
            pool.shutdown(wait=True)

        result = GenerationResult(
            success=not errors,
            errors=tuple(errors),
            outputs=tuple(outputs),
        )
        if result.success:
            logger.info(f"[GENERATED] Types generated successfully ({len(outputs)} files)")
        else:
            logger.error(f"[FAILED] {len(errors)} of {len(units)} units failed")
        return result

    def get_files_to_watch(self) -> List[Path]:
        """
        Manifest, schema and every ABI path reachable from the manifest.

        The manifest is migrated in memory only. When it cannot be loaded
        the set is just the manifest, so fixing it triggers a new run.
        """
        try:
            manifest = self.load_manifest(write_back=False)
        except CodegenError as e:
            logger.warning(f"[WATCH] Watching the manifest only: {e}")
            return [self.manifest_path]
        return manifest.dependency_files()

    def watch_and_generate_types(self, debounce: float = DEFAULT_DEBOUNCE, observer_factory=None):
        """Generate, then regenerate on every change until interrupted."""
        options = {} if observer_factory is None else {"observer_factory": observer_factory}
        watcher = Watcher(
            on_trigger=self._generate_and_report,
            on_collect_files=self.get_files_to_watch,
            on_error=lambda e: logger.error(f"[WATCH] {e}"),
            debounce=debounce,
            **options,
        )
        logger.info(f"[WATCH] Watching subgraph files: {display_path(self.manifest_path)}")
        watcher.watch()
        return watcher

    def _generate_and_report(self):
        result = self.generate_types()
        if not result.success:
            logger.warning("[WATCH] Generation failed; waiting for changes")
        return result


def _bind(emit, mapper, source, output_path, loader=None):
    def run():
        document = loader(source) if loader else source
        return emit(mapper(document), output_path)
    return run
