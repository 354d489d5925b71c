from datetime import date
from pathlib import Path

import click
from rich.console import Console

from subgraph_codegen.codegen.gen_logging import configure_gen_logging
from subgraph_codegen.codegen.generator import GeneratorOptions, TypeGenerator
from subgraph_codegen.codegen.watcher import DEFAULT_DEBOUNCE
from subgraph_codegen.errors import CodegenError
from subgraph_codegen.language import load_schema
from subgraph_codegen.lib.abi import load_abi
from subgraph_codegen.manifest import parse_manifest, read_raw_manifest
from subgraph_codegen.migrations import MigrationEngine, apply_migrations

console = Console()


def _stamp() -> str:
    return f"[{date.today().strftime('%Y-%m-%d')}]"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log every file read and written.")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors.")
@click.pass_context
def cli(context, verbose, quiet):
    context.ensure_object(dict)
    configure_gen_logging(verbose=verbose, quiet=quiet)


@cli.command("codegen", help="Generate TypeScript types for contract ABIs and the subgraph schema.")
@click.pass_context
@click.argument("manifest_path", type=click.Path(dir_okay=False))
@click.option(
    "--output-dir", "-o", "out_dir",
    default="generated",
    envvar="SUBGRAPH_CODEGEN_OUTPUT_DIR",
    show_default=True,
    help="Output directory for generated types.",
)
@click.option("--watch", "-w", is_flag=True, help="Regenerate types when subgraph files change.")
@click.option("--skip-migrations", is_flag=True, help="Do not migrate the manifest (unknown spec versions are still rejected).")
@click.option(
    "--no-write-migrations", is_flag=True,
    help="Migrate the manifest in memory without writing it back.",
)
@click.option(
    "--debounce",
    type=float,
    default=DEFAULT_DEBOUNCE,
    envvar="SUBGRAPH_CODEGEN_WATCH_DEBOUNCE",
    show_default=True,
    help="Seconds to wait for further changes before regenerating (with --watch).",
)
@click.option("--workers", type=int, default=None, help="Number of generation threads.")
def codegen(context, manifest_path, out_dir, watch, skip_migrations, no_write_migrations, debounce, workers):
    options = GeneratorOptions(
        manifest=Path(manifest_path),
        output_dir=Path(out_dir),
        skip_migrations=skip_migrations,
        write_migrations=not no_write_migrations,
        max_workers=workers,
    )
    generator = TypeGenerator(options)

    if watch:
        console.print(f"{_stamp()} Watching subgraph files (Ctrl+C to stop)", style="blue")
        generator.watch_and_generate_types(debounce=debounce)
        context.exit(0)

    result = generator.generate_types()
    if result.success:
        console.print(
            f"{_stamp()} Types generated successfully: {Path(out_dir).resolve()}",
            style="green",
        )
        context.exit(0)

    console.print(f"{_stamp()} Type generation failed with error(s):", style="red")
    for error in result.errors:
        console.print(f"  {error}", style="red", markup=False, highlight=False)
    context.exit(1)


@cli.command("migrate", help="Migrate the manifest to the current specVersion.")
@click.pass_context
@click.argument("manifest_path", type=click.Path(dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Report the migrations without writing the manifest.")
def migrate(context, manifest_path, dry_run):
    try:
        _, applied = apply_migrations(manifest_path, write_back=not dry_run)
    except CodegenError as e:
        console.print(f"{_stamp()} Migration failed with error(s): {e}", style="red", markup=False)
        context.exit(1)

    if not applied:
        console.print(f"{_stamp()} Manifest is up to date.", style="green")
    for migration in applied:
        verb = "Would apply" if dry_run else "Applied"
        console.print(
            f"{_stamp()} {verb} {migration.name} ({migration.from_version} -> {migration.to_version})",
            style="green",
        )
    context.exit(0)


@cli.command("validate", help="Load and validate the manifest, its schema and ABIs.")
@click.pass_context
@click.argument("manifest_path", type=click.Path(dir_okay=False))
def validate(context, manifest_path):
    try:
        raw, _ = MigrationEngine.default().migrate(read_raw_manifest(manifest_path))
        manifest = parse_manifest(raw, manifest_path)
        load_schema(manifest.schema_file)
        for data_source in manifest.data_sources:
            for abi in data_source.mapping.abis:
                load_abi(abi.name, abi.file)
        for _, template in manifest.templates():
            for abi in template.mapping.abis:
                load_abi(abi.name, abi.file)
    except CodegenError as e:
        console.print(f"{_stamp()} Validation failed with error(s): {e}", style="red", markup=False)
        context.exit(1)
    else:
        console.print(f"{_stamp()} Manifest validation success!", style="green")
        context.exit(0)


def main():
    cli(prog_name="subgraph-codegen")
