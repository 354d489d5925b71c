"""Output path layout."""

from pathlib import Path


def abi_output_path(out_dir, data_source: str, abi: str) -> Path:
    return Path(out_dir) / data_source / f"{abi}.ts"


def template_abi_output_path(out_dir, data_source: str, template: str, abi: str) -> Path:
    return Path(out_dir) / data_source / "templates" / template / f"{abi}.ts"


def templates_output_path(out_dir, data_source: str) -> Path:
    return Path(out_dir) / data_source / "templates.ts"


def schema_output_path(out_dir) -> Path:
    return Path(out_dir) / "schema.ts"


def display_path(path, base=None) -> str:
    """Path relative to base (default: cwd) when below it, else absolute."""
    path = Path(path).resolve()
    base = Path(base or Path.cwd()).resolve()
    try:
        return str(path.relative_to(base))
    except ValueError:
        return str(path)
