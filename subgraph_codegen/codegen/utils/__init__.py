"""Utility functions for the generator."""

from .formatters import format_typescript
from .paths import (
    abi_output_path,
    display_path,
    schema_output_path,
    template_abi_output_path,
    templates_output_path,
)

__all__ = [
    "format_typescript",
    "abi_output_path",
    "display_path",
    "schema_output_path",
    "template_abi_output_path",
    "templates_output_path",
]
