"""
Validation module for subgraph manifests.

Structural checks (required and unknown keys) happen while the raw
document is converted in manifest/loader.py; the functions here check
invariants spanning several entries.
"""

from subgraph_codegen.validation.manifest_validators import (
    SAFE_NAME,
    verify_safe_names,
    verify_unique_names,
    verify_source_abis,
    verify_output_paths,
    verify_manifest,
)

__all__ = [
    "SAFE_NAME",
    "verify_safe_names",
    "verify_unique_names",
    "verify_source_abis",
    "verify_output_paths",
    "verify_manifest",
]
