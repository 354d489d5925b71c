"""
Manifest-wide validation.

These checks run after the raw document has been converted into the
manifest tree, so every structural key is known to be present. They
cover invariants that span several entries.
"""

import re

from subgraph_codegen.errors import ValidationError

# Names are used verbatim as output directory segments
SAFE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")

TEMPLATES_MODULE = "templates"


def verify_safe_names(manifest):
    """Data source and template names must be usable as directory names."""
    for data_source in manifest.data_sources:
        _ensure_safe(data_source.name, "Data source")
        for template in data_source.templates:
            _ensure_safe(template.name, f"Template of data source '{data_source.name}'")
        for abi in data_source.mapping.abis:
            _ensure_safe(abi.name, f"ABI of data source '{data_source.name}'")
    for data_source, template in manifest.templates():
        for abi in template.mapping.abis:
            _ensure_safe(abi.name, f"ABI of template '{data_source.name} > {template.name}'")


def _ensure_safe(name, kind):
    if not SAFE_NAME.match(name):
        raise ValidationError(
            f"{kind} name '{name}' is not filesystem-safe "
            f"(allowed: letters, digits, '_' and '-', not starting with a digit or '-')."
        )


def verify_unique_names(manifest):
    """Data source names are unique; template names are unique manifest-wide."""
    def ensure_unique(names, kind):
        seen = set()
        for name in names:
            if name in seen:
                raise ValidationError(f"{kind} with name '{name}' already exists.")
            seen.add(name)

    ensure_unique([ds.name for ds in manifest.data_sources], "Data source")
    ensure_unique([t.name for _, t in manifest.templates()], "Data source template")

    for data_source in manifest.data_sources:
        ensure_unique(
            [abi.name for abi in data_source.mapping.abis],
            f"ABI in data source '{data_source.name}'",
        )
    for data_source, template in manifest.templates():
        ensure_unique(
            [abi.name for abi in template.mapping.abis],
            f"ABI in template '{data_source.name} > {template.name}'",
        )


def verify_source_abis(manifest):
    """source.abi must name one of the mapping's ABIs."""
    for data_source in manifest.data_sources:
        _ensure_source_abi(data_source, data_source.name)
    for data_source, template in manifest.templates():
        _ensure_source_abi(template, f"{data_source.name} > {template.name}")


def _ensure_source_abi(entry, label):
    if entry.mapping.find_abi(entry.source.abi) is None:
        known = ", ".join(abi.name for abi in entry.mapping.abis)
        raise ValidationError(
            f"'{label}': source ABI '{entry.source.abi}' is not declared in "
            f"mapping.abis (declared: {known})."
        )


def verify_output_paths(manifest):
    """The combined templates module must not collide with an ABI module."""
    for data_source in manifest.data_sources:
        if not data_source.templates:
            continue
        if data_source.mapping.find_abi(TEMPLATES_MODULE) is not None:
            raise ValidationError(
                f"Data source '{data_source.name}' declares templates and an ABI named "
                f"'{TEMPLATES_MODULE}'; both would be written to "
                f"'{data_source.name}/{TEMPLATES_MODULE}.ts'."
            )


def verify_manifest(manifest):
    """
    Run every manifest-wide check.
    Order matters: names -> uniqueness -> references -> outputs
    """
    verify_safe_names(manifest)
    verify_unique_names(manifest)
    verify_source_abis(manifest)
    verify_output_paths(manifest)
