"""
Concrete manifest migrations.

Each transform receives a private deep copy of the raw manifest and
returns the upgraded document. Transforms only touch what their source
version needs, so they never fire on an already-current manifest.
"""

from subgraph_codegen.lib.abi import canonical_event_signature
from subgraph_codegen.migrations.engine import Migration

OLDEST_SPEC_VERSION = "0.0.1"
CURRENT_SPEC_VERSION = "0.0.3"
KNOWN_SPEC_VERSIONS = ("0.0.1", "0.0.2", "0.0.3")


def detect_spec_version(raw: dict) -> str:
    """An absent specVersion means the oldest manifest format."""
    version = raw.get("specVersion")
    if version is None:
        return OLDEST_SPEC_VERSION
    return str(version)


def _iter_mappings(raw):
    for data_source in raw.get("dataSources") or []:
        if not isinstance(data_source, dict):
            continue
        if isinstance(data_source.get("mapping"), dict):
            yield data_source["mapping"]
        for template in data_source.get("templates") or []:
            if isinstance(template, dict) and isinstance(template.get("mapping"), dict):
                yield template["mapping"]


# ------------------------------------------------------------------------------
# 0.0.1 -> 0.0.2

def spec_version_0_0_1_to_0_0_2(raw: dict) -> dict:
    """Make the spec version explicit and expand a bare schema path."""
    upgraded = {"specVersion": "0.0.2"}
    for key, value in raw.items():
        if key == "specVersion":
            continue
        if key == "schema" and isinstance(value, str):
            value = {"file": value}
        upgraded[key] = value
    return upgraded


# ------------------------------------------------------------------------------
# 0.0.2 -> 0.0.3

def mapping_api_version_0_0_2_to_0_0_3(raw: dict) -> dict:
    """Bump mapping apiVersion 0.0.1 and canonicalize handler signatures."""
    raw["specVersion"] = "0.0.3"
    for mapping in _iter_mappings(raw):
        if str(mapping.get("apiVersion")) == "0.0.1":
            mapping["apiVersion"] = "0.0.2"
        for handler in mapping.get("eventHandlers") or []:
            if isinstance(handler, dict) and isinstance(handler.get("event"), str):
                handler["event"] = canonical_event_signature(handler["event"])
    return raw


MIGRATIONS = (
    Migration(
        name="spec_version_0_0_1_to_0_0_2",
        from_version="0.0.1",
        to_version="0.0.2",
        transform=spec_version_0_0_1_to_0_0_2,
    ),
    Migration(
        name="mapping_api_version_0_0_2_to_0_0_3",
        from_version="0.0.2",
        to_version="0.0.3",
        transform=mapping_api_version_0_0_2_to_0_0_3,
    ),
)
