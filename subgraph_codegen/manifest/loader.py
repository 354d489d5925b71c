"""
Manifest loading.

The raw YAML document is read with PyYAML, then converted key by key into
the frozen manifest tree. Missing required keys and unknown keys are
rejected here, at load time, with the full key path in the message.
"""

from pathlib import Path

import yaml

from subgraph_codegen.errors import ParseError, ValidationError
from subgraph_codegen.manifest.model import (
    AbiRef,
    DataSource,
    DataSourceTemplate,
    EventHandler,
    Manifest,
    Mapping,
    Source,
)
from subgraph_codegen.validation import verify_manifest


MANIFEST_KEYS = {"specVersion", "description", "repository", "schema", "dataSources"}
SCHEMA_KEYS = {"file"}
DATA_SOURCE_KEYS = {"kind", "name", "network", "source", "mapping", "templates"}
TEMPLATE_KEYS = {"kind", "name", "network", "source", "mapping"}
SOURCE_KEYS = {"address", "abi"}
TEMPLATE_SOURCE_KEYS = {"abi"}
MAPPING_KEYS = {"kind", "apiVersion", "language", "file", "entities", "abis", "eventHandlers"}
ABI_KEYS = {"name", "file"}
EVENT_HANDLER_KEYS = {"event", "topic0", "handler"}


# ------------------------------------------------------------------------------
# Raw document I/O

def read_raw_manifest(path) -> dict:
    """Read a manifest file into plain Python data."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Cannot read manifest: {e.strerror or e}", path=path)

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        problem = getattr(e, "problem", None) or str(e)
        if mark is not None:
            raise ParseError(problem, path=path, line=mark.line + 1, col=mark.column + 1)
        raise ParseError(problem, path=path)

    if not isinstance(raw, dict):
        raise ValidationError(f"{path}: manifest must be a mapping at the top level.")
    return raw


def write_raw_manifest(path, raw: dict) -> None:
    """Serialize a raw manifest back to its file, keeping key order."""
    text = yaml.safe_dump(raw, sort_keys=False, default_flow_style=False, allow_unicode=True)
    Path(path).write_text(text, encoding="utf-8")


# ------------------------------------------------------------------------------
# Raw -> tree conversion

class _Node:
    """A raw mapping together with its key path, for error messages."""

    def __init__(self, data, where, base_dir: Path):
        self.data = data
        self.where = where
        self.base_dir = base_dir

    def _at(self, key):
        return f"{self.where}.{key}" if self.where else key

    def check_keys(self, allowed, required):
        unknown = [k for k in self.data if k not in allowed]
        if unknown:
            raise ValidationError(
                f"Unknown key '{self._at(unknown[0])}' (allowed: {', '.join(sorted(allowed))})."
            )
        for key in required:
            if key not in self.data or self.data[key] is None:
                raise ValidationError(f"Missing required key '{self._at(key)}'.")

    def string(self, key, optional=False):
        value = self.data.get(key)
        if value is None and optional:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            # YAML reads unquoted versions such as 1.0 as numbers
            value = str(value)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"'{self._at(key)}' must be a non-empty string.")
        return value

    def path(self, key):
        return (self.base_dir / self.string(key)).resolve()

    def child(self, key):
        value = self.data.get(key)
        if not isinstance(value, dict):
            raise ValidationError(f"'{self._at(key)}' must be a mapping.")
        return _Node(value, self._at(key), self.base_dir)

    def children(self, key, optional=False, non_empty=False):
        value = self.data.get(key)
        if value is None and optional:
            return []
        if not isinstance(value, list):
            raise ValidationError(f"'{self._at(key)}' must be a list.")
        if non_empty and not value:
            raise ValidationError(f"'{self._at(key)}' must not be empty.")
        nodes = []
        for i, item in enumerate(value):
            where = f"{self._at(key)}[{i}]"
            if not isinstance(item, dict):
                raise ValidationError(f"'{where}' must be a mapping.")
            nodes.append(_Node(item, where, self.base_dir))
        return nodes

    def strings(self, key):
        value = self.data.get(key)
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"'{self._at(key)}' must be a list of strings.")
        return tuple(value)


def _build_mapping(node: _Node) -> Mapping:
    node.check_keys(MAPPING_KEYS, ["kind", "apiVersion", "language", "file", "entities", "abis"])

    abis = []
    for abi_node in node.children("abis", non_empty=True):
        abi_node.check_keys(ABI_KEYS, ["name", "file"])
        abis.append(AbiRef(name=abi_node.string("name"), file=abi_node.path("file")))

    handlers = []
    for handler_node in node.children("eventHandlers", optional=True):
        handler_node.check_keys(EVENT_HANDLER_KEYS, ["event", "handler"])
        handlers.append(EventHandler(
            event=handler_node.string("event"),
            handler=handler_node.string("handler"),
            topic0=handler_node.string("topic0", optional=True),
        ))

    return Mapping(
        kind=node.string("kind"),
        api_version=node.string("apiVersion"),
        language=node.string("language"),
        file=node.path("file"),
        entities=node.strings("entities"),
        abis=tuple(abis),
        event_handlers=tuple(handlers),
    )


def _build_template(node: _Node) -> DataSourceTemplate:
    node.check_keys(TEMPLATE_KEYS, ["kind", "name", "source", "mapping"])
    source = node.child("source")
    source.check_keys(TEMPLATE_SOURCE_KEYS, ["abi"])
    return DataSourceTemplate(
        kind=node.string("kind"),
        name=node.string("name"),
        network=node.string("network", optional=True),
        source=Source(abi=source.string("abi")),
        mapping=_build_mapping(node.child("mapping")),
    )


def _build_data_source(node: _Node) -> DataSource:
    node.check_keys(DATA_SOURCE_KEYS, ["kind", "name", "source", "mapping"])
    source = node.child("source")
    source.check_keys(SOURCE_KEYS, ["abi"])
    return DataSource(
        kind=node.string("kind"),
        name=node.string("name"),
        network=node.string("network", optional=True),
        source=Source(abi=source.string("abi"), address=source.string("address", optional=True)),
        mapping=_build_mapping(node.child("mapping")),
        templates=tuple(_build_template(t) for t in node.children("templates", optional=True)),
    )


def parse_manifest(raw: dict, path) -> Manifest:
    """Convert a raw manifest document into a validated manifest tree."""
    path = Path(path).resolve()
    root = _Node(raw, "", path.parent)
    root.check_keys(MANIFEST_KEYS, ["specVersion", "schema", "dataSources"])

    schema = root.child("schema")
    schema.check_keys(SCHEMA_KEYS, ["file"])

    manifest = Manifest(
        path=path,
        spec_version=root.string("specVersion"),
        schema_file=schema.path("file"),
        data_sources=tuple(
            _build_data_source(ds) for ds in root.children("dataSources", non_empty=True)
        ),
        description=root.string("description", optional=True),
        repository=root.string("repository", optional=True),
    )
    verify_manifest(manifest)
    return manifest


def load_manifest(path) -> Manifest:
    """Parse & validate a manifest from a file path."""
    return parse_manifest(read_raw_manifest(path), path)
