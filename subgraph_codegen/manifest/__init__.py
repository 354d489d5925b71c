"""Subgraph manifest tree and loader."""

from .model import (
    AbiRef,
    DataSource,
    DataSourceTemplate,
    EventHandler,
    Manifest,
    Mapping,
    Source,
)
from .loader import (
    load_manifest,
    parse_manifest,
    read_raw_manifest,
    write_raw_manifest,
)

__all__ = [
    "AbiRef",
    "DataSource",
    "DataSourceTemplate",
    "EventHandler",
    "Manifest",
    "Mapping",
    "Source",
    "load_manifest",
    "parse_manifest",
    "read_raw_manifest",
    "write_raw_manifest",
]
