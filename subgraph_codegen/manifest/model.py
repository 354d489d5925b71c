"""Parsed, validated and immutable manifest tree."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class AbiRef:
    """A named contract ABI file referenced by a mapping."""
    name: str
    file: Path


@dataclass(frozen=True)
class EventHandler:
    """Binds an event signature to a handler function."""
    event: str
    handler: str
    topic0: Optional[str] = None


@dataclass(frozen=True)
class Mapping:
    kind: str
    api_version: str
    language: str
    file: Path
    entities: Tuple[str, ...]
    abis: Tuple[AbiRef, ...]
    event_handlers: Tuple[EventHandler, ...] = ()

    def find_abi(self, name: str) -> Optional[AbiRef]:
        for abi in self.abis:
            if abi.name == name:
                return abi
        return None


@dataclass(frozen=True)
class Source:
    """Contract binding. Templates never carry an address."""
    abi: str
    address: Optional[str] = None


@dataclass(frozen=True)
class DataSourceTemplate:
    kind: str
    name: str
    source: Source
    mapping: Mapping
    network: Optional[str] = None


@dataclass(frozen=True)
class DataSource:
    kind: str
    name: str
    source: Source
    mapping: Mapping
    network: Optional[str] = None
    templates: Tuple[DataSourceTemplate, ...] = ()


@dataclass(frozen=True)
class Manifest:
    """
    Top-level subgraph manifest.

    All file references are absolute, resolved against the directory of
    the manifest file itself.
    """
    path: Path
    spec_version: str
    schema_file: Path
    data_sources: Tuple[DataSource, ...]
    description: Optional[str] = None
    repository: Optional[str] = None

    @property
    def source_dir(self) -> Path:
        return self.path.parent

    def templates(self) -> Iterator[Tuple[DataSource, DataSourceTemplate]]:
        for data_source in self.data_sources:
            for template in data_source.templates:
                yield data_source, template

    def abi_files(self) -> List[Path]:
        """Every ABI path: data sources first, then templates, de-duplicated."""
        files = []
        for data_source in self.data_sources:
            files.extend(abi.file for abi in data_source.mapping.abis)
        for _, template in self.templates():
            files.extend(abi.file for abi in template.mapping.abis)
        return _unique(files)

    def dependency_files(self) -> List[Path]:
        """Manifest, schema and ABI files, in that order."""
        return _unique([self.path, self.schema_file] + self.abi_files())


def _unique(paths):
    seen = set()
    result = []
    for p in paths:
        if p not in seen:
            seen.add(p)
            result.append(p)
    return result
