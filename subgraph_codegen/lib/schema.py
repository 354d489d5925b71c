"""Immutable GraphQL schema document built from the textX parse tree."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class TypeRef:
    """
    A GraphQL type reference.

    Exactly one of name / of is set: a named type, or a list wrapping
    another reference. non_null marks the trailing '!'.
    """
    name: Optional[str] = None
    of: Optional["TypeRef"] = None
    non_null: bool = False

    @property
    def is_list(self) -> bool:
        return self.of is not None

    def named_type(self) -> str:
        ref = self
        while ref.of is not None:
            ref = ref.of
        return ref.name

    def __str__(self):
        text = f"[{self.of}]" if self.of is not None else self.name
        return text + ("!" if self.non_null else "")


@dataclass(frozen=True)
class Directive:
    name: str
    arguments: Tuple[Tuple[str, Any], ...] = ()

    def argument(self, name: str, default=None):
        for key, value in self.arguments:
            if key == name:
                return value
        return default


@dataclass(frozen=True)
class FieldDef:
    name: str
    type: TypeRef
    directives: Tuple[Directive, ...] = ()
    description: Optional[str] = None

    def directive(self, name: str) -> Optional[Directive]:
        for d in self.directives:
            if d.name == name:
                return d
        return None

    @property
    def derived_from(self) -> Optional[str]:
        directive = self.directive("derivedFrom")
        return directive.argument("field") if directive else None


@dataclass(frozen=True)
class ObjectTypeDef:
    """An object or interface type."""
    name: str
    fields: Tuple[FieldDef, ...]
    directives: Tuple[Directive, ...] = ()
    interfaces: Tuple[str, ...] = ()
    is_interface: bool = False
    description: Optional[str] = None

    @property
    def is_entity(self) -> bool:
        return not self.is_interface and any(d.name == "entity" for d in self.directives)

    def field(self, name: str) -> Optional[FieldDef]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class EnumTypeDef:
    name: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class ScalarTypeDef:
    name: str


@dataclass(frozen=True)
class UnionTypeDef:
    name: str
    members: Tuple[str, ...]


@dataclass(frozen=True)
class SchemaDocument:
    """Ordered type definitions of one schema file."""
    path: Optional[Path]
    definitions: Tuple[Any, ...]

    def _index(self) -> Dict[str, Any]:
        return {d.name: d for d in self.definitions}

    def get(self, name: str):
        return self._index().get(name)

    def object_types(self):
        return [d for d in self.definitions if isinstance(d, ObjectTypeDef)]

    def entities(self):
        return [d for d in self.object_types() if d.is_entity]
