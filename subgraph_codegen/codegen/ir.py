"""
Intermediate representation of generated types.

Mappers declare IR units first, referring to each other by name only;
link_units() then resolves every reference in one pass over a NetworkX
graph. Units are frozen, and a module keeps them in declaration order,
which is the only order the emitter ever uses.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import networkx as nx

from subgraph_codegen.codegen.extractors import TargetType


@dataclass(frozen=True)
class IRMember:
    """
    One typed accessor of a generated type.

    kind:
    - "scalar":    get/set (or get-only) over a decoded value
    - "reference": like scalar, but the value is the id of another unit
    - "derived":   read-only, resolved by reverse lookup on ref.derived_field
    - "view":      returns a companion unit wrapping the same value (event.params)
    - "method":    contract call; params are the inputs, outputs the results
    """
    name: str
    target: Optional[TargetType]
    kind: str = "scalar"
    source_name: str = ""
    index: Optional[int] = None
    nullable: bool = False
    ref: Optional[str] = None
    derived_field: Optional[str] = None
    signature: Optional[str] = None
    params: Tuple["IRMember", ...] = ()
    outputs: Tuple["IRMember", ...] = ()

    @property
    def readonly(self) -> bool:
        return self.kind in ("derived", "view", "method")

    def references(self):
        refs = []
        if self.ref:
            refs.append(self.ref)
        if self.target is not None:
            inner = self.target.innermost()
            if inner.unit:
                refs.append(inner.unit)
        for nested in self.params + self.outputs:
            refs.extend(nested.references())
        return refs


@dataclass(frozen=True)
class IRUnit:
    """
    One generated type.

    kind is one of: event, event_params, call, call_inputs, call_outputs,
    struct, result, contract, entity, template.
    """
    name: str
    kind: str
    members: Tuple[IRMember, ...] = ()
    parent: Optional[str] = None
    source_name: Optional[str] = None
    signature: Optional[str] = None
    id_target: Optional[TargetType] = None

    def member(self, name: str) -> Optional[IRMember]:
        for m in self.members:
            if m.name == name:
                return m
        return None

    def references(self):
        refs = [self.parent] if self.parent else []
        for m in self.members:
            refs.extend(m.references())
        return refs


@dataclass(frozen=True)
class IRModule:
    """Linked units of one output file, in declaration order."""
    name: str
    kind: str
    units: Tuple[IRUnit, ...]
    graph: nx.DiGraph = field(default_factory=nx.DiGraph, compare=False, repr=False)

    def unit(self, name: str) -> Optional[IRUnit]:
        if name not in self.graph:
            return None
        return self.graph.nodes[name]["unit"]

    def names(self):
        return [u.name for u in self.units]

    def of_kind(self, *kinds):
        return [u for u in self.units if u.kind in kinds]

    def depth(self, name: str) -> int:
        """Number of reference hops to the deepest unit reachable from name."""
        lengths = nx.single_source_shortest_path_length(self.graph, name)
        return max(lengths.values())


def link_units(name: str, kind: str, units, error_cls) -> IRModule:
    """
    Resolve cross-references between declared units.

    Raises error_cls when two units share a name or when a unit refers
    to a name that was never declared.
    """
    graph = nx.DiGraph()
    for unit in units:
        if unit.name in graph:
            raise error_cls(
                f"Generated type name '{unit.name}' is declared twice in '{name}'."
            )
        graph.add_node(unit.name, unit=unit)

    for unit in units:
        for ref in unit.references():
            if ref not in graph:
                raise error_cls(
                    f"Type '{unit.name}' in '{name}' references undeclared type '{ref}'."
                )
            graph.add_edge(unit.name, ref)

    return IRModule(name=name, kind=kind, units=tuple(units), graph=graph)
