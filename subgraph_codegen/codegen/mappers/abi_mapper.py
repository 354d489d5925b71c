"""
ABI to IR mapping.

Every event becomes an event unit plus a __Params accessor unit, every
function a Call unit with __Inputs/__Outputs, read-only functions become
methods on the contract binding unit, and tuples become Struct units.

Tuples are declared through an explicit work queue instead of recursive
descent: a tuple parameter only records the name of its Struct unit and
queues the components, and link_units() resolves the names afterwards.
"""

import hashlib
import re
from collections import Counter, deque
from typing import Dict

from subgraph_codegen.codegen.extractors import array_of, map_abi_primitive, struct_of
from subgraph_codegen.codegen.gen_logging import get_logger
from subgraph_codegen.codegen.ir import IRMember, IRModule, IRUnit, link_units
from subgraph_codegen.errors import AbiMappingError
from subgraph_codegen.lib.abi import AbiDocument, canonical_event_signature

logger = get_logger(__name__)

MAX_ARRAY_DEPTH = 2

TS_RESERVED = {
    "break", "case", "catch", "class", "const", "continue", "debugger", "default",
    "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
    "function", "if", "import", "in", "instanceof", "new", "null", "return", "super",
    "switch", "this", "throw", "true", "try", "typeof", "var", "void", "while", "with",
    "implements", "interface", "let", "package", "private", "protected", "public",
    "static", "yield", "type", "namespace", "module",
}

# Locals of the generated contract call methods
METHOD_LOCALS = {"result", "value"}


# ------------------------------------------------------------------------------
# Naming helpers

def _identifier(raw: str) -> str:
    name = re.sub(r"\W", "_", raw)
    if name[:1].isdigit():
        name = f"_{name}"
    return name


def member_name(raw: str, index: int, seen: set, reserved=TS_RESERVED) -> str:
    """Accessor name for a parameter: its own name, or value<i> when unnamed."""
    name = _identifier(raw) if raw else f"value{index}"
    if name in reserved:
        name = f"{name}_"
    if name in seen:
        name = f"{name}{index}"
    seen.add(name)
    return name


def class_name(raw: str) -> str:
    name = _identifier(raw)
    return name[:1].upper() + name[1:]


def discriminator(signature: str) -> str:
    """Stable overload suffix derived from a signature."""
    return hashlib.sha256(signature.encode("utf-8")).hexdigest()[:8]


def _plain_signature(signature: str) -> str:
    return re.sub(r"\bindexed\s+", "", signature)


# ------------------------------------------------------------------------------
# Mapper

class AbiTypeMapper:
    """Maps one ABI document to a linked IR module."""

    def __init__(self, abi: AbiDocument):
        self.abi = abi
        self.contract_name = class_name(abi.name)
        self._units = []

    def map(self) -> IRModule:
        self._units = []
        self._map_events()
        self._map_contract()
        self._map_calls()
        module = link_units(self.abi.name, "abi", self._units, AbiMappingError)
        logger.debug(f"[MAP] {self.abi.name}: {len(module.units)} types")
        return module

    # -- types ---------------------------------------------------------------

    def _target(self, descriptor, base: str, queue, where: str):
        """
        Resolve a parameter type. Tuples resolve to '<base>Struct'; when a
        queue is given the struct is scheduled for declaration.
        """
        dims = 0
        t = descriptor
        while t.kind == "array":
            dims += 1
            t = t.element
        if dims > MAX_ARRAY_DEPTH:
            raise AbiMappingError(
                f"ABI '{self.abi.name}': arrays nested deeper than {MAX_ARRAY_DEPTH} are not supported "
                f"('{descriptor.canonical}' in {where})."
            )

        if t.kind == "tuple":
            name = f"{base}Struct"
            if queue is not None:
                queue.append((name, base, t.components, where))
            target = struct_of(name)
        else:
            target = map_abi_primitive(t.base)
            if target is None:
                raise AbiMappingError(
                    f"ABI '{self.abi.name}': unsupported type '{descriptor.canonical}' in {where}."
                )

        for _ in range(dims):
            target = array_of(target)
        return target

    def _members(self, params, base: str, role: str, queue, where: str, reserved=TS_RESERVED):
        seen = set()
        members = []
        for i, param in enumerate(params):
            members.append(IRMember(
                name=member_name(param.name, i, seen, reserved),
                source_name=param.name,
                target=self._target(param.type, f"{base}{role}{i}", queue, f"{where} parameter {i}"),
                index=i,
                signature=param.type.canonical,
            ))
        return tuple(members)

    def _declare_structs(self, queue):
        """Declare queued tuples breadth-first; nested tuples join the queue."""
        while queue:
            name, base, components, where = queue.popleft()
            seen = set()
            members = []
            for j, component in enumerate(components):
                members.append(IRMember(
                    name=member_name(component.name, j, seen),
                    source_name=component.name,
                    target=self._target(component.type, f"{base}_{j}", queue, f"{where}.{j}"),
                    index=j,
                    signature=component.type.canonical,
                ))
            self._units.append(IRUnit(name=name, kind="struct", members=tuple(members), source_name=base))

    @staticmethod
    def _overload_names(entries, signature_of):
        """Class-name base per entry; overloaded names get a signature suffix."""
        counts = Counter(class_name(e.name) for e in entries)
        names = []
        for entry in entries:
            base = class_name(entry.name)
            if counts[base] > 1:
                base = f"{base}_{discriminator(signature_of(entry))}"
            names.append(base)
        return names

    # -- events --------------------------------------------------------------

    def _map_events(self):
        events = self.abi.events()
        for event, base in zip(events, self._overload_names(events, lambda e: e.indexed_signature)):
            queue = deque()
            params_name = f"{base}__Params"
            params = self._members(event.inputs, base, "Param", queue, event.indexed_signature)

            self._units.append(IRUnit(
                name=base,
                kind="event",
                members=(IRMember(name="params", kind="view", target=struct_of(params_name)),),
                source_name=event.name,
                signature=event.indexed_signature,
            ))
            self._units.append(IRUnit(
                name=params_name,
                kind="event_params",
                members=params,
                parent=base,
                source_name=event.name,
                signature=event.indexed_signature,
            ))
            self._declare_structs(queue)

    # -- contract binding ----------------------------------------------------

    def _map_contract(self):
        functions = self.abi.functions()
        bases = self._overload_names(functions, lambda f: f.signature)
        counts = Counter(f.name for f in functions)

        methods = []
        results = []
        for fn, base in zip(functions, bases):
            if not fn.is_readonly or not fn.outputs:
                continue
            method = _identifier(fn.name)
            if counts[fn.name] > 1:
                method = f"{method}_{discriminator(fn.signature)}"

            params = self._members(
                fn.inputs, base, "Input", None, fn.signature, reserved=TS_RESERVED | METHOD_LOCALS
            )
            outputs = tuple(
                IRMember(
                    name=f"value{i}",
                    source_name=o.name,
                    target=self._target(o.type, f"{base}Output{i}", None, f"{fn.signature} output {i}"),
                    index=i,
                    signature=o.type.canonical,
                )
                for i, o in enumerate(fn.outputs)
            )

            if len(outputs) == 1:
                target = outputs[0].target
            else:
                result_name = f"{self.contract_name}__{method}Result"
                results.append(IRUnit(
                    name=result_name,
                    kind="result",
                    members=outputs,
                    source_name=fn.name,
                    signature=fn.call_signature,
                ))
                target = struct_of(result_name)

            methods.append(IRMember(
                name=method,
                kind="method",
                target=target,
                source_name=fn.name,
                signature=fn.call_signature,
                params=params,
                outputs=outputs,
            ))

        self._units.extend(results)
        self._units.append(IRUnit(
            name=self.contract_name,
            kind="contract",
            members=tuple(methods),
            source_name=self.abi.name,
        ))

    # -- calls ---------------------------------------------------------------

    def _declare_call(self, base, inputs, outputs, source_name, signature, with_outputs=True):
        queue = deque()
        call_name = f"{base}Call"
        views = [IRMember(name="inputs", kind="view", target=struct_of(f"{call_name}__Inputs"))]
        if with_outputs:
            views.append(IRMember(name="outputs", kind="view", target=struct_of(f"{call_name}__Outputs")))

        self._units.append(IRUnit(
            name=call_name, kind="call", members=tuple(views),
            source_name=source_name, signature=signature,
        ))
        self._units.append(IRUnit(
            name=f"{call_name}__Inputs",
            kind="call_inputs",
            members=self._members(inputs, base, "Input", queue, signature),
            parent=call_name,
            source_name=source_name,
        ))
        if with_outputs:
            self._units.append(IRUnit(
                name=f"{call_name}__Outputs",
                kind="call_outputs",
                members=self._members(outputs, base, "Output", queue, signature),
                parent=call_name,
                source_name=source_name,
            ))
        self._declare_structs(queue)

    def _map_calls(self):
        constructor = self.abi.constructor()
        if constructor is not None:
            self._declare_call(
                "Constructor", constructor.inputs, (), "constructor",
                "constructor(" + ",".join(p.type.canonical for p in constructor.inputs) + ")",
                with_outputs=False,
            )

        functions = self.abi.functions()
        for fn, base in zip(functions, self._overload_names(functions, lambda f: f.signature)):
            self._declare_call(base, fn.inputs, fn.outputs, fn.name, fn.signature)


def map_abi(abi: AbiDocument) -> IRModule:
    return AbiTypeMapper(abi).map()


# ------------------------------------------------------------------------------
# Event handler binding

def bind_event_handlers(module: IRModule, handlers, abi_name: str = None) -> Dict[str, str]:
    """
    Resolve each event handler signature to the event unit it binds.

    The signature is matched against the indexed form first, then against
    the plain form; a plain match must be unambiguous.
    """
    abi_name = abi_name or module.name
    events = module.of_kind("event")
    bindings = {}

    for handler in handlers:
        wanted = canonical_event_signature(handler.event)
        matches = [u for u in events if u.signature == wanted]
        if not matches:
            plain = _plain_signature(wanted)
            matches = [u for u in events if _plain_signature(u.signature) == plain]

        if not matches:
            raise AbiMappingError(
                f"Event with signature '{handler.event}' (handler '{handler.handler}') "
                f"is not present in ABI '{abi_name}'."
            )
        if len(matches) > 1:
            candidates = ", ".join(u.signature for u in matches)
            raise AbiMappingError(
                f"Event signature '{handler.event}' is ambiguous in ABI '{abi_name}' "
                f"(candidates: {candidates}); add 'indexed' markers to select one."
            )
        bindings[handler.event] = matches[0].name

    return bindings
