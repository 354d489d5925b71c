"""
Contract ABI documents.

An ABI is parsed into frozen entries whose parameter types form a
recursive TypeDescriptor tree (arrays and tuples nest without limit).
ABI JSON has no back-references, so the tree is always finite.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from subgraph_codegen.errors import ParseError

ENTRY_TYPES = ("function", "event", "constructor", "fallback", "receive", "error")

_ARRAY_SUFFIX = re.compile(r"^(.*)\[(\d*)\]$")
_SHORT_TYPES = {"uint": "uint256", "int": "int256", "byte": "bytes1"}

# Solidity identifiers; names end up inside generated string literals
IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


@dataclass(frozen=True)
class TypeDescriptor:
    """
    Parameter type tree.

    kind is one of:
    - "primitive": base holds the canonical ABI type (uint256, address, ...)
    - "array":     element holds the item type; length is None for T[]
    - "tuple":     components holds the nested parameters
    """
    kind: str
    base: Optional[str] = None
    element: Optional["TypeDescriptor"] = None
    length: Optional[int] = None
    components: Tuple["AbiParam", ...] = ()

    @property
    def canonical(self) -> str:
        if self.kind == "array":
            size = "" if self.length is None else str(self.length)
            return f"{self.element.canonical}[{size}]"
        if self.kind == "tuple":
            return "(" + ",".join(c.type.canonical for c in self.components) + ")"
        return self.base


@dataclass(frozen=True)
class AbiParam:
    name: str
    type: TypeDescriptor
    indexed: bool = False


@dataclass(frozen=True)
class AbiEntry:
    type: str
    name: Optional[str] = None
    inputs: Tuple[AbiParam, ...] = ()
    outputs: Tuple[AbiParam, ...] = ()
    state_mutability: Optional[str] = None
    anonymous: bool = False
    constant: bool = False

    @property
    def signature(self) -> str:
        """Canonical signature, e.g. Transfer(address,address,uint256)."""
        return f"{self.name}(" + ",".join(p.type.canonical for p in self.inputs) + ")"

    @property
    def indexed_signature(self) -> str:
        """Signature with indexed markers, as written in event handlers."""
        params = [
            ("indexed " if p.indexed else "") + p.type.canonical
            for p in self.inputs
        ]
        return f"{self.name}(" + ",".join(params) + ")"

    @property
    def call_signature(self) -> str:
        """Function signature including outputs, e.g. balanceOf(address):(uint256)."""
        outputs = ",".join(p.type.canonical for p in self.outputs)
        return f"{self.signature}:({outputs})"

    @property
    def is_readonly(self) -> bool:
        return self.constant or self.state_mutability in ("view", "pure")


@dataclass(frozen=True)
class AbiDocument:
    name: str
    file: Path
    entries: Tuple[AbiEntry, ...]

    def events(self):
        return [e for e in self.entries if e.type == "event"]

    def functions(self):
        return [e for e in self.entries if e.type == "function"]

    def constructor(self) -> Optional[AbiEntry]:
        for entry in self.entries:
            if entry.type == "constructor":
                return entry
        return None


# ------------------------------------------------------------------------------
# Parsing

def canonical_type_name(type_name: str) -> str:
    return _SHORT_TYPES.get(type_name, type_name)


_TYPE_TOKEN = re.compile(r"\b(u?int|byte)\b(?!\d)")


def canonical_event_signature(signature: str) -> str:
    """
    Canonicalize an event signature as written in a manifest.

    Examples:
    - "Transfer(address, address, uint)" -> "Transfer(address,address,uint256)"
    - "Approval(indexed address,uint)" -> "Approval(indexed address,uint256)"
    """
    parts = re.split(r"\s*([(),\[\]])\s*", signature.strip())
    compact = re.sub(r"\s+", " ", "".join(parts))
    return _TYPE_TOKEN.sub(lambda m: _SHORT_TYPES[m.group(1)], compact)


def parse_type_descriptor(type_name: str, components=None, where="") -> TypeDescriptor:
    """
    Build a descriptor from an ABI type string and optional components.

    Array suffixes bind right to left: "uint256[2][]" is a dynamic array
    of two-element arrays of uint256.
    """
    if not isinstance(type_name, str) or not type_name:
        raise ParseError(f"{where}: parameter type must be a non-empty string")

    match = _ARRAY_SUFFIX.match(type_name)
    if match:
        inner, size = match.groups()
        element = parse_type_descriptor(inner, components, where)
        return TypeDescriptor(kind="array", element=element, length=int(size) if size else None)

    if type_name == "tuple":
        if not isinstance(components, list):
            raise ParseError(f"{where}: tuple parameter is missing 'components'")
        return TypeDescriptor(
            kind="tuple",
            components=tuple(
                _parse_param(c, f"{where}.components[{i}]") for i, c in enumerate(components)
            ),
        )

    return TypeDescriptor(kind="primitive", base=canonical_type_name(type_name))


def _check_name(name, where, required=False):
    if name is None or name == "":
        if required:
            raise ParseError(f"{where}: 'name' is missing")
        return ""
    if not isinstance(name, str):
        raise ParseError(f"{where}: 'name' must be a string, not {type(name).__name__}")
    if not IDENTIFIER.match(name):
        raise ParseError(f"{where}: name '{name}' is not a valid identifier")
    return name


def _parse_param(raw, where) -> AbiParam:
    if not isinstance(raw, dict):
        raise ParseError(f"{where}: parameter must be an object")
    return AbiParam(
        name=_check_name(raw.get("name"), where),
        type=parse_type_descriptor(raw.get("type"), raw.get("components"), where),
        indexed=bool(raw.get("indexed", False)),
    )


def _parse_params(raw, where) -> Tuple[AbiParam, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ParseError(f"{where}: must be a list")
    return tuple(_parse_param(p, f"{where}[{i}]") for i, p in enumerate(raw))


def _parse_entry(raw, index) -> AbiEntry:
    where = f"entry {index}"
    if not isinstance(raw, dict):
        raise ParseError(f"{where}: ABI entry must be an object")

    # The ABI format defaults a missing type to "function"
    entry_type = raw.get("type", "function")
    if entry_type not in ENTRY_TYPES:
        raise ParseError(f"{where}: unknown ABI entry type '{entry_type}'")

    required = entry_type in ("function", "event")
    name = _check_name(raw.get("name"), f"{where} ({entry_type})", required=required) or None

    return AbiEntry(
        type=entry_type,
        name=name,
        inputs=_parse_params(raw.get("inputs"), f"{where} ({name}).inputs"),
        outputs=_parse_params(raw.get("outputs"), f"{where} ({name}).outputs"),
        state_mutability=raw.get("stateMutability"),
        anonymous=bool(raw.get("anonymous", False)),
        constant=bool(raw.get("constant", False)),
    )


def parse_abi(name: str, data, file=None) -> AbiDocument:
    """Parse ABI JSON data (entry list or artifact with an 'abi' key)."""
    if isinstance(data, dict) and "abi" in data:
        data = data["abi"]
    if not isinstance(data, list):
        raise ParseError("ABI must be a list of entries or an object with an 'abi' list", path=file)
    try:
        entries = tuple(_parse_entry(raw, i) for i, raw in enumerate(data))
    except ParseError as e:
        if file is not None and e.path is None:
            raise ParseError(e.message, path=file) from e
        raise
    return AbiDocument(name=name, file=Path(file) if file else Path(f"{name}.json"), entries=entries)


def load_abi(name: str, path) -> AbiDocument:
    """Load a contract ABI from a JSON file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Cannot read ABI '{name}': {e.strerror or e}", path=path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed ABI JSON: {e.msg}", path=path, line=e.lineno, col=e.colno)
    return parse_abi(name, data, path)
