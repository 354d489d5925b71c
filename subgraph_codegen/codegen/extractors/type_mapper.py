"""
Type mapping from ABI and GraphQL types to the generated wrapper vocabulary.

Both mappers resolve into the same TargetType values, so handler code sees
one numeric/byte vocabulary whether a value came from a contract event or
from a stored entity.
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TargetType:
    """
    A generated value type.

    kind is a wrapper name from WRAPPER_KINDS, "Array" (element set) or
    "Struct" (unit names the IR unit that models the tuple).
    """
    kind: str
    element: Optional["TargetType"] = None
    unit: Optional[str] = None
    unsigned: bool = False

    @property
    def is_array(self) -> bool:
        return self.kind == "Array"

    @property
    def list_depth(self) -> int:
        depth, t = 0, self
        while t.kind == "Array":
            depth += 1
            t = t.element
        return depth

    def innermost(self) -> "TargetType":
        t = self
        while t.kind == "Array":
            t = t.element
        return t


WRAPPER_KINDS = ("BigInt", "BigDecimal", "Bytes", "Address", "String", "Boolean", "Int")

BIG_INT = TargetType("BigInt")
UNSIGNED_BIG_INT = TargetType("BigInt", unsigned=True)
BIG_DECIMAL = TargetType("BigDecimal")
BYTES = TargetType("Bytes")
ADDRESS = TargetType("Address")
STRING = TargetType("String")
BOOLEAN = TargetType("Boolean")
INT = TargetType("Int")


def array_of(element: TargetType) -> TargetType:
    return TargetType("Array", element=element)


def struct_of(unit: str) -> TargetType:
    return TargetType("Struct", unit=unit)


# ------------------------------------------------------------------------------
# ABI primitives

_INT_TYPE = re.compile(r"^(u?)int(\d+)$")
_FIXED_BYTES = re.compile(r"^bytes(\d+)$")


def map_abi_primitive(base: str) -> Optional[TargetType]:
    """
    Map a canonical ABI primitive to its wrapper, or None if unsupported.

    Examples:
    - uint8, int256 -> BigInt
    - address       -> Address
    - bytes, bytes32 -> Bytes
    - fixed128x18   -> None
    """
    match = _INT_TYPE.match(base)
    if match:
        bits = int(match.group(2))
        if bits % 8 != 0 or not 8 <= bits <= 256:
            return None
        return UNSIGNED_BIG_INT if match.group(1) else BIG_INT

    match = _FIXED_BYTES.match(base)
    if match:
        size = int(match.group(1))
        return BYTES if 1 <= size <= 32 else None

    return {
        "address": ADDRESS,
        "bool": BOOLEAN,
        "string": STRING,
        "bytes": BYTES,
    }.get(base)


# ------------------------------------------------------------------------------
# GraphQL scalars

GRAPHQL_SCALARS = {
    "ID": STRING,
    "String": STRING,
    "Bytes": BYTES,
    "BigInt": BIG_INT,
    "BigDecimal": BIG_DECIMAL,
    "Int": INT,
    "Boolean": BOOLEAN,
}

ID_SCALARS = ("ID", "String", "Bytes")


def map_graphql_scalar(name: str) -> Optional[TargetType]:
    return GRAPHQL_SCALARS.get(name)
