"""Type extraction utilities shared by the ABI and schema mappers."""

from .type_mapper import (
    TargetType,
    WRAPPER_KINDS,
    BIG_INT,
    UNSIGNED_BIG_INT,
    BIG_DECIMAL,
    BYTES,
    ADDRESS,
    STRING,
    BOOLEAN,
    INT,
    GRAPHQL_SCALARS,
    ID_SCALARS,
    array_of,
    struct_of,
    map_abi_primitive,
    map_graphql_scalar,
)

__all__ = [
    "TargetType",
    "WRAPPER_KINDS",
    "BIG_INT",
    "UNSIGNED_BIG_INT",
    "BIG_DECIMAL",
    "BYTES",
    "ADDRESS",
    "STRING",
    "BOOLEAN",
    "INT",
    "GRAPHQL_SCALARS",
    "ID_SCALARS",
    "array_of",
    "struct_of",
    "map_abi_primitive",
    "map_graphql_scalar",
]
