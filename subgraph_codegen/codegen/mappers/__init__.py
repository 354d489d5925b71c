"""Mappers from loaded documents to linked IR modules."""

from .abi_mapper import AbiTypeMapper, bind_event_handlers, map_abi
from .schema_mapper import SchemaTypeMapper, map_schema
from .template_mapper import map_templates

__all__ = [
    "AbiTypeMapper",
    "SchemaTypeMapper",
    "bind_event_handlers",
    "map_abi",
    "map_schema",
    "map_templates",
]
