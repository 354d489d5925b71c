"""
GraphQL schema to IR mapping.

Each @entity object type becomes one entity unit. Field types go through
the same TargetType vocabulary as ABI parameters; fields pointing at other
entities store the referenced id and record the reference, and
@derivedFrom fields become read-only reverse lookups.
"""

from subgraph_codegen.codegen.extractors import (
    ID_SCALARS,
    STRING,
    array_of,
    map_graphql_scalar,
)
from subgraph_codegen.codegen.gen_logging import get_logger
from subgraph_codegen.codegen.ir import IRMember, IRModule, IRUnit, link_units
from subgraph_codegen.errors import SchemaMappingError
from subgraph_codegen.lib.schema import (
    EnumTypeDef,
    ObjectTypeDef,
    ScalarTypeDef,
    SchemaDocument,
    UnionTypeDef,
)

logger = get_logger(__name__)

MAX_LIST_DEPTH = 2


class SchemaTypeMapper:
    """Maps a schema document to a linked IR module of entity units."""

    def __init__(self, schema: SchemaDocument):
        self.schema = schema

    def map(self) -> IRModule:
        units = [self._map_entity(entity) for entity in self.schema.entities()]
        module = link_units("schema", "schema", units, SchemaMappingError)
        logger.debug(f"[MAP] schema: {len(module.units)} entities")
        return module

    # -- entities ------------------------------------------------------------

    def _map_entity(self, entity: ObjectTypeDef) -> IRUnit:
        id_field = entity.field("id")
        if id_field is None:
            raise SchemaMappingError(f"Entity '{entity.name}' is missing an 'id' field.")

        id_type = id_field.type
        if id_type.is_list or id_type.name not in ID_SCALARS:
            raise SchemaMappingError(
                f"Field '{entity.name}.id' must be of type ID, String or Bytes, not '{id_type}'."
            )

        seen = set()
        for field in entity.fields:
            if field.name in seen:
                raise SchemaMappingError(
                    f"Field '{entity.name}.{field.name}' is declared more than once."
                )
            seen.add(field.name)

        members = tuple(self._map_field(entity, f) for f in entity.fields)
        return IRUnit(
            name=entity.name,
            kind="entity",
            members=members,
            source_name=entity.name,
            id_target=map_graphql_scalar(id_type.name),
        )

    def _map_field(self, entity: ObjectTypeDef, field) -> IRMember:
        where = f"{entity.name}.{field.name}"
        target, ref = self._target(field.type, where)
        nullable = not field.type.non_null

        derived = field.derived_from
        if field.directive("derivedFrom") is not None:
            self._check_derived(entity, field, derived, ref)
            return IRMember(
                name=field.name,
                kind="derived",
                target=target,
                source_name=field.name,
                nullable=nullable,
                ref=ref,
                derived_field=derived,
            )

        return IRMember(
            name=field.name,
            kind="reference" if ref else "scalar",
            target=target,
            source_name=field.name,
            nullable=nullable,
            ref=ref,
        )

    # -- types ---------------------------------------------------------------

    def _target(self, type_ref, where):
        """
        Resolve a field type to (TargetType, referenced entity or None).

        Entity and interface references resolve to the referenced id, a
        String. Only entities are recorded as references, since interfaces
        produce no unit of their own.
        """
        depth = 0
        ref = type_ref
        while ref.is_list:
            depth += 1
            ref = ref.of
        if depth > MAX_LIST_DEPTH:
            raise SchemaMappingError(
                f"Field '{where}': list nesting deeper than {MAX_LIST_DEPTH} "
                f"is not supported ('{type_ref}')."
            )

        name = ref.name
        referenced = None
        target = map_graphql_scalar(name)
        if target is None:
            definition = self.schema.get(name)
            if isinstance(definition, EnumTypeDef):
                target = STRING
            elif isinstance(definition, ObjectTypeDef) and (definition.is_entity or definition.is_interface):
                target = STRING
                if definition.is_entity:
                    referenced = name
            elif isinstance(definition, (ObjectTypeDef, UnionTypeDef)):
                raise SchemaMappingError(
                    f"Field '{where}': type '{name}' is not an @entity and cannot be stored."
                )
            elif isinstance(definition, ScalarTypeDef):
                raise SchemaMappingError(
                    f"Field '{where}': custom scalar '{name}' has no generated type."
                )
            else:
                raise SchemaMappingError(f"Field '{where}': unknown type '{name}'.")

        for _ in range(depth):
            target = array_of(target)
        return target, referenced

    def _check_derived(self, entity, field, derived, ref):
        where = f"{entity.name}.{field.name}"
        if not isinstance(derived, str) or not derived:
            raise SchemaMappingError(
                f"Field '{where}': @derivedFrom requires a string 'field' argument."
            )
        target_name = field.type.named_type()
        if ref is None:
            raise SchemaMappingError(
                f"Field '{where}': @derivedFrom must point at an @entity type, not '{target_name}'."
            )
        target = self.schema.get(target_name)
        if target.field(derived) is None:
            raise SchemaMappingError(
                f"Field '{where}': @derivedFrom field '{derived}' does not exist on type '{target_name}'."
            )


def map_schema(schema: SchemaDocument) -> IRModule:
    return SchemaTypeMapper(schema).map()
