"""
GraphQL entity schema loading.

The schema text is parsed with a textX metamodel built from
grammar/graphql.tx, checked for duplicate type names, and converted
into the frozen SchemaDocument tree from lib/schema.py. textX errors
surface as ParseError with file, line and column.
"""

import textwrap
from os.path import join, dirname, abspath
from pathlib import Path

from textx import (
    metamodel_from_file,
    get_location,
    TextXError,
    TextXSemanticError,
)

from subgraph_codegen.errors import ParseError
from subgraph_codegen.lib.schema import (
    Directive,
    EnumTypeDef,
    FieldDef,
    ObjectTypeDef,
    ScalarTypeDef,
    SchemaDocument,
    TypeRef,
    UnionTypeDef,
)


# ------------------------------------------------------------------------------
# Constants
THIS_DIR = dirname(abspath(__file__))
GRAMMAR_DIR = join(THIS_DIR, "grammar")

# Commas are insignificant tokens in GraphQL
GRAPHQL_WHITESPACE = " \t\r\n,"


# ------------------------------------------------------------------------------
# Model-wide validation (runs after the whole document is parsed)

def verify_unique_type_names(model, metamodel=None):
    """Ensure every type definition name is declared once."""
    seen = set()
    for definition in model.definitions:
        if definition.name in seen:
            raise TextXSemanticError(
                f"Type '{definition.name}' is defined more than once.",
                **get_location(definition),
            )
        seen.add(definition.name)


# ------------------------------------------------------------------------------
# Metamodel creation

def get_metamodel(debug: bool = False):
    """Load the textX metamodel from grammar/graphql.tx."""
    mm = metamodel_from_file(
        join(GRAMMAR_DIR, "graphql.tx"),
        autokwd=True,
        ws=GRAPHQL_WHITESPACE,
        debug=debug,
    )
    mm.register_model_processor(verify_unique_type_names)
    return mm


GraphQLMetaModel = get_metamodel(debug=False)


# ------------------------------------------------------------------------------
# textX tree -> SchemaDocument

def _description(node):
    text = getattr(node, "description", None)
    if not text:
        return None
    if text.startswith('"""'):
        text = textwrap.dedent(text[3:-3])
    return text.strip() or None


def _value(node):
    if node is None or isinstance(node, (str, int, float, bool)):
        return node
    cls = node.__class__.__name__
    if cls == "ListValue":
        return tuple(_value(v) for v in node.values)
    if cls == "ObjectValue":
        return tuple((f.name, _value(f.value)) for f in node.fields)
    if cls == "EnumValue":
        return node.name
    return str(node)


def _directives(node):
    return tuple(
        Directive(
            name=d.name,
            arguments=tuple((a.name, _value(a.value)) for a in d.arguments),
        )
        for d in getattr(node, "directives", None) or []
    )


def _type_ref(node) -> TypeRef:
    if node.list is not None:
        return TypeRef(of=_type_ref(node.list.of), non_null=bool(node.nonNull))
    return TypeRef(name=node.name, non_null=bool(node.nonNull))


def _field(node) -> FieldDef:
    return FieldDef(
        name=node.name,
        type=_type_ref(node.type),
        directives=_directives(node),
        description=_description(node),
    )


def _definition(node):
    cls = node.__class__.__name__
    if cls in ("ObjectType", "InterfaceType"):
        return ObjectTypeDef(
            name=node.name,
            fields=tuple(_field(f) for f in node.fields),
            directives=_directives(node),
            interfaces=tuple(node.interfaces),
            is_interface=cls == "InterfaceType",
            description=_description(node),
        )
    if cls == "EnumType":
        return EnumTypeDef(name=node.name, values=tuple(v.name for v in node.values))
    if cls == "ScalarType":
        return ScalarTypeDef(name=node.name)
    if cls == "UnionType":
        return UnionTypeDef(name=node.name, members=tuple(node.members))
    # Input types never become entities
    return None


def _to_document(model, path) -> SchemaDocument:
    definitions = []
    for node in model.definitions:
        definition = _definition(node)
        if definition is not None:
            definitions.append(definition)
    return SchemaDocument(path=Path(path) if path else None, definitions=tuple(definitions))


# ------------------------------------------------------------------------------
# Public builders

def build_schema_str(schema_str: str, path=None) -> SchemaDocument:
    """Parse a GraphQL schema from a string."""
    try:
        model = GraphQLMetaModel.model_from_str(schema_str)
    except TextXError as e:
        message = getattr(e, "message", None) or str(e)
        raise ParseError(message, path=path, line=e.line, col=e.col) from e
    return _to_document(model, path)


def build_schema(schema_path) -> SchemaDocument:
    """Parse a GraphQL schema from a file path."""
    path = Path(schema_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Cannot read schema: {e.strerror or e}", path=path)
    return build_schema_str(text, path)


load_schema = build_schema
