"""
Rendering of linked IR modules to TypeScript over @graphprotocol/graph-ts.

The emitter never reorders units: templates iterate module.units, which
is declaration order. Rendered text always goes through
format_typescript(); a formatting failure is an EmissionError and nothing
is written.
"""

import re
from pathlib import Path

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)

from subgraph_codegen.codegen.gen_logging import get_logger
from subgraph_codegen.codegen.ir import IRMember, IRModule
from subgraph_codegen.codegen.utils import format_typescript
from subgraph_codegen.errors import EmissionError

logger = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

MODULE_TEMPLATES = {
    "abi": "abi.ts.jinja",
    "schema": "schema.ts.jinja",
    "templates": "templates.ts.jinja",
}

# Fixed order of names imported from @graphprotocol/graph-ts
IMPORT_ORDER = (
    "ethereum",
    "store",
    "Entity",
    "Value",
    "ValueKind",
    "DataSourceTemplate",
    "DataSourceContext",
    "Address",
    "BigDecimal",
    "BigInt",
    "Bytes",
)

_TS_NAMES = {
    "String": "string",
    "Boolean": "boolean",
    "Int": "i32",
}

_STORE_NAMES = {"Int": "I32"}

_LIST_SUFFIX = {0: "", 1: "Array", 2: "Matrix"}

_NON_NULLABLE = ("Int", "Boolean")


# ------------------------------------------------------------------------------
# Expression helpers (registered as Jinja filters)

def _suffix(target) -> str:
    depth = target.list_depth
    if depth not in _LIST_SUFFIX:
        raise EmissionError(f"Cannot emit a value nested {depth} lists deep.")
    return _LIST_SUFFIX[depth]


def ts_type(target) -> str:
    """TypeScript type of a TargetType."""
    if target.kind == "Array":
        return f"Array<{ts_type(target.element)}>"
    if target.kind == "Struct":
        return target.unit
    return _TS_NAMES.get(target.kind, target.kind)


def field_type(member: IRMember) -> str:
    """Entity accessor type; nullable fields of value types keep their default."""
    t = ts_type(member.target)
    if member.kind == "derived":
        return f"Array<{member.ref}>" if member.target.is_array else f"{member.ref} | null"
    if not member.nullable or (not member.target.is_array and member.target.kind in _NON_NULLABLE):
        return t
    return f"{t} | null"


def ethereum_decode(target, expr: str) -> str:
    """Decode an ethereum.Value expression into target."""
    suffix = _suffix(target)
    inner = target.innermost()
    if inner.kind == "Struct":
        if not suffix:
            return f"changetype<{inner.unit}>({expr}.toTuple())"
        return f"{expr}.toTuple{suffix}<{inner.unit}>()"
    return f"{expr}.to{inner.kind}{suffix}()"


def ethereum_encode(member: IRMember, expr: str) -> str:
    """Wrap a typed expression into an ethereum.Value for a contract call."""
    suffix = _suffix(member.target)
    inner = member.target.innermost()
    if inner.kind == "Struct":
        name = "Tuple"
    elif inner.kind == "BigInt":
        name = "UnsignedBigInt" if inner.unsigned else "SignedBigInt"
    elif inner.kind == "Bytes":
        base = re.sub(r"(\[\d*\])+$", "", member.signature or "bytes")
        name = "Bytes" if base == "bytes" else "FixedBytes"
    else:
        name = inner.kind
    return f"ethereum.Value.from{name}{suffix}({expr})"


def store_decode(target, expr: str) -> str:
    inner = target.innermost()
    return f"{expr}.to{_STORE_NAMES.get(inner.kind, inner.kind)}{_suffix(target)}()"


def store_encode(target, expr: str) -> str:
    inner = target.innermost()
    return f"Value.from{_STORE_NAMES.get(inner.kind, inner.kind)}{_suffix(target)}({expr})"


def id_string(target, expr: str) -> str:
    """String key of an entity id value."""
    return f"{expr}.toHexString()" if target.kind == "Bytes" else expr


def default_value(target) -> str:
    return "0" if target.kind == "Int" else "false"


# ------------------------------------------------------------------------------
# Imports

def _target_imports(target, names):
    if target is None:
        return
    inner = target.innermost()
    if inner.kind in IMPORT_ORDER:
        names.add(inner.kind)


def collect_imports(module: IRModule):
    """Names the module needs from graph-ts, in IMPORT_ORDER."""
    names = set()
    if module.kind == "abi":
        names.update(("ethereum", "Address"))
    elif module.kind == "schema":
        names.update(("Entity", "Value", "ValueKind", "store"))
    elif module.kind == "templates":
        names.update(("Address", "DataSourceTemplate", "DataSourceContext"))

    for unit in module.units:
        _target_imports(unit.id_target, names)
        for member in unit.members:
            _target_imports(member.target, names)
            for nested in member.params + member.outputs:
                _target_imports(nested.target, names)

    return [name for name in IMPORT_ORDER if name in names]


# ------------------------------------------------------------------------------
# Emitter

class CodeEmitter:
    """Renders IR modules with Jinja2 and writes formatted output files."""

    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(disabled_extensions=("jinja",)),
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters.update(
            ts_type=ts_type,
            field_type=field_type,
            ethereum_decode=ethereum_decode,
            ethereum_encode=ethereum_encode,
            store_decode=store_decode,
            store_encode=store_encode,
            id_string=id_string,
            default_value=default_value,
        )

    def render(self, module: IRModule) -> str:
        """Render a module to formatted source text."""
        template_name = MODULE_TEMPLATES.get(module.kind)
        if template_name is None:
            raise EmissionError(f"No template for module kind '{module.kind}'.")

        try:
            template = self.env.get_template(template_name)
            code = template.render(
                module=module,
                units=module.units,
                imports=collect_imports(module),
                non_nullable=_NON_NULLABLE,
            )
        except TemplateError as e:
            raise EmissionError(f"Failed to render '{module.name}': {e}") from e

        return format_typescript(code)

    def emit(self, module: IRModule, output_path) -> Path:
        """Render a module and write it, creating parent directories."""
        code = self.render(module)
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(code, encoding="utf-8")
        except OSError as e:
            raise EmissionError(f"Cannot write '{output_path}': {e.strerror or e}") from e

        logger.info(f"[GENERATED] {output_path}")
        return output_path
