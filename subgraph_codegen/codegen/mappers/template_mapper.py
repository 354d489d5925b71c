"""Data source template bindings: one DataSourceTemplate class per template."""

from subgraph_codegen.codegen.ir import IRModule, IRUnit, link_units
from subgraph_codegen.errors import ValidationError
from subgraph_codegen.manifest import DataSource


def map_templates(data_source: DataSource) -> IRModule:
    units = [
        IRUnit(
            name=template.name,
            kind="template",
            source_name=template.name,
            signature=template.source.abi,
        )
        for template in data_source.templates
    ]
    return link_units(f"{data_source.name} > templates", "templates", units, ValidationError)
