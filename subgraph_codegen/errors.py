"""
Error kinds raised by the type generation pipeline.

Every failure that the orchestrator attributes to a unit derives from
CodegenError, so the per-unit boundary can catch exactly these and let
programming errors propagate.
"""


class CodegenError(Exception):
    """Base class for all expected type generation failures."""


class ParseError(CodegenError):
    """Malformed manifest, ABI or schema text."""

    def __init__(self, message, path=None, line=None, col=None):
        self.message = message
        self.path = str(path) if path is not None else None
        self.line = line
        self.col = col
        super().__init__(self._render())

    def _render(self):
        if self.path is None:
            return self.message
        location = self.path
        if self.line is not None:
            location += f":{self.line}"
            if self.col is not None:
                location += f":{self.col}"
        return f"{location}: {self.message}"


class ValidationError(CodegenError):
    """Well-formed document that violates a required invariant."""


class AbiMappingError(CodegenError):
    """Unmappable ABI type, unresolved event handler or type name collision."""


class SchemaMappingError(CodegenError):
    """Unresolved @derivedFrom target or unmappable GraphQL type."""


class MigrationError(CodegenError):
    """Manifest version cannot be brought up to date."""


class EmissionError(CodegenError):
    """Rendering, formatting or writing generated source failed."""


class DeployError(CodegenError):
    """A deployment collaborator reported a failure."""
