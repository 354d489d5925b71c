"""Typed TypeScript bindings for subgraph manifests, contract ABIs and entity schemas."""

__version__ = "0.3.0"
