"""
Deployment collaborators.

Compiling handler code, storing the build in a content-addressed store,
submitting it to an indexing node and keeping access tokens all live
outside this package. This module fixes their interfaces and the order
in which a deployment uses them:

    generate types -> compile -> put bytes -> deploy(name, hash)
"""

from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from subgraph_codegen.codegen.gen_logging import get_logger
from subgraph_codegen.errors import DeployError

logger = get_logger(__name__)

DEFAULT_NODE_PORT = 8020


class ModuleCompiler(ABC):
    """Turns generated and handler sources into a deployable module."""

    @abstractmethod
    def compile(self) -> Optional[bytes]:
        """Return the built module, or None when compilation failed."""
        pass


class ContentStore(ABC):
    """Content-addressed storage: put bytes, get their hash."""

    @abstractmethod
    def put(self, data: bytes) -> str:
        pass


class DeployClient(ABC):
    """Remote indexing node accepting deployments."""

    @abstractmethod
    def deploy(self, name: str, content_hash: str) -> None:
        """Submit a deployment; raise DeployError when the node rejects it."""
        pass


class CredentialStore(ABC):
    """Access tokens per node URL."""

    @abstractmethod
    def get_token(self, node_url: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_token(self, node_url: str, token: str) -> None:
        pass


def normalize_node_url(node_url: str) -> str:
    """Add the default admin port when the node URL has none."""
    parts = urlsplit(node_url)
    if not parts.scheme or not parts.hostname:
        raise DeployError(f"Invalid node URL '{node_url}'.")
    if parts.port is not None:
        return node_url
    netloc = f"{parts.netloc}:{DEFAULT_NODE_PORT}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def deploy_subgraph(name, generator, compiler: ModuleCompiler, store: ContentStore, client: DeployClient) -> str:
    """
    Generate types, build, store and deploy a subgraph.

    Returns the content hash of the deployed build. Nothing is compiled
    when type generation fails, and nothing is deployed when the compiler
    produces no module.
    """
    result = generator.generate_types()
    if not result.success:
        details = "; ".join(str(e) for e in result.errors)
        raise DeployError(f"Type generation failed, not deploying: {details}")

    module = compiler.compile()
    if module is None:
        raise DeployError("Compilation failed, not deploying.")

    content_hash = store.put(module)
    logger.info(f"[DEPLOY] {name}: {content_hash}")
    client.deploy(name, content_hash)
    return content_hash
