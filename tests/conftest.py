"""
Pytest configuration and shared fixtures for the subgraph codegen test suite.
"""

import json
import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest
import yaml

from subgraph_codegen.codegen.generator import GeneratorOptions, TypeGenerator


ERC20_ABI = [
    {
        "type": "event",
        "name": "Transfer",
        "anonymous": False,
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

ACCOUNT_SCHEMA = """
type Account @entity {
  id: ID!
}
"""

TRANSFER_HANDLER = {"event": "Transfer(address,address,uint256)", "handler": "handleTransfer"}


def make_mapping(abi="ERC20", abi_file=None, event_handlers=None, extra_abis=()):
    abis = [{"name": abi, "file": abi_file or f"./abis/{abi}.json"}]
    abis.extend({"name": name, "file": f"./abis/{name}.json"} for name in extra_abis)
    return {
        "kind": "ethereum/events",
        "apiVersion": "0.0.2",
        "language": "wasm/assemblyscript",
        "file": "./src/mapping.ts",
        "entities": ["Account"],
        "abis": abis,
        "eventHandlers": [TRANSFER_HANDLER] if event_handlers is None else event_handlers,
    }


def make_data_source(name, abi="ERC20", abi_file=None, event_handlers=None, templates=None):
    data_source = {
        "kind": "ethereum/contract",
        "name": name,
        "network": "mainnet",
        "source": {"address": "0x0000000000000000000000000000000000000001", "abi": abi},
        "mapping": make_mapping(abi, abi_file, event_handlers),
    }
    if templates:
        data_source["templates"] = templates
    return data_source


def make_template(name, abi="ERC20", event_handlers=None):
    return {
        "kind": "ethereum/contract",
        "name": name,
        "network": "mainnet",
        "source": {"abi": abi},
        "mapping": make_mapping(abi, event_handlers=event_handlers),
    }


def make_manifest(data_sources, spec_version="0.0.3", schema_file="./schema.graphql"):
    return {
        "specVersion": spec_version,
        "schema": {"file": schema_file},
        "dataSources": list(data_sources),
    }


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def temp_output_dir():
    """Create a temporary directory for subgraph files and generated code."""
    temp_dir = tempfile.mkdtemp(prefix="subgraph_codegen_test_")
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def write_file(temp_output_dir):
    """
    Factory fixture to write a file below the temporary directory.

    Non-string content is serialized by extension: .json with json,
    .yaml/.yml with PyYAML (key order kept).
    """
    def _write(relative_path: str, content) -> Path:
        file_path = temp_output_dir / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if not isinstance(content, str):
            if file_path.suffix == ".json":
                content = json.dumps(content, indent=2)
            else:
                content = yaml.safe_dump(content, sort_keys=False)
        file_path.write_text(content, encoding="utf-8")
        return file_path
    return _write


@pytest.fixture
def subgraph_project(write_file):
    """
    Factory fixture writing a complete subgraph: manifest, schema and ABIs.

    Returns the manifest path. Defaults to one 'Token' data source bound
    to the ERC20 ABI and a single Account entity.
    """
    def _project(data_sources=None, abis=None, schema=ACCOUNT_SCHEMA, manifest=None):
        abis = {"ERC20": ERC20_ABI} if abis is None else abis
        for name, content in abis.items():
            write_file(f"abis/{name}.json", content)
        write_file("schema.graphql", schema)
        if manifest is None:
            manifest = make_manifest(data_sources or [make_data_source("Token")])
        return write_file("subgraph.yaml", manifest)
    return _project


@pytest.fixture
def make_generator(temp_output_dir):
    """Factory fixture returning a TypeGenerator writing to <tmp>/generated."""
    def _make(manifest_path, **options) -> TypeGenerator:
        options.setdefault("output_dir", temp_output_dir / "generated")
        return TypeGenerator(GeneratorOptions(manifest=manifest_path, **options))
    return _make


@pytest.fixture
def out_dir(temp_output_dir):
    return temp_output_dir / "generated"


@pytest.fixture(scope="session")
def build():
    """Builders for raw manifest documents and the shared fixture contents."""
    return SimpleNamespace(
        manifest=make_manifest,
        data_source=make_data_source,
        template=make_template,
        mapping=make_mapping,
        erc20_abi=ERC20_ABI,
        account_schema=ACCOUNT_SCHEMA,
        transfer_handler=TRANSFER_HANDLER,
    )
