"""
End-to-end type generation tests.

Each test writes a complete subgraph (manifest, schema, ABIs) to a
temporary directory and runs the generator over it:
1. Output layout for data sources, templates and the schema
2. Byte-identical output across runs
3. Per-unit failure isolation
4. Migration of legacy manifests before generation
5. Interruption of a run
"""

from types import SimpleNamespace

import pytest
import yaml

from subgraph_codegen.codegen import generator as generator_module
from subgraph_codegen.codegen.generator import TypeGenerator, _Unit
from subgraph_codegen.errors import MigrationError
from subgraph_codegen.migrations import CURRENT_SPEC_VERSION


def _generated_files(out_dir):
    return sorted(p.relative_to(out_dir).as_posix() for p in out_dir.rglob("*") if p.is_file())


def _snapshot(out_dir):
    return {p: (out_dir / p).read_bytes() for p in _generated_files(out_dir)}


class TestSingleDataSource:
    """Test the minimal Token/ERC20 subgraph."""

    def test_generates_abi_and_schema_modules(self, subgraph_project, make_generator, out_dir):
        result = make_generator(subgraph_project()).generate_types()

        assert result.success, [str(e) for e in result.errors]
        assert _generated_files(out_dir) == ["Token/ERC20.ts", "schema.ts"]

        abi_code = (out_dir / "Token" / "ERC20.ts").read_text()
        assert "export class Transfer extends ethereum.Event {" in abi_code

        schema_code = (out_dir / "schema.ts").read_text()
        assert "export class Account extends Entity {" in schema_code
        assert '    let id = this.get("id");' in schema_code

    def test_result_lists_outputs_in_unit_order(self, subgraph_project, make_generator, out_dir):
        result = make_generator(subgraph_project()).generate_types()

        assert [p.relative_to(out_dir).as_posix() for p in result.outputs] == ["Token/ERC20.ts", "schema.ts"]
        assert result.errors == ()

    def test_output_is_byte_identical_across_runs(self, subgraph_project, make_generator, out_dir):
        generator = make_generator(subgraph_project())

        assert generator.generate_types().success
        first = _snapshot(out_dir)
        assert generator.generate_types().success

        assert _snapshot(out_dir) == first

    def test_output_does_not_depend_on_worker_count(self, subgraph_project, make_generator, out_dir, build):
        data_sources = [build.data_source(name) for name in ("A", "B", "C", "D")]
        manifest_path = subgraph_project(data_sources=data_sources)

        assert make_generator(manifest_path, max_workers=1).generate_types().success
        serial = _snapshot(out_dir)
        assert make_generator(manifest_path, max_workers=8).generate_types().success

        assert _snapshot(out_dir) == serial


class TestTemplatesAndMultipleAbis:

    def test_template_output_paths(self, subgraph_project, make_generator, out_dir, build):
        factory = build.data_source("Factory", templates=[build.template("Pair", abi="Pair")])
        manifest_path = subgraph_project(
            data_sources=[factory],
            abis={"ERC20": build.erc20_abi, "Pair": build.erc20_abi},
        )

        result = make_generator(manifest_path).generate_types()

        assert result.success, [str(e) for e in result.errors]
        assert _generated_files(out_dir) == [
            "Factory/ERC20.ts",
            "Factory/templates.ts",
            "Factory/templates/Pair/Pair.ts",
            "schema.ts",
        ]
        templates_code = (out_dir / "Factory" / "templates.ts").read_text()
        assert "export class Pair extends DataSourceTemplate {" in templates_code

    def test_only_source_abi_binds_handlers(self, subgraph_project, make_generator, out_dir, build):
        """Test that secondary ABIs without the handled event still generate."""
        data_source = build.data_source("Token")
        data_source["mapping"]["abis"].append({"name": "Oracle", "file": "./abis/Oracle.json"})
        oracle_abi = [{
            "type": "function",
            "name": "latestAnswer",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "int256"}],
        }]
        manifest_path = subgraph_project(
            data_sources=[data_source],
            abis={"ERC20": build.erc20_abi, "Oracle": oracle_abi},
        )

        result = make_generator(manifest_path).generate_types()

        assert result.success, [str(e) for e in result.errors]
        assert "Token/Oracle.ts" in _generated_files(out_dir)


class TestFailureIsolation:
    """Test that one failing unit does not stop its siblings."""

    def test_malformed_abi_fails_only_its_unit(self, subgraph_project, make_generator, out_dir, build):
        data_sources = [
            build.data_source("A"),
            build.data_source("Bad", abi="Bad"),
            build.data_source("C"),
        ]
        manifest_path = subgraph_project(
            data_sources=data_sources,
            abis={"ERC20": build.erc20_abi, "Bad": "{ not json"},
        )

        result = make_generator(manifest_path).generate_types()

        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].context == "Bad > Bad"
        assert "Malformed ABI JSON" in str(result.errors[0])
        assert _generated_files(out_dir) == ["A/ERC20.ts", "C/ERC20.ts", "schema.ts"]

    def test_non_string_abi_name_fails_only_its_unit(self, subgraph_project, make_generator, out_dir, build):
        bad_abi = [{
            "type": "event",
            "name": "Transfer",
            "inputs": [{"name": 5, "type": "uint256", "indexed": False}],
        }]
        data_sources = [
            build.data_source("A"),
            build.data_source("Bad", abi="Bad"),
            build.data_source("C"),
        ]
        manifest_path = subgraph_project(
            data_sources=data_sources,
            abis={"ERC20": build.erc20_abi, "Bad": bad_abi},
        )

        result = make_generator(manifest_path).generate_types()

        assert [e.context for e in result.errors] == ["Bad > Bad"]
        assert "'name' must be a string" in str(result.errors[0])
        assert _generated_files(out_dir) == ["A/ERC20.ts", "C/ERC20.ts", "schema.ts"]

    def test_unknown_event_handler(self, subgraph_project, make_generator, out_dir, build):
        data_source = build.data_source(
            "Token",
            event_handlers=[{"event": "Approval(address,address,uint256)", "handler": "handleApproval"}],
        )

        result = make_generator(subgraph_project(data_sources=[data_source])).generate_types()

        assert [e.context for e in result.errors] == ["Token > ERC20"]
        assert "Approval(address,address,uint256)" in str(result.errors[0])
        assert _generated_files(out_dir) == ["schema.ts"]

    def test_schema_failure_keeps_abi_outputs(self, subgraph_project, make_generator, out_dir):
        schema = """
            type Account @entity {
              id: ID!
              sent: [Transfer!]! @derivedFrom(field: "sender")
            }
            type Transfer @entity {
              id: ID!
            }
        """

        result = make_generator(subgraph_project(schema=schema)).generate_types()

        assert [e.context for e in result.errors] == ["schema"]
        assert _generated_files(out_dir) == ["Token/ERC20.ts"]

    def test_invalid_manifest_generates_nothing(self, subgraph_project, make_generator, out_dir, build):
        data_source = build.data_source("Token")
        data_source["unexpected"] = True

        result = make_generator(subgraph_project(data_sources=[data_source])).generate_types()

        assert not result.success
        assert [e.context for e in result.errors] == ["manifest"]
        assert not out_dir.exists()


class TestMigrationOnGenerate:

    @staticmethod
    def _legacy(build):
        data_source = build.data_source(
            "Token",
            event_handlers=[{"event": "Transfer(address, address, uint)", "handler": "handleTransfer"}],
        )
        data_source["mapping"]["apiVersion"] = "0.0.1"
        return {"schema": "./schema.graphql", "dataSources": [data_source]}

    def test_legacy_manifest_is_migrated_and_written(self, subgraph_project, make_generator, out_dir, build):
        manifest_path = subgraph_project(manifest=self._legacy(build))

        result = make_generator(manifest_path).generate_types()

        assert result.success, [str(e) for e in result.errors]
        assert (out_dir / "Token" / "ERC20.ts").exists()
        on_disk = yaml.safe_load(manifest_path.read_text())
        assert on_disk["specVersion"] == CURRENT_SPEC_VERSION

    def test_in_memory_migration(self, subgraph_project, make_generator, out_dir, build):
        manifest_path = subgraph_project(manifest=self._legacy(build))
        before = manifest_path.read_text()

        result = make_generator(manifest_path, write_migrations=False).generate_types()

        assert result.success
        assert manifest_path.read_text() == before

    def test_skip_migrations_reads_manifest_as_is(self, subgraph_project, make_generator, build):
        manifest_path = subgraph_project(manifest=self._legacy(build))

        result = make_generator(manifest_path, skip_migrations=True).generate_types()

        # no specVersion and a bare schema path
        assert [e.context for e in result.errors] == ["manifest"]

    def test_skip_migrations_rejects_unknown_version(self, subgraph_project, make_generator, out_dir, build):
        manifest = build.manifest([build.data_source("Token")], spec_version="9.9.9")
        manifest_path = subgraph_project(manifest=manifest)

        result = make_generator(manifest_path, skip_migrations=True).generate_types()

        assert not result.success
        assert [e.context for e in result.errors] == ["manifest"]
        assert isinstance(result.errors[0].error, MigrationError)
        assert "Unsupported specVersion '9.9.9'" in str(result.errors[0])
        assert not out_dir.exists()


class SerialExecutor:
    """Runs each submitted unit only when its result is requested."""

    instances = []

    def __init__(self, max_workers=None):
        self.shutdowns = []
        SerialExecutor.instances.append(self)

    def submit(self, fn, *args):
        return SimpleNamespace(result=lambda: fn(*args))

    def shutdown(self, wait=True, cancel_futures=False):
        self.shutdowns.append(cancel_futures)


class TestInterrupt:

    def test_interrupt_stops_remaining_units(self, subgraph_project, make_generator, monkeypatch):
        SerialExecutor.instances = []
        monkeypatch.setattr(generator_module, "ThreadPoolExecutor", SerialExecutor)
        ran = []

        def unit(name, interrupt=False):
            def run():
                ran.append(name)
                if interrupt:
                    raise KeyboardInterrupt
                return name
            return _Unit(name, run)

        units = [unit("first"), unit("second", interrupt=True), unit("third")]
        monkeypatch.setattr(TypeGenerator, "_collect_units", lambda self, manifest: units)

        with pytest.raises(KeyboardInterrupt):
            make_generator(subgraph_project()).generate_types()

        assert ran == ["first", "second"]
        # queued units are cancelled before the pool is released
        assert SerialExecutor.instances[0].shutdowns[0] is True
