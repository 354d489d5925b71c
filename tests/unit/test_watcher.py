"""
Unit tests for the dependency-aware watcher.

The watchdog observer is replaced by a recording fake, and change
notifications are driven directly through notify()/process_pending().
"""

from types import SimpleNamespace

import pytest

from subgraph_codegen.codegen.watcher import DependencyChangeHandler, Watcher
from subgraph_codegen.errors import ParseError


class FakeObserver:
    """Records scheduled directories and lifecycle calls."""

    instances = []

    def __init__(self):
        self.scheduled = []
        self.started = False
        self.stopped = False
        self.joined = False
        FakeObserver.instances.append(self)

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.joined = True


@pytest.fixture(autouse=True)
def reset_observers():
    FakeObserver.instances = []
    yield
    FakeObserver.instances = []


@pytest.fixture
def dependency_files(write_file):
    return [
        write_file("subgraph.yaml", "specVersion: 0.0.3\n"),
        write_file("schema.graphql", ""),
        write_file("abis/A.json", "[]"),
        write_file("abis/B.json", "[]"),
    ]


def _watcher(files, runs, **kwargs):
    state = {"files": list(files)}

    def collect():
        return state["files"]

    watcher = Watcher(
        on_trigger=lambda: runs.append(len(runs) + 1),
        on_collect_files=collect,
        observer_factory=FakeObserver,
        **kwargs,
    )
    return watcher, state


class TestWatcherLifecycle:

    def test_start_generates_once_and_arms(self, dependency_files):
        runs = []
        watcher, _ = _watcher(dependency_files, runs)

        watcher.start()

        assert runs == [1]
        assert watcher.files == frozenset(p.resolve() for p in dependency_files)
        observer = FakeObserver.instances[-1]
        assert observer.started
        # one non-recursive watch per directory
        assert sorted(observer.scheduled) == sorted({(str(p.parent.resolve()), False) for p in dependency_files})

    def test_rearm_releases_previous_observer(self, dependency_files):
        runs = []
        watcher, _ = _watcher(dependency_files, runs)
        watcher.start()

        watcher.notify(dependency_files[0])
        watcher.process_pending()

        first, second = FakeObserver.instances
        assert first.stopped and first.joined
        assert second.started and not second.stopped

    def test_close_stops_observer(self, dependency_files):
        watcher, _ = _watcher(dependency_files, [])
        watcher.start()

        watcher.close()

        observer = FakeObserver.instances[-1]
        assert observer.stopped and observer.joined


class TestNotifications:

    def test_unwatched_path_is_ignored(self, dependency_files, temp_output_dir):
        runs = []
        watcher, _ = _watcher(dependency_files, runs)
        watcher.start()

        assert watcher.notify(temp_output_dir / "abis" / "Other.json") is False
        assert watcher.process_pending() is False
        assert runs == [1]

    def test_notifications_coalesce_into_one_run(self, dependency_files):
        runs = []
        watcher, _ = _watcher(dependency_files, runs)
        watcher.start()

        for path in dependency_files:
            assert watcher.notify(path) is True

        assert watcher.process_pending() is True
        assert watcher.process_pending() is False
        assert runs == [1, 2]

    def test_relative_and_absolute_paths_match(self, dependency_files, monkeypatch):
        watcher, _ = _watcher(dependency_files, [])
        watcher.start()

        monkeypatch.chdir(dependency_files[2].parent)
        assert watcher.notify("A.json") is True

    def test_notification_during_run_queues_another(self, dependency_files):
        runs = []
        holder = {}

        def trigger():
            runs.append(len(runs) + 1)
            if len(runs) == 2:
                holder["watcher"].notify(dependency_files[1])

        watcher = Watcher(
            on_trigger=trigger,
            on_collect_files=lambda: dependency_files,
            observer_factory=FakeObserver,
        )
        holder["watcher"] = watcher
        watcher.start()

        watcher.notify(dependency_files[0])
        assert watcher.process_pending() is True
        assert watcher.process_pending() is True
        assert watcher.process_pending() is False
        assert runs == [1, 2, 3]


class TestDependencyRecompute:

    def test_removed_dependency_is_no_longer_watched(self, dependency_files):
        runs = []
        watcher, state = _watcher(dependency_files, runs)
        watcher.start()
        removed = dependency_files[3]

        state["files"] = dependency_files[:3]
        watcher.notify(dependency_files[0])
        watcher.process_pending()

        assert removed.resolve() not in watcher.files
        assert watcher.notify(removed) is False

    def test_added_dependency_is_watched_after_next_run(self, dependency_files, write_file):
        watcher, state = _watcher(dependency_files, [])
        watcher.start()
        added = write_file("abis/C.json", "[]")

        assert watcher.notify(added) is False
        state["files"] = dependency_files + [added]
        watcher.notify(dependency_files[0])
        watcher.process_pending()

        assert watcher.notify(added) is True

    def test_failed_recompute_keeps_previous_set(self, dependency_files):
        errors = []
        calls = {"n": 0}

        def collect():
            calls["n"] += 1
            if calls["n"] > 1:
                raise ParseError("bad manifest", path="subgraph.yaml", line=1, col=1)
            return dependency_files

        watcher = Watcher(
            on_trigger=lambda: None,
            on_collect_files=collect,
            on_error=errors.append,
            observer_factory=FakeObserver,
        )
        watcher.start()
        before = watcher.files

        watcher.notify(dependency_files[0])
        watcher.process_pending()

        assert watcher.files == before
        assert len(errors) == 1
        assert isinstance(errors[0], ParseError)


class ChangingObserver(FakeObserver):
    """Reports a change to every watched directory as soon as it starts."""

    def __init__(self):
        super().__init__()
        self.handlers = []

    def schedule(self, handler, path, recursive=False):
        super().schedule(handler, path, recursive)
        self.handlers.append(handler)

    def start(self):
        super().start()
        for handler in self.handlers:
            for path in handler.watcher.files:
                handler.watcher.notify(path)


class TestInterrupt:
    """Test that an interrupted watch always releases its observer."""

    def test_interrupt_during_regeneration(self, dependency_files):
        runs = []

        def trigger():
            runs.append(len(runs) + 1)
            if len(runs) == 2:
                raise KeyboardInterrupt

        watcher = Watcher(
            on_trigger=trigger,
            on_collect_files=lambda: dependency_files,
            observer_factory=ChangingObserver,
            debounce=0,
        )

        watcher.watch()

        assert runs == [1, 2]
        observer = FakeObserver.instances[-1]
        assert observer.started
        assert observer.stopped and observer.joined

    def test_interrupt_during_first_run(self, dependency_files):
        def trigger():
            raise KeyboardInterrupt

        watcher = Watcher(
            on_trigger=trigger,
            on_collect_files=lambda: dependency_files,
            observer_factory=FakeObserver,
        )

        watcher.watch()

        assert FakeObserver.instances == []
        assert watcher.files == frozenset()
        assert not watcher.notify(dependency_files[0])


class TestChangeHandler:

    def test_directory_events_are_ignored(self):
        seen = []
        handler = DependencyChangeHandler(SimpleNamespace(notify=seen.append))

        handler.on_any_event(SimpleNamespace(is_directory=True, src_path="/tmp/abis"))

        assert seen == []

    def test_move_notifies_source_and_destination(self):
        seen = []
        handler = DependencyChangeHandler(SimpleNamespace(notify=seen.append))

        handler.on_any_event(SimpleNamespace(
            is_directory=False,
            src_path="/tmp/abis/A.json.swp",
            dest_path="/tmp/abis/A.json",
        ))

        assert seen == ["/tmp/abis/A.json.swp", "/tmp/abis/A.json"]

    def test_modification_without_destination(self):
        seen = []
        handler = DependencyChangeHandler(SimpleNamespace(notify=seen.append))

        handler.on_any_event(SimpleNamespace(is_directory=False, src_path="/tmp/schema.graphql", dest_path=""))

        assert seen == ["/tmp/schema.graphql"]
