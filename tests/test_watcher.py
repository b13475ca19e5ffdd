"""Tests for the watcher facade using in-memory handles."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from treewatch.config import WatcherConfig
from treewatch.exceptions import WatcherStoppedError
from treewatch.models import ChangeKind, LifecycleState
from treewatch.watcher import Watcher, create, create_recursive, create_recursive_adaptive

from conftest import FakeHandleFactory, wait_until

FAST = WatcherConfig(idle_backoff_ms=1)


def make_watcher(recorder, factory, *paths, config=FAST):
    return Watcher(*recorder.callbacks, *paths, config=config, handle_factory=factory)


class TestWatcherConstruction:
    """Tests for registration at construction."""

    def test_initial_state(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        
        assert watcher.state is LifecycleState.PREPARED
        assert watcher.is_running is False
        assert watcher.roots() == [tmp_path]

    def test_partial_failure_does_not_raise(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path / "missing", tmp_path)
        assert watcher.roots() == [tmp_path]

    def test_no_valid_paths(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path / "missing")
        assert watcher.roots() == []

    def test_create_helpers_select_modes(self, tmp_path, recorder, fake_factory):
        plain = create(*recorder.callbacks, tmp_path, handle_factory=fake_factory)
        recursive = create_recursive(*recorder.callbacks, tmp_path, handle_factory=FakeHandleFactory())
        adaptive = create_recursive_adaptive(*recorder.callbacks, tmp_path, handle_factory=FakeHandleFactory())
        
        assert (plain.recursive, plain.adaptive) == (False, False)
        assert (recursive.recursive, recursive.adaptive) == (True, False)
        assert (adaptive.recursive, adaptive.adaptive) == (True, True)

    def test_create_helpers_do_not_mutate_config(self, tmp_path, recorder, fake_factory):
        config = WatcherConfig(idle_backoff_ms=3)
        
        watcher = create_recursive_adaptive(*recorder.callbacks, tmp_path, config=config, handle_factory=fake_factory)
        
        assert config.adaptive is False
        assert watcher.config.idle_backoff_ms == 3

    def test_repr(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        assert "state=prepared" in repr(watcher)


class TestWatcherLifecycle:
    """Tests for start, stop, clean and join."""

    def test_start_runs_loop(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.start()
        
        fake_factory.opened[0].emit(ChangeKind.CREATE, "a.txt")
        
        assert wait_until(lambda: recorder.created == [tmp_path / "a.txt"])
        watcher.stop()
        assert watcher.join(timeout=2.0)

    def test_start_twice_submits_once(self, tmp_path, recorder, fake_factory):
        executor = Mock()
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        
        watcher.start(executor)
        watcher.start(executor)
        
        assert executor.submit.call_count == 1
        assert watcher.state is LifecycleState.RUNNING

    def test_start_after_stop_raises(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.start()
        watcher.stop()
        
        with pytest.raises(WatcherStoppedError):
            watcher.start()
        assert watcher.state is LifecycleState.STOPPED
        watcher.join(timeout=2.0)

    def test_stop_before_start_prevents_start(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.stop()
        
        with pytest.raises(WatcherStoppedError):
            watcher.start()
        assert watcher.join(timeout=0.1) is True

    def test_loop_releases_handles_after_stop(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.start()
        
        watcher.stop()
        
        assert watcher.join(timeout=2.0)
        assert fake_factory.opened[0].closed

    def test_start_on_executor(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        
        with ThreadPoolExecutor(max_workers=1) as executor:
            watcher.start(executor)
            fake_factory.opened[0].emit(ChangeKind.DELETE, "gone.txt")
            assert wait_until(lambda: recorder.deleted == [tmp_path / "gone.txt"])
            watcher.stop()
        
        assert watcher.join(timeout=2.0)

    def test_rejected_submission_stops_watcher(self, tmp_path, recorder, fake_factory):
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        
        with pytest.raises(RuntimeError):
            watcher.start(executor)
        assert watcher.state is LifecycleState.STOPPED

    def test_empty_watcher_stops_itself(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path / "missing")
        watcher.start()
        
        assert watcher.join(timeout=2.0)
        assert watcher.state is LifecycleState.STOPPED

    def test_all_roots_gone_stops_watcher(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.start()
        
        fake_factory.opened[0].gone = True
        
        assert watcher.join(timeout=2.0)
        assert watcher.state is LifecycleState.STOPPED

    def test_clean_is_idempotent(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.start()
        watcher.stop()
        watcher.join(timeout=2.0)
        
        watcher.clean()
        watcher.clean()
        
        assert fake_factory.opened[0].closed
        assert recorder.created == recorder.modified == recorder.deleted == []

    def test_clean_before_start(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        
        watcher.clean()
        
        assert fake_factory.opened[0].closed

    def test_clean_while_running_ends_loop(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.start()
        
        watcher.clean()
        
        assert watcher.join(timeout=2.0)

    def test_injected_factory_not_shut_down(self, tmp_path, recorder, fake_factory):
        watcher = make_watcher(recorder, fake_factory, tmp_path)
        watcher.clean()
        assert fake_factory.shutdown_calls == 0

    def test_context_manager_stops_and_cleans(self, tmp_path, recorder, fake_factory):
        with make_watcher(recorder, fake_factory, tmp_path) as watcher:
            watcher.start()
        
        assert watcher.state is LifecycleState.STOPPED
        assert fake_factory.opened[0].closed
        assert watcher.join(timeout=2.0)
