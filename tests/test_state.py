import queue
import threading
from unittest.mock import MagicMock

import pytest

from dctop.backend import DockerBackend
from dctop.cache import cache_manager
from dctop.events import Level, NewData, StatusMessage
from dctop.model import ContainerCollection, StatsSample
from dctop.state import (
    DataRefreshWorker, DisplayMode, DrawWorker, TableState, WindowBounds, container_window_bounds,
)
from dctop.stats import total_stats_summary, total_stats_text
from dctop.styler import Text


class TestWindowBounds:
    def test_rejects_inverted_or_negative(self):
        with pytest.raises(ValueError):
            WindowBounds(5, 0, 5, 10)
        with pytest.raises(ValueError):
            WindowBounds(0, 10, 5, 3)
        with pytest.raises(ValueError):
            WindowBounds(-1, 0, 5, 5)

    def test_relative_position_and_bounds(self):
        bounds = WindowBounds(2, 3, 20, 15)
        assert bounds.relative_position(3, 4) == (0, 0)
        assert bounds.relative_position(2, 3) == (-1, -1)
        assert bounds.is_out_of_bounds(21, 5)
        assert bounds.is_out_of_bounds(5, 16)
        assert not bounds.is_out_of_bounds(20, 15)
        assert bounds.inner_width == 17

    def test_container_window_leaves_status_line(self):
        assert container_window_bounds(100, 30) == WindowBounds(0, 0, 99, 28)
        # Degenerate terminals still produce a valid window
        assert container_window_bounds(0, 0) == WindowBounds(0, 0, 1, 1)


class TestTableState:
    def test_heights_follow_bounds(self):
        state = TableState.for_bounds(WindowBounds(0, 0, 99, 28))
        assert state.table_height == 23
        assert state.inspect_height == 27
        state.resize(WindowBounds(0, 0, 99, 10))
        assert state.table_height == 5
        assert state.display_mode == DisplayMode.TABLE

    def test_snapshot_is_detached(self, make_collection):
        state = TableState.for_bounds(WindowBounds(0, 0, 99, 28))
        state.containers = make_collection(3)
        snap = state.snapshot()
        state.focused_id = "c1"
        state.search_buffer = "c2"
        assert snap.focused_id == ""
        assert len(snap.visible()) == 3
        assert [r.id for r in state.visible()] == ["c2"]


class TestDataRefreshWorker:
    def setup_method(self):
        self.backend = MagicMock()
        self.inbox = queue.Queue()
        self.stop = threading.Event()
        self.worker = DataRefreshWorker(self.backend, self.inbox, self.stop, min_interval=0)

    def test_relists_when_ids_change(self, make_collection):
        old = make_collection(2)
        fresh = make_collection(3)
        self.backend.list_states.return_value = fresh.states()
        self.backend.list_containers.return_value = fresh

        assert self.worker.refresh(old) is fresh
        self.backend.list_containers.assert_called_once_with(fresh.states(), old)
        self.backend.refresh_stats.assert_not_called()

    def test_relists_when_status_changes(self, make_collection):
        old = make_collection(2)
        live = {"c0": "running", "c1": "paused"}
        fresh = make_collection(2, state="paused")
        self.backend.list_states.return_value = live
        self.backend.list_containers.return_value = fresh

        assert self.worker.refresh(old) is fresh
        self.backend.list_containers.assert_called_once_with(live, old)
        self.backend.refresh_stats.assert_not_called()

    def test_stats_only_when_nothing_changed(self, make_collection):
        old = make_collection(2)
        sample = StatsSample(read_at=9.0)
        self.backend.list_states.return_value = old.states()
        self.backend.refresh_stats.return_value = {"c0": sample, "c1": sample}

        result = self.worker.refresh(old)
        self.backend.list_containers.assert_not_called()
        assert result[0].stats.current == sample
        assert result[0].stats.previous == old[0].stats.current

    def test_failed_listing_keeps_collection(self, make_collection):
        old = make_collection(3)
        self.backend.list_states.return_value = None

        assert self.worker.refresh(old) is old
        self.backend.list_containers.assert_not_called()
        self.backend.refresh_stats.assert_not_called()

    def test_failed_relist_keeps_collection(self, make_collection):
        old = make_collection(2)
        self.backend.list_states.return_value = {"c0": "running"}
        self.backend.list_containers.return_value = None
        assert self.worker.refresh(old) is old

    def test_failed_stats_checks_for_removal(self, make_collection):
        old = make_collection(3)
        self.backend.list_states.return_value = old.states()
        self.backend.refresh_stats.return_value = {"c0": StatsSample(), "c1": None, "c2": None}
        self.backend.is_being_removed.side_effect = lambda cid: cid == "c1"
        self.backend.exists.return_value = True

        result = self.worker.refresh(old)
        assert result.get("c1").deleted
        assert result.get("c1").stats is None
        assert not result.get("c2").deleted
        assert result.get("c2").stats is None
        self.backend.is_being_removed.assert_any_call("c2")

    def test_missing_container_marked_deleted(self, make_collection):
        old = make_collection(1)
        self.backend.list_states.return_value = old.states()
        self.backend.refresh_stats.return_value = {"c0": None}
        self.backend.is_being_removed.return_value = False
        self.backend.exists.return_value = False
        assert self.worker.refresh(old)[0].deleted

    def test_cancelled_refresh_returns_none(self, make_collection):
        self.stop.set()
        assert self.worker.refresh(make_collection(1)) is None
        self.backend.list_states.assert_not_called()

    def test_cancel_between_queries(self, make_collection):
        def stop_during_list():
            self.stop.set()
            return {}
        self.backend.list_states.side_effect = stop_during_list
        assert self.worker.refresh(make_collection(1)) is None
        self.backend.list_containers.assert_not_called()

    def test_run_posts_new_data(self, make_collection):
        fresh = make_collection(2)
        self.backend.list_states.return_value = fresh.states()
        self.backend.list_containers.return_value = fresh
        self.worker.start()
        self.worker.request(ContainerCollection())
        message = self.inbox.get(timeout=5)
        self.stop.set()
        self.worker.join(timeout=5)
        assert message == NewData(fresh)
        assert not self.worker.is_alive()

    def test_run_survives_backend_errors(self, make_collection):
        old = make_collection(1)
        self.backend.list_states.side_effect = RuntimeError("daemon went away")
        self.worker.start()
        self.worker.request(old)
        message = self.inbox.get(timeout=5)
        self.stop.set()
        self.worker.join(timeout=5)
        assert message == NewData(old)


def docker_container(container_id, status):
    container = MagicMock()
    container.id, container.status = container_id, status
    return container


def inspect_payload(status):
    return {'Name': '/web', 'Config': {'Image': 'nginx'}, 'State': {'Status': status}}


class TestRefreshAgainstDockerBackend:
    """Refresh cycles over a real DockerBackend with only the docker client mocked."""

    @pytest.fixture(autouse=True)
    def docker_client(self, mocker):
        cache_manager.invalidate()
        self.client = MagicMock()
        self.client.api.stats.return_value = {'cpu_stats': {}, 'precpu_stats': {}, 'memory_stats': {}}
        mocker.patch("docker.from_env", return_value=self.client)
        self.worker = DataRefreshWorker(DockerBackend(max_workers=1), queue.Queue(),
                                        threading.Event(), min_interval=0)
        yield
        cache_manager.invalidate()

    def test_paused_container_shows_new_state(self):
        container = docker_container("abc", "running")
        self.client.containers.list.return_value = [container]
        self.client.api.inspect_container.return_value = inspect_payload("running")
        first = self.worker.refresh(ContainerCollection())
        assert first.get("abc").state == "running"

        container.status = "paused"
        self.client.api.inspect_container.return_value = inspect_payload("paused")
        second = self.worker.refresh(first)
        assert second.get("abc").state == "paused"

    def test_stopped_container_leaves_the_table(self):
        self.client.containers.list.return_value = [docker_container("abc", "running")]
        self.client.api.inspect_container.return_value = inspect_payload("running")
        first = self.worker.refresh(ContainerCollection())

        self.client.containers.list.return_value = []
        assert len(self.worker.refresh(first)) == 0

    def test_listing_error_keeps_rows(self):
        self.client.containers.list.return_value = [docker_container("abc", "running")]
        self.client.api.inspect_container.return_value = inspect_payload("running")
        first = self.worker.refresh(ContainerCollection())

        self.client.containers.list.side_effect = Exception("API error")
        second = self.worker.refresh(first)
        assert second is first
        assert [r.id for r in second] == ["abc"]


class TestDrawWorker:
    def setup_method(self):
        self.screen = MagicMock()
        self.renderer = MagicMock()
        self.posted = []
        self.stop = threading.Event()
        self.worker = DrawWorker(self.screen, self.renderer, self.stop, self.posted.append)

    def test_draw_paints_frame_and_shows(self, fake_screen, make_collection):
        self.worker.screen = fake_screen
        state = TableState.for_bounds(WindowBounds(0, 0, 9, 6))
        state.containers = make_collection(1)
        self.renderer.frame.return_value = [Text("hello"), None]

        self.worker.draw(state)
        assert fake_screen.line(1, 1, 9) == "hello   "
        assert fake_screen.line(2, 1, 9) == " " * 8
        assert fake_screen.cells[(0, 0)][0] == "┌"
        assert fake_screen.cells[(9, 6)][0] == "┘"
        assert fake_screen.shows == 1
        assert self.posted == []

    def test_title_shows_totals(self, fake_screen, make_collection):
        self.worker.screen = fake_screen
        state = TableState.for_bounds(WindowBounds(0, 0, 99, 28))
        state.containers = make_collection(2)
        self.renderer.frame.return_value = []

        self.worker.draw(state)
        title = total_stats_text(total_stats_summary(state.containers))
        assert fake_screen.line(0, 2, 2 + len(title)) == title
        assert fake_screen.cells[(0, 0)][0] == "┌"

    def test_title_is_clipped_to_the_border(self, fake_screen):
        self.worker.screen = fake_screen
        state = TableState.for_bounds(WindowBounds(0, 0, 9, 6))
        self.renderer.frame.return_value = []

        self.worker.draw(state)
        assert fake_screen.line(0, 0, 10) == "┌─ CPU -─┐"

    def test_empty_filter_posts_warning(self, make_collection):
        state = TableState.for_bounds(WindowBounds(0, 0, 9, 6))
        state.containers = make_collection(2)
        state.search_buffer = "nothing matches"
        self.renderer.frame.return_value = []
        self.worker.draw(state)
        assert self.posted == [StatusMessage(Level.WARNING, "Filtered list is empty")]

    def test_no_warning_without_search(self):
        state = TableState.for_bounds(WindowBounds(0, 0, 9, 6))
        self.renderer.frame.return_value = []
        self.worker.draw(state)
        self.worker.draw(state)
        assert self.posted == []

    def test_cancelled_draw_does_not_paint(self):
        state = TableState.for_bounds(WindowBounds(0, 0, 9, 6))
        self.renderer.frame.return_value = [Text("x")]
        self.stop.set()
        self.worker.draw(state)
        self.screen.show.assert_not_called()
