"""Tests for postwatch.core.lifecycle."""

import signal
from unittest.mock import MagicMock, patch

from fakes import FakeStore, make_resource

from postwatch.core.lifecycle import LifecycleController, terminate_process
from postwatch.core.models import StopReport
from postwatch.core.registry import Registry


def _registry(n: int) -> Registry:
    reg = Registry()
    for i in range(n):
        reg.add(make_resource(author=f"author{i}", channel_id=f"channel{i:04d}"))
    return reg


class FlakyStore(FakeStore):
    """Raises a non-Drive error when stopping one channel."""

    def __init__(self, bad_channel: str) -> None:
        super().__init__()
        self.bad_channel = bad_channel

    def stop_channel(self, channel):
        self.stopped.append(channel.id)
        if channel.id == self.bad_channel:
            raise RuntimeError("connection reset")


class TestStopAll:
    def test_all_succeed(self, store):
        reg = _registry(3)
        controller = LifecycleController(reg, store, exit_fn=MagicMock())

        report = controller.stop_all()

        assert report == StopReport(attempted=3)
        assert report.ok
        assert report.attempted == 3
        assert sorted(store.stopped) == ["channel0000", "channel0001", "channel0002"]

    def test_partial_failure_attempts_all(self, store):
        reg = _registry(5)
        store.fail_stop.add("channel0002")
        controller = LifecycleController(reg, store, exit_fn=MagicMock())

        report = controller.stop_all()

        assert not report.ok
        assert report.attempted == 5
        assert report.failed == ["channel0002"]
        assert len(store.stopped) == 5

    def test_unexpected_error_attempts_all(self):
        store = FlakyStore("channel0001")
        reg = _registry(3)
        controller = LifecycleController(reg, store, exit_fn=MagicMock())

        report = controller.stop_all()

        assert not report.ok
        assert report.failed == ["channel0001"]
        assert sorted(store.stopped) == ["channel0000", "channel0001", "channel0002"]
        assert len(reg) == 0

    def test_registry_drained(self, store):
        reg = _registry(2)
        LifecycleController(reg, store, exit_fn=MagicMock()).stop_all()
        assert len(reg) == 0
        assert reg.get("channel0000") is None

    def test_empty_registry(self, store):
        report = LifecycleController(Registry(), store, exit_fn=MagicMock()).stop_all()
        assert report.ok
        assert report.attempted == 0

    def test_stop_does_not_exit(self, store):
        exit_fn = MagicMock()
        LifecycleController(_registry(1), store, exit_fn=exit_fn).stop_all()
        exit_fn.assert_not_called()


class TestExit:
    def test_exit_calls_exit_fn(self, store):
        exit_fn = MagicMock()
        LifecycleController(Registry(), store, exit_fn=exit_fn).exit()
        exit_fn.assert_called_once()

    @patch("postwatch.core.lifecycle.os.kill")
    @patch("postwatch.core.lifecycle.os.getpid", return_value=4242)
    def test_terminate_process_sends_sigterm(self, mock_pid, mock_kill):
        terminate_process()
        mock_kill.assert_called_once_with(4242, signal.SIGTERM)
