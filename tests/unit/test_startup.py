"""Tests for postwatch.core.startup."""

import pytest

from fakes import FakeRefresher, FakeStore, build_tree

from postwatch.core.errors import CatalogError
from postwatch.core.models import DOCX_MIME, FOLDER_MIME, RemoteFile
from postwatch.core.startup import build_registry
from postwatch.core.subscriber import ChannelSubscriber


def _subscriber(store):
    return ChannelSubscriber(store, "https://example.com/api")


class FixedIdStore(FakeStore):
    """Drive echoes the same channel id for every watch call."""

    def watch(self, file_id, body):
        echoed = super().watch(file_id, body)
        echoed["id"] = "samechannel01"
        return echoed


class TestBuildRegistry:
    def test_one_entry_per_subscribed_post(self, store):
        build_tree(store, {
            "alice": {"2024-01-01": (1, 1), "2024-02-01": (1, 0)},
            "bob": {"2024-03-01": (1, 0)},
        })
        reg = build_registry(store, _subscriber(store), "attic-posts")

        assert len(reg) == 3
        for file_id, body in store.watched:
            resource = reg.get(body["id"])
            assert resource is not None
            assert resource.file_id == file_id
            assert resource.channel.id == body["id"]
            matching = [r for r in reg.snapshot() if r.file_id == file_id]
            assert len(matching) == 1

    def test_failed_subscription_leaves_resource_out(self, store):
        build_tree(store, {"alice": {"2024-01-01": (1, 0), "2024-02-01": (1, 0)}})
        store.fail_watch.add("p-alice-2024-01-01-0")
        reg = build_registry(store, _subscriber(store), "attic-posts")

        assert len(reg) == 1
        assert [r.date for r in reg.snapshot()] == ["2024-02-01"]

    def test_missing_root_raises(self, store):
        with pytest.raises(CatalogError):
            build_registry(store, _subscriber(store), "attic-posts")

    def test_new_resources_never_refreshed(self, store):
        build_tree(store, {"alice": {"2024-01-01": (1, 0)}})
        reg = build_registry(store, _subscriber(store), "attic-posts")
        assert all(r.last_refreshed is None for r in reg.snapshot())


class TestInitialRefresh:
    def test_refreshes_each_post(self, store):
        build_tree(store, {"alice": {"2024-01-01": (1, 0), "2024-02-01": (1, 0)}})
        refresher = FakeRefresher()
        build_registry(store, _subscriber(store), "attic-posts", refresher=refresher)
        assert sorted(refresher.calls) == ["alice/2024-01-01", "alice/2024-02-01"]

    def test_refresh_failure_keeps_resource(self, store):
        build_tree(store, {"alice": {"2024-01-01": (1, 0)}})
        reg = build_registry(
            store, _subscriber(store), "attic-posts", refresher=FakeRefresher(success=False),
        )
        assert len(reg) == 1

    def test_refresh_exception_keeps_resource(self, store):
        build_tree(store, {"alice": {"2024-01-01": (1, 0)}})

        class Exploding:
            def refresh(self, resource):
                raise RuntimeError("kaboom")

        reg = build_registry(store, _subscriber(store), "attic-posts", refresher=Exploding())
        assert len(reg) == 1


class TestDuplicates:
    def test_file_in_two_date_folders_watched_once(self, store):
        build_tree(store, {"alice": {"2024-01-01": (1, 0)}})
        other = store.add("a-alice", RemoteFile("d-alice-2024-02-01", "2024-02-01", FOLDER_MIME))
        store.add(other.id, RemoteFile("p-alice-2024-01-01-0", "post0.docx", DOCX_MIME))

        reg = build_registry(store, _subscriber(store), "attic-posts")

        assert len(reg) == 1
        assert [file_id for file_id, _ in store.watched] == ["p-alice-2024-01-01-0"]
        assert [r.date for r in reg.snapshot()] == ["2024-01-01"]

    def test_rejected_channel_is_stopped(self):
        store = FixedIdStore()
        build_tree(store, {"alice": {"2024-01-01": (1, 0), "2024-02-01": (1, 0)}})

        reg = build_registry(store, _subscriber(store), "attic-posts")

        assert len(reg) == 1
        assert len(store.watched) == 2
        assert store.stopped == ["samechannel01"]
        assert reg.get("samechannel01").date == "2024-01-01"

    def test_rejected_channel_stop_failure_is_logged(self, caplog):
        store = FixedIdStore()
        store.fail_stop.add("samechannel01")
        build_tree(store, {"alice": {"2024-01-01": (1, 0), "2024-02-01": (1, 0)}})
        refresher = FakeRefresher()

        reg = build_registry(store, _subscriber(store), "attic-posts", refresher=refresher)

        assert len(reg) == 1
        assert store.stopped == ["samechannel01"]
        assert refresher.calls == ["alice/2024-01-01"]
        assert "Error stopping rejected channel samechannel01" in caplog.text
