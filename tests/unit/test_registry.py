"""Tests for postwatch.core.registry."""

from datetime import datetime, timedelta, timezone

import pytest

from fakes import make_resource

from postwatch.core.registry import DuplicateChannelError, Registry


class TestAdd:
    def test_add_and_get(self):
        reg = Registry()
        res = make_resource(channel_id="chanAAAAAA1")
        reg.add(res)
        assert reg.get("chanAAAAAA1") is res
        assert "chanAAAAAA1" in reg
        assert len(reg) == 1

    def test_get_missing(self):
        assert Registry().get("nope") is None

    def test_duplicate_channel_rejected(self):
        reg = Registry()
        reg.add(make_resource(author="a", channel_id="chanAAAAAA1"))
        with pytest.raises(DuplicateChannelError):
            reg.add(make_resource(author="b", channel_id="chanAAAAAA1"))
        assert len(reg) == 1

    def test_second_channel_for_same_file_rejected(self):
        reg = Registry()
        reg.add(make_resource(channel_id="chanAAAAAA1", file_id="f1"))
        with pytest.raises(DuplicateChannelError):
            reg.add(make_resource(channel_id="chanBBBBBB1", file_id="f1"))
        assert reg.is_watched("f1")
        assert reg.channel_ids() == {"chanAAAAAA1"}


class TestDrain:
    def test_drain_empties(self):
        reg = Registry()
        reg.add(make_resource(author="a", channel_id="chanAAAAAA1"))
        reg.add(make_resource(author="b", channel_id="chanBBBBBB1"))

        drained = reg.drain()
        assert {r.author for r in drained} == {"a", "b"}
        assert len(reg) == 0
        assert reg.get("chanAAAAAA1") is None
        assert not reg.is_watched("file-a-2024-01-01")

    def test_snapshot_keeps_entries(self):
        reg = Registry()
        reg.add(make_resource())
        assert len(reg.snapshot()) == 1
        assert len(reg) == 1


class TestHealth:
    def test_all_fresh(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        reg = Registry()
        reg.add(make_resource(channel_id="chanAAAAAA1", expiration=now + timedelta(hours=1)))
        health = reg.health(now)
        assert health["status"] == "ok"
        assert health["channels"] == 1
        assert health["expired"] == 0
        assert health["next_expiration"] == (now + timedelta(hours=1)).isoformat()

    def test_expired_channel_degrades(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        reg = Registry()
        reg.add(make_resource(author="a", channel_id="chanAAAAAA1", expiration=now - timedelta(seconds=1)))
        reg.add(make_resource(author="b", channel_id="chanBBBBBB1", expiration=now + timedelta(hours=1)))
        health = reg.health(now)
        assert health["status"] == "degraded"
        assert health["expired"] == 1
        expired = {r["key"]: r["expired"] for r in health["resources"]}
        assert expired == {"a/2024-01-01": True, "b/2024-01-01": False}

    def test_empty(self):
        health = Registry().health()
        assert health["status"] == "ok"
        assert health["channels"] == 0
        assert health["next_expiration"] is None
