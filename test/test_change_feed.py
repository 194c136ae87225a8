import asyncio
import json

import pytest

from gallery.domain.enums import ChangeType
from gallery.services.change_feed import Change, ChangeFeed, parse_payload


def test_parse_payload():
    change = parse_payload(json.dumps({"table": "music", "type": "insert", "id": "m1", "user_id": "u1"}))

    assert change == Change(table="music", type=ChangeType.insert, id="m1", user_id="u1")
    assert parse_payload("not json") is None
    assert parse_payload(json.dumps({"table": "music"})) is None


@pytest.mark.asyncio
async def test_dispatch_reaches_matching_subscribers_only():
    feed = ChangeFeed(channel="test_changes")
    seen = []

    async def record(tag, change):
        seen.append((tag, change.id))

    feed.subscribe("music", lambda c: record("all-music", c))
    mine = feed.subscribe("music", lambda c: record("mine", c), user_id="u1")
    feed.subscribe("videos", lambda c: record("videos", c))

    scheduled = feed.dispatch(Change(table="music", type=ChangeType.insert, id="m1", user_id="u2"))
    await asyncio.sleep(0)
    assert scheduled == 1
    assert seen == [("all-music", "m1")]

    feed.dispatch(Change(table="music", type=ChangeType.delete, id="m2", user_id="u1"))
    await asyncio.sleep(0)
    assert sorted(seen[1:]) == [("all-music", "m2"), ("mine", "m2")]

    feed.unsubscribe(mine)
    assert feed.dispatch(Change(table="music", type=ChangeType.update, id="m3", user_id="u1")) == 1


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_dispatch():
    feed = ChangeFeed(channel="test_changes")
    seen = []

    async def boom(change):
        raise RuntimeError("socket closed")

    async def ok(change):
        seen.append(change.id)

    feed.subscribe("images", boom)
    feed.subscribe("images", ok)

    feed.dispatch(Change(table="images", type=ChangeType.insert, id="i1"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert seen == ["i1"]


@pytest.mark.asyncio
async def test_notify_callback_parses_and_dispatches():
    feed = ChangeFeed(channel="test_changes")
    seen = []

    async def ok(change):
        seen.append(change)

    feed.subscribe("videos", ok)
    feed._on_notify(None, 1, "test_changes", json.dumps({"table": "videos", "type": "DELETE", "id": "v1", "user_id": None}))
    await asyncio.sleep(0)

    assert seen == [Change(table="videos", type=ChangeType.delete, id="v1", user_id=None)]
