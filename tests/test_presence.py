from __future__ import annotations

import asyncio

from cowrite.client.session import AuthSession
from cowrite.collab.presence import (
    PALETTE,
    CollaborationSessionManager,
    LocalPresenceChannel,
    LocalPresenceHub,
    color_for,
)


def _auth(user_id: str, name: str = "") -> AuthSession:
    return AuthSession(user_id, "token", email=f"{user_id}@example.com", display_name=name)


class BrokenChannel(LocalPresenceChannel):
    async def join(self, client_id: str) -> None:
        raise ConnectionError("transport down")


def test_color_matches_browser_hash() -> None:
    assert color_for("a") == PALETTE[7]
    assert color_for("ab") == PALETTE[5]
    assert color_for("") == PALETTE[0]
    long_id = "x" * 64 + "-user-with-a-long-identifier"
    assert color_for(long_id) == color_for(long_id)
    assert color_for(long_id) in PALETTE


def test_participants_follow_channel_snapshots() -> None:
    channel = LocalPresenceChannel("doc-1")
    alice = CollaborationSessionManager(channel, _auth("alice", "Alice"), client_id="c-alice")
    bob = CollaborationSessionManager(channel, _auth("bob"), client_id="c-bob")

    async def scenario():
        await alice.start()
        await bob.start()

    asyncio.run(scenario())

    names = {p.user_id: p.name for p in alice.active_participants()}
    assert names == {"alice": "Alice", "bob": "bob"}
    colors = {p.user_id: p.color for p in bob.active_participants()}
    assert colors["alice"] == color_for("alice")

    bob.update_cursor({"anchor": 3, "head": 5})
    cursor = {p.user_id: p.cursor for p in alice.active_participants()}["bob"]
    assert cursor == {"anchor": 3, "head": 5}

    channel.disconnect("c-bob")
    assert [p.user_id for p in alice.active_participants()] == ["alice"]


def test_stop_unsubscribes_without_withdrawing() -> None:
    channel = LocalPresenceChannel("doc-2")
    alice = CollaborationSessionManager(channel, _auth("alice"), client_id="c-alice")
    bob = CollaborationSessionManager(channel, _auth("bob"), client_id="c-bob")

    async def scenario():
        await alice.start()
        await alice.start()
        await bob.start()

    asyncio.run(scenario())
    assert channel.listener_count == 2

    bob.stop()
    assert channel.listener_count == 1
    assert "c-bob" in channel.snapshot()

    channel.disconnect("c-bob")
    assert len(bob.active_participants()) == 2
    assert len(alice.active_participants()) == 1


def test_start_failure_degrades_to_empty_presence() -> None:
    manager = CollaborationSessionManager(BrokenChannel("doc-3"), _auth("alice"))
    asyncio.run(manager.start())
    assert manager.active_participants() == ()
    assert manager.connected is False
    manager.update_cursor({"anchor": 1})


def test_entries_without_user_are_ignored() -> None:
    channel = LocalPresenceChannel("doc-4")
    channel.publish("bare-client", {"cursor": None})
    manager = CollaborationSessionManager(channel, _auth("alice"), client_id="c-alice")
    asyncio.run(manager.start())
    assert [p.client_id for p in manager.active_participants()] == ["c-alice"]


def test_hub_reuses_channels_and_discards_empty_ones() -> None:
    hub = LocalPresenceHub()
    first = hub.channel("doc-5")
    assert hub.channel("doc-5") is first
    hub.discard_empty()
    assert hub.channel("doc-5") is not first
