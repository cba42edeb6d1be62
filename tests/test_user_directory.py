from __future__ import annotations

import asyncio
from typing import List

from cowrite.collab.directory import CachedUserProfile, UserDirectory

KNOWN = {
    "user-0001": {"id": "user-0001", "name": "Ada", "email": "ada@example.com"},
    "user-0002": {"id": "user-0002", "name": "Brook", "email": "brook@example.com"},
    "user-0003": {"id": "user-0003", "name": "Cy", "email": "cy@example.com"},
}


class RecordingLookup:
    def __init__(self, fail: bool = False) -> None:
        self.calls: List[List[str]] = []
        self.fail = fail

    async def __call__(self, ids: List[str]):
        self.calls.append(list(ids))
        if self.fail:
            raise ConnectionError("directory offline")
        return [KNOWN[user_id] for user_id in ids if user_id in KNOWN]


def test_only_uncached_ids_are_fetched_in_one_batch() -> None:
    lookup = RecordingLookup()
    directory = UserDirectory(lookup)

    async def scenario():
        first = await directory.resolve(["user-0001", "user-0002"])
        second = await directory.resolve(["user-0001", "user-0003"])
        return first, second

    first, second = asyncio.run(scenario())
    assert lookup.calls == [["user-0001", "user-0002"], ["user-0003"]]
    assert first["user-0002"].name == "Brook"
    assert set(second) == {"user-0001", "user-0003"}
    assert second["user-0003"].email == "cy@example.com"


def test_fully_cached_request_makes_no_lookup() -> None:
    lookup = RecordingLookup()
    directory = UserDirectory(lookup)

    async def scenario():
        await directory.resolve(["user-0001"])
        return await directory.resolve(["user-0001", "user-0001"])

    result = asyncio.run(scenario())
    assert len(lookup.calls) == 1
    assert list(result) == ["user-0001"]


def test_unknown_ids_get_uncached_placeholders() -> None:
    lookup = RecordingLookup()
    directory = UserDirectory(lookup)

    async def scenario():
        first = await directory.resolve(["user-0001", "stranger-9xyz"])
        await directory.resolve(["stranger-9xyz"])
        return first

    result = asyncio.run(scenario())
    assert result["stranger-9xyz"] == CachedUserProfile(
        id="stranger-9xyz", name="User 9xyz", email="", placeholder=True
    )
    assert "stranger-9xyz" not in directory
    assert lookup.calls[-1] == ["stranger-9xyz"]


def test_failed_lookup_never_raises() -> None:
    directory = UserDirectory(RecordingLookup(fail=True))
    result = asyncio.run(directory.resolve(["user-0002"]))
    assert result["user-0002"].name == "User 0002"
    assert result["user-0002"].as_dict() == {
        "id": "user-0002",
        "name": "User 0002",
        "email": "",
    }
    assert len(directory) == 0


def test_malformed_lookup_results_fall_back_to_placeholders() -> None:
    async def envelope(ids):
        return {"users": [{"id": "user-0001", "name": "Ada"}]}

    async def mixed(ids):
        return ["user-0002", None, {"id": "user-0003", "name": "Cy"}]

    async def not_iterable(ids):
        return 42

    wrapped = asyncio.run(UserDirectory(envelope).resolve(["user-0001"]))
    assert wrapped["user-0001"].placeholder
    assert wrapped["user-0001"].name == "User 0001"

    directory = UserDirectory(mixed)
    partial = asyncio.run(directory.resolve(["user-0002", "user-0003"]))
    assert partial["user-0002"].placeholder
    assert partial["user-0003"].name == "Cy"
    assert "user-0003" in directory and "user-0002" not in directory

    scalar = asyncio.run(UserDirectory(not_iterable).resolve(["user-0003"]))
    assert scalar["user-0003"].name == "User 0003"
