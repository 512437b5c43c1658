"""Tests for generation counters and the debouncer."""

import asyncio

import pytest

from listing_location.hierarchy import Debouncer, RequestCoordinator
from listing_location.metrics import STALE_RESPONSES_DISCARDED


def test_tokens_increase_per_key():
    coordinator = RequestCoordinator()

    assert coordinator.current("regions") == 0
    assert coordinator.issue("regions") == 1
    assert coordinator.issue("regions") == 2
    assert coordinator.issue("communities") == 1
    assert coordinator.current("regions") == 2


def test_only_latest_token_is_accepted():
    coordinator = RequestCoordinator()
    first = coordinator.issue("regions")
    second = coordinator.issue("regions")

    assert coordinator.accept("regions", second)
    assert not coordinator.accept("regions", first)


def test_invalidate_voids_in_flight_token():
    coordinator = RequestCoordinator()
    token = coordinator.issue("settlements")

    coordinator.invalidate("settlements")

    assert not coordinator.is_current("settlements", token)


def test_stale_response_is_counted():
    coordinator = RequestCoordinator()
    stale = coordinator.issue("test-stale")
    coordinator.issue("test-stale")
    before = STALE_RESPONSES_DISCARDED.labels(level="test-stale")._value.get()

    coordinator.accept("test-stale", stale)

    after = STALE_RESPONSES_DISCARDED.labels(level="test-stale")._value.get()
    assert after == before + 1


@pytest.mark.asyncio
async def test_debouncer_last_call_wins():
    """Test rapid calls collapse into a single fetch of the last input."""
    coordinator = RequestCoordinator()
    debouncer: Debouncer[str] = Debouncer(coordinator, "search", delay=0.02)
    fetched: list[str] = []
    applied: list[str] = []

    def make_fetch(query: str):
        async def fetch() -> str:
            fetched.append(query)
            return query.upper()

        return fetch

    tasks = [debouncer.schedule(make_fetch(q), applied.append) for q in "abc"]
    results = await asyncio.gather(*tasks)

    assert results == [False, False, True]
    assert fetched == ["c"]
    assert applied == ["C"]


@pytest.mark.asyncio
async def test_debouncer_drops_result_superseded_in_flight():
    coordinator = RequestCoordinator()
    debouncer: Debouncer[str] = Debouncer(coordinator, "search", delay=0)
    release = asyncio.Event()
    applied: list[str] = []

    async def slow() -> str:
        await release.wait()
        return "slow"

    async def fast() -> str:
        return "fast"

    first = debouncer.schedule(slow, applied.append)
    await asyncio.sleep(0.01)
    second = debouncer.schedule(fast, applied.append)
    await second
    release.set()

    assert await first is False
    assert applied == ["fast"]


@pytest.mark.asyncio
async def test_debouncer_cancel():
    coordinator = RequestCoordinator()
    debouncer: Debouncer[int] = Debouncer(coordinator, "search", delay=0.01)
    applied: list[int] = []

    async def fetch() -> int:
        return 1

    task = debouncer.schedule(fetch, applied.append)
    debouncer.cancel()

    assert await task is False
    assert applied == []
