"""
Source Fetcher — Retry & Backoff Tests
Level 1: FakeSession replaces aiohttp; sleep and jitter are injected.

Tests the polite delay before every attempt, retries on 429 / 5xx /
network errors, immediate failure on other statuses, and the final
FetchError with its cause.
"""

from __future__ import annotations

import asyncio
import random

import aiohttp
import pytest

from fii_screener.config.constants import DETAIL_URL, SOURCE_HEADERS
from fii_screener.exceptions import FetchError, TransientStatusError
from fii_screener.tools.source_fetcher import (
    FetchPolicy,
    SourceFetcher,
    is_retryable_status,
)
from tests.fixtures.conftest import FakeResponse, FakeSession, LowRng, RecordingSleep


class BlockingBackoffSleep(RecordingSleep):
    """Records delays; the first backoff (>= 1s) never returns."""

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if delay >= 1.0:
            await asyncio.Event().wait()


def _fetcher(outcomes: list) -> tuple[SourceFetcher, FakeSession, RecordingSleep]:
    session = FakeSession(outcomes)
    sleep = RecordingSleep()
    fetcher = SourceFetcher(session=session, sleep=sleep, rng=LowRng())
    return fetcher, session, sleep


# ---------------------------------------------------------------------------
# TestFetchPolicy
# ---------------------------------------------------------------------------

@pytest.mark.schema
class TestFetchPolicy:

    def test_retryable_statuses(self):
        assert is_retryable_status(429)
        assert is_retryable_status(500)
        assert is_retryable_status(503)
        assert not is_retryable_status(404)
        assert not is_retryable_status(403)

    def test_backoff_is_exponential(self):
        policy = FetchPolicy()
        rng = LowRng()
        assert [policy.backoff(a, rng) for a in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_polite_delay_within_range(self):
        policy = FetchPolicy()
        rng = random.Random(7)
        low, high = policy.polite_delay_range_s
        for _ in range(50):
            assert low <= policy.polite_delay(rng) <= high

    def test_detail_url_encodes_normalized_ticker(self):
        fetcher = SourceFetcher(session=FakeSession([]))
        assert fetcher.detail_url_for(" hglg11 ") == DETAIL_URL + "HGLG11"


# ---------------------------------------------------------------------------
# TestFetch
# ---------------------------------------------------------------------------

@pytest.mark.behavior
class TestFetch:

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        fetcher, session, sleep = _fetcher([FakeResponse(200, "<html/>")])
        assert await fetcher.fetch("https://x") == "<html/>"
        assert sleep.delays == [0.9]
        assert session.requests[0]["headers"]["User-Agent"] == SOURCE_HEADERS["User-Agent"]

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self):
        fetcher, session, sleep = _fetcher([
            FakeResponse(503), FakeResponse(200, "ok"),
        ])
        assert await fetcher.fetch("https://x") == "ok"
        assert len(session.requests) == 2
        # polite, backoff(1), polite
        assert sleep.delays == [0.9, 1.0, 0.9]

    @pytest.mark.asyncio
    async def test_retries_network_error(self):
        fetcher, session, _ = _fetcher([
            aiohttp.ClientConnectionError("reset"),
            asyncio.TimeoutError(),
            FakeResponse(200, "ok"),
        ])
        assert await fetcher.fetch("https://x") == "ok"
        assert len(session.requests) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """4 consecutive 429s -> FetchError whose cause is the last 429."""
        fetcher, session, sleep = _fetcher([FakeResponse(429) for _ in range(4)])
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://x")

        err = exc_info.value
        assert err.attempts == 4
        assert isinstance(err.cause, TransientStatusError)
        assert err.cause.status == 429
        assert err.__cause__ is err.cause
        assert len(session.requests) == 4
        assert sleep.delays == [0.9, 1.0, 0.9, 2.0, 0.9, 4.0, 0.9]

    @pytest.mark.asyncio
    async def test_not_found_fails_immediately(self):
        fetcher, session, _ = _fetcher([FakeResponse(404), FakeResponse(200, "never")])
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://x")
        assert exc_info.value.status == 404
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_custom_attempt_limit(self):
        session = FakeSession([FakeResponse(500), FakeResponse(500)])
        fetcher = SourceFetcher(
            session=session, policy=FetchPolicy(max_attempts=2),
            sleep=RecordingSleep(), rng=LowRng(),
        )
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://x")
        assert exc_info.value.attempts == 2

    @pytest.mark.asyncio
    async def test_fetch_detail_uses_detail_url(self):
        fetcher, session, _ = _fetcher([FakeResponse(200, "detail")])
        await fetcher.fetch_detail("knri11")
        assert session.requests[0]["url"] == DETAIL_URL + "KNRI11"

    @pytest.mark.asyncio
    async def test_undecodable_body_is_replaced(self):
        fetcher, _, _ = _fetcher([FakeResponse(200, b"Dividendos 13,20 \xff\xfe")])
        body = await fetcher.fetch("https://x")
        assert body.startswith("Dividendos 13,20")
        assert "\ufffd" in body

    @pytest.mark.asyncio
    async def test_no_session_raises(self):
        fetcher = SourceFetcher(sleep=RecordingSleep())
        with pytest.raises(RuntimeError):
            await fetcher.fetch("https://x")


# ---------------------------------------------------------------------------
# TestSessionLifecycle
# ---------------------------------------------------------------------------

@pytest.mark.behavior
class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        session = FakeSession([])
        async with SourceFetcher(session=session):
            pass
        assert session.closed is False

    @pytest.mark.asyncio
    async def test_owned_session_is_closed(self):
        fetcher = SourceFetcher()
        async with fetcher:
            assert fetcher._session is not None
        assert fetcher._session is None


# ---------------------------------------------------------------------------
# TestCancellation
# ---------------------------------------------------------------------------

@pytest.mark.behavior
class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retries(self):
        session = FakeSession([FakeResponse(503), FakeResponse(200, "never")])
        sleep = BlockingBackoffSleep()
        fetcher = SourceFetcher(session=session, sleep=sleep, rng=LowRng())

        task = asyncio.create_task(fetcher.fetch("https://x"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert sleep.delays == [0.9, 1.0]

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_cancelled_request_is_not_retried(self):
        fetcher, session, _ = _fetcher([
            asyncio.CancelledError(), FakeResponse(200, "never"),
        ])
        with pytest.raises(asyncio.CancelledError):
            await fetcher.fetch("https://x")
        assert len(session.requests) == 1
