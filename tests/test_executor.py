"""Tests for single restoration attempts."""

import asyncio
import gc

import pytest

from content_restorer.core.errors import RewriteError
from content_restorer.models.restoration import PromptStrictness, RestorationAttemptConfig
from content_restorer.restoration import AttemptExecutor
from content_restorer.restoration.executor import RATIO_BELOW_THRESHOLD
from conftest import StubRewriter, build_article


def make_config(**overrides):
    values = dict(
        model_tier="primary",
        chunk_max_chars=1000,
        min_accept_ratio=0.85,
        prompt_strictness=PromptStrictness.STRICT,
        timeout_ms=1000,
    )
    values.update(overrides)
    return RestorationAttemptConfig(**values)


@pytest.mark.asyncio
async def test_identity_rewrite_succeeds():
    text = build_article()
    rewriter = StubRewriter()
    executor = AttemptExecutor(rewriter)

    outcome = await executor.run_attempt(text, make_config(), attempt_index=2)

    assert outcome.success is True
    assert outcome.result_text == text
    assert outcome.ratio == 1.0
    assert outcome.attempt_index == 2
    assert outcome.chunk_count == len(rewriter.calls)
    assert all(call[0] == "primary" for call in rewriter.calls)


@pytest.mark.asyncio
async def test_ratio_below_threshold_fails():
    text = build_article()
    rewriter = StubRewriter(lambda chunk, tier: chunk[: int(len(chunk) * 0.8)])

    outcome = await AttemptExecutor(rewriter).run_attempt(text, make_config())

    assert outcome.success is False
    assert outcome.error == RATIO_BELOW_THRESHOLD
    assert outcome.result_text is None
    assert outcome.ratio < 0.85


@pytest.mark.asyncio
async def test_ratio_at_threshold_is_accepted():
    text = build_article()
    rewriter = StubRewriter(lambda chunk, tier: chunk[: int(len(chunk) * 0.9)])

    outcome = await AttemptExecutor(rewriter).run_attempt(
        text, make_config(min_accept_ratio=0.85)
    )

    assert outcome.success is True
    assert len(outcome.result_text) >= 0.85 * len(text)


@pytest.mark.asyncio
async def test_empty_input_has_ratio_one():
    outcome = await AttemptExecutor(StubRewriter()).run_attempt("", make_config())

    assert outcome.success is True
    assert outcome.ratio == 1.0
    assert outcome.result_text == ""


@pytest.mark.asyncio
async def test_timeout_fails_attempt():
    rewriter = StubRewriter(delay=1.0)

    outcome = await AttemptExecutor(rewriter).run_attempt(
        build_article(), make_config(timeout_ms=20)
    )

    assert outcome.success is False
    assert "timed out after 20ms" in outcome.error


@pytest.mark.asyncio
async def test_rewrite_error_fails_attempt():
    rewriter = StubRewriter(lambda chunk, tier: RewriteError("model overloaded"))

    outcome = await AttemptExecutor(rewriter).run_attempt(build_article(), make_config())

    assert outcome.success is False
    assert "model overloaded" in outcome.error


@pytest.mark.asyncio
async def test_empty_response_fails_attempt():
    rewriter = StubRewriter(lambda chunk, tier: "   ")

    outcome = await AttemptExecutor(rewriter).run_attempt(build_article(), make_config())

    assert outcome.success is False
    assert "empty response" in outcome.error


@pytest.mark.asyncio
async def test_chunk_failure_cancels_siblings():
    started = []
    cancelled = []

    class SlowAndFailing(StubRewriter):
        async def rewrite(self, strictness, chunk_text, model_tier="primary"):
            index = len(started)
            started.append(index)
            if index == 0:
                await asyncio.sleep(0.01)
                raise RewriteError("first chunk failed")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(index)
                raise
            return chunk_text

    executor = AttemptExecutor(SlowAndFailing(), max_concurrency=3)
    outcome = await asyncio.wait_for(
        executor.run_attempt(build_article(), make_config(timeout_ms=30000)), timeout=5
    )

    assert outcome.success is False
    assert "first chunk failed" in outcome.error
    assert {1, 2} <= set(cancelled)
    # Every chunk call that started after the failing one was cancelled
    assert sorted(cancelled) == started[1:]
    assert len(started) < 12


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    in_flight = 0
    peak = 0

    class Tracking(StubRewriter):
        async def rewrite(self, strictness, chunk_text, model_tier="primary"):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return chunk_text

    await AttemptExecutor(Tracking(), max_concurrency=2).run_attempt(
        build_article(), make_config(chunk_max_chars=500)
    )

    assert peak == 2


@pytest.mark.asyncio
async def test_whitespace_chunks_skip_rewrite():
    text = "first paragraph\n\n   \n\nsecond paragraph"
    rewriter = StubRewriter(lambda chunk, tier: chunk.upper())

    outcome = await AttemptExecutor(rewriter).run_attempt(
        text, make_config(chunk_max_chars=5, min_accept_ratio=0.5)
    )

    assert outcome.success is True
    assert outcome.result_text == "FIRST PARAGRAPH\n\n   \n\nSECOND PARAGRAPH"
    assert len(rewriter.calls) == 2


@pytest.mark.asyncio
async def test_input_is_not_mutated():
    text = build_article()
    original = str(text)

    await AttemptExecutor(StubRewriter(lambda c, t: c.upper())).run_attempt(text, make_config())

    assert text == original


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        AttemptExecutor(StubRewriter(), max_concurrency=0)


@pytest.mark.asyncio
async def test_simultaneous_chunk_failures_are_all_retrieved():
    unretrieved = []
    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: unretrieved.append(context))

    try:
        # Every chunk sleeps the same delay, so several fail in one loop pass
        rewriter = StubRewriter(lambda chunk, tier: RewriteError("upstream overloaded"), delay=0.01)
        outcome = await AttemptExecutor(rewriter, max_concurrency=3).run_attempt(
            build_article(), make_config(chunk_max_chars=500)
        )
        gc.collect()
        await asyncio.sleep(0)
    finally:
        loop.set_exception_handler(previous_handler)

    assert outcome.success is False
    assert "upstream overloaded" in outcome.error
    assert unretrieved == []
