"""Runs one restoration attempt: chunk, rewrite every chunk, reassemble, check."""

import asyncio
import logging
import time
from typing import List

import aiohttp

from ..core import chunker
from ..core.errors import RewriteError
from ..models.restoration import RestorationAttemptConfig, RestorationOutcome
from .interfaces import RewriteCapability

logger = logging.getLogger(__name__)

RATIO_BELOW_THRESHOLD = "ratio below threshold"


class ChunkFailure(Exception):
    """A single chunk could not be restored; fails the whole attempt."""

    def __init__(self, index: int, total: int, reason: str):
        super().__init__(f"Chunk {index + 1}/{total} failed: {reason}")
        self.index = index
        self.reason = reason


class AttemptExecutor:
    """Executes a single attempt configuration against a text."""

    def __init__(self, rewriter: RewriteCapability, max_concurrency: int = 3):
        """Initialize the executor.

        Args:
            rewriter: Rewrite capability used for every chunk
            max_concurrency: Maximum concurrent rewrite calls within an attempt
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.rewriter = rewriter
        self.max_concurrency = max_concurrency

    async def run_attempt(
        self, text: str, config: RestorationAttemptConfig, attempt_index: int = 0
    ) -> RestorationOutcome:
        """Run one attempt. Never raises for expected failures.

        Any chunk failure rejects the whole attempt, and so does a reassembled
        text shorter than ``config.min_accept_ratio`` of the input.
        """
        started = time.monotonic()
        chunks = chunker.split(text, config.chunk_max_chars)

        try:
            restored = await self._rewrite_chunks(chunks, config)
        except ChunkFailure as e:
            return self._failed(attempt_index, str(e), len(chunks), started)

        result_text = chunker.merge(restored)
        ratio = len(result_text) / len(text) if text else 1.0

        if ratio < config.min_accept_ratio:
            logger.info(
                f"    📊 Ratio {ratio:.1%} < required {config.min_accept_ratio:.0%}"
            )
            return self._failed(
                attempt_index, RATIO_BELOW_THRESHOLD, len(chunks), started, ratio=ratio
            )

        return RestorationOutcome(
            attempt_index=attempt_index,
            success=True,
            result_text=result_text,
            ratio=ratio,
            chunk_count=len(chunks),
            elapsed_seconds=time.monotonic() - started,
        )

    async def _rewrite_chunks(
        self, chunks: List[str], config: RestorationAttemptConfig
    ) -> List[str]:
        """Rewrite chunks concurrently, cancelling the rest on first failure."""
        semaphore = asyncio.Semaphore(self.max_concurrency)
        total = len(chunks)

        async def limited_rewrite(index: int, chunk: str) -> str:
            async with semaphore:
                return await self._rewrite_chunk(index, total, chunk, config)

        tasks = [
            asyncio.ensure_future(limited_rewrite(index, chunk))
            for index, chunk in enumerate(chunks)
        ]
        try:
            return list(await asyncio.gather(*tasks))
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Collects every failure, including ones raised after the first
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _rewrite_chunk(
        self, index: int, total: int, chunk: str, config: RestorationAttemptConfig
    ) -> str:
        # Blank runs between paragraphs carry no content to restore
        if not chunk.strip():
            return chunk

        try:
            restored = await asyncio.wait_for(
                self.rewriter.rewrite(
                    config.prompt_strictness, chunk, model_tier=config.model_tier
                ),
                timeout=config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ChunkFailure(index, total, f"timed out after {config.timeout_ms}ms")
        except RewriteError as e:
            raise ChunkFailure(index, total, str(e))
        except aiohttp.ClientError as e:
            raise ChunkFailure(index, total, f"network error: {e}")
        except (KeyError, ValueError, TypeError) as e:
            raise ChunkFailure(index, total, f"data processing error: {e}")
        except Exception as e:
            raise ChunkFailure(index, total, f"unexpected error: {e}")

        if not restored or not restored.strip():
            raise ChunkFailure(index, total, "empty response")
        return restored

    @staticmethod
    def _failed(
        attempt_index: int,
        error: str,
        chunk_count: int,
        started: float,
        ratio: float = 0.0,
    ) -> RestorationOutcome:
        return RestorationOutcome(
            attempt_index=attempt_index,
            success=False,
            ratio=ratio,
            error=error,
            chunk_count=chunk_count,
            elapsed_seconds=time.monotonic() - started,
        )
