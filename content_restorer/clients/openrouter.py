"""OpenRouter API client used as the text rewrite capability."""

import asyncio
import logging
import re
import time
from typing import Any, Dict, Optional

import aiohttp

from ..core.errors import RewriteError
from ..models.restoration import PromptStrictness
from ..restoration.interfaces import RewriteCapability

logger = logging.getLogger(__name__)

# Model tiers referenced by the attempt policy table
DEFAULT_MODEL_TIERS = {
    "primary": "openai/gpt-4o-mini",
    "flagship": "google/gemini-pro-1.5",
    "fast": "google/gemini-flash-1.5-8b",
    "lite": "meta-llama/llama-3.2-11b-vision-instruct:free",
}

RESTORATION_PROMPT_STRICT = """Act as the managing editor of a long-form publication. Below is part of an article that needs technical restoration before it goes live.

REMOVE:
- Filler phrases repeated across the text ("to be honest", "in other words" and the like)
- Editorial notes in square brackets and leftover Markdown markers (**, ##)
- Double spaces and stray symbols

FIX:
- Words glued together ("end.Then" becomes "end. Then")
- Sentence fragments cut off at paragraph boundaries: join them to the sentence they belong to
- Dialogue lines start on a new line with a dash
- Paragraphs of 3-5 sentences, comfortable to read on a phone

NEVER:
- Shorten, summarize or drop content
- Rewrite the story, change names, places or facts
- Add commentary of your own

Output ONLY the finished text, without any explanation.

Text:
"""

RESTORATION_PROMPT_MEDIUM = """Clean up the formatting of this article excerpt:
- Split glued words and join broken sentences
- Remove repeated filler phrases, square-bracket notes and Markdown markers
- Keep every sentence and every fact, do not summarize

Output ONLY the cleaned text.

Text:
"""

RESTORATION_PROMPT_SOFT = """Please just improve the formatting of this text:
- Split it into paragraphs
- Fix obvious errors
- Keep all of the content

IMPORTANT: Output ONLY the finished text, with no comments.

Text:
"""

PROMPTS = {
    PromptStrictness.STRICT: RESTORATION_PROMPT_STRICT,
    PromptStrictness.MEDIUM: RESTORATION_PROMPT_MEDIUM,
    PromptStrictness.SOFT: RESTORATION_PROMPT_SOFT,
}

REFUSAL_PATTERNS = [
    "i cannot fulfill your request",
    "i am just an ai model",
    "i can't provide assistance",
    "i cannot create content",
    "it is not within my programming",
    "ethical guidelines",
    "i'm unable to",
    "i cannot help with",
    "i'm not able to",
    "as an ai",
    "i'm an ai",
]

PREAMBLE = re.compile(
    r"\A\s*(?:here is|here's|sure|certainly|okay|of course|вот|конечно|держите)\b"
    r"[^\n]{0,120}?:[ \t]*\n+",
    re.IGNORECASE,
)
CODE_FENCE = re.compile(r"\A```(?:markdown|md|text)?[ \t]*\n(.*?)\n?```\Z", re.DOTALL)


def clean_response(text: str) -> str:
    """Strip conversational preambles and code fences from a model answer."""
    cleaned = text.strip()
    cleaned = PREAMBLE.sub("", cleaned, count=1)
    fenced = CODE_FENCE.match(cleaned.strip())
    if fenced:
        cleaned = fenced.group(1)
    return cleaned.strip()


def is_refusal(text: str) -> bool:
    """Check the opening of an answer for model refusal patterns."""
    opening = text[:300].lower()
    return any(pattern in opening for pattern in REFUSAL_PATTERNS)


class OpenRouterClient(RewriteCapability):
    """Rewrite capability backed by the OpenRouter chat completions API."""

    def __init__(
        self,
        api_key: str,
        settings=None,
        model_tiers: Optional[Dict[str, str]] = None,
    ):
        """Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            settings: Settings instance for configuration values
            model_tiers: Mapping of policy model tiers to OpenRouter model ids
        """
        self.api_key = api_key
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "X-Title": "Content Restorer",
        }
        self.model_tiers = dict(DEFAULT_MODEL_TIERS)
        if model_tiers:
            self.model_tiers.update(model_tiers)

        # Rate limiting configuration - use settings if provided, fallback to defaults
        self.last_request_time = 0.0
        if settings:
            self.base_url = settings.openrouter_base_url
            self.min_request_interval = settings.openrouter_min_request_interval
            self.max_backoff_multiplier = settings.openrouter_max_backoff_multiplier
            self.timeout = settings.openrouter_timeout
        else:
            self.base_url = "https://openrouter.ai/api/v1"
            self.min_request_interval = 3.2
            self.max_backoff_multiplier = 8.0
            self.timeout = 30.0

        self.consecutive_failures = 0
        self.backoff_multiplier = 1.0
        self._rate_lock = asyncio.Lock()

    def resolve_model(self, model_tier: str) -> str:
        """Map a policy tier to a model id; ids containing '/' pass through."""
        if model_tier in self.model_tiers:
            return self.model_tiers[model_tier]
        if "/" in model_tier:
            return model_tier
        raise RewriteError(f"Unknown model tier: {model_tier}")

    @staticmethod
    def build_prompt(strictness: PromptStrictness, chunk_text: str) -> str:
        return f"{PROMPTS[PromptStrictness(strictness)]}\n{chunk_text}"

    async def rewrite(
        self,
        strictness: PromptStrictness,
        chunk_text: str,
        model_tier: str = "primary",
    ) -> str:
        """Restore one chunk of text.

        Raises:
            RewriteError: On HTTP errors, empty answers and refusals
        """
        if not self.api_key:
            raise RewriteError("No OpenRouter API key configured")

        payload = {
            "model": self.resolve_model(model_tier),
            "messages": [
                {"role": "user", "content": self.build_prompt(strictness, chunk_text)}
            ],
            # Restoration must not shorten the text, leave headroom
            "max_tokens": min(8192, len(chunk_text) // 2 + 512),
            "temperature": 0.3,
            "stream": False,
        }

        response = await self._make_single_request(payload)
        try:
            content = response["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise RewriteError(f"Malformed OpenRouter response: {e}") from e

        restored = clean_response(content)
        if not restored:
            raise RewriteError("empty response")
        if is_refusal(restored):
            logger.warning(f"LLM refusal detected from {payload['model']}")
            raise RewriteError("model refused the request")
        return restored

    async def _rate_limit_delay(self):
        """Ensure we don't exceed rate limits by adding delays between requests."""
        async with self._rate_lock:
            time_since_last = time.time() - self.last_request_time

            # Apply exponential backoff if we've had consecutive failures
            effective_interval = self.min_request_interval * self.backoff_multiplier

            if time_since_last < effective_interval:
                delay = effective_interval - time_since_last
                logger.debug(
                    f"Rate limiting: waiting {delay:.1f}s before next OpenRouter request"
                )
                await asyncio.sleep(delay)

            self.last_request_time = time.time()

    async def _make_single_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make a single request to OpenRouter API.

        Raises:
            RewriteError: If the API answered with an error status
        """
        await self._rate_limit_delay()

        async with aiohttp.ClientSession() as session:
            async with session.post(
                f"{self.base_url}/chat/completions",
                headers=self.headers,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status == 200:
                    # Reset backoff on successful request
                    self.consecutive_failures = 0
                    self.backoff_multiplier = 1.0
                    return await response.json()

                if response.status == 429:
                    # Rate limit hit - increase backoff
                    self.consecutive_failures += 1
                    self.backoff_multiplier = min(
                        self.max_backoff_multiplier, 2.0**self.consecutive_failures
                    )
                    logger.warning(
                        f"Rate limit hit, backing off to {self.backoff_multiplier:.1f}x delay"
                    )
                    raise RewriteError("rate limited (HTTP 429)")

                error_text = await response.text()
                logger.error(f"OpenRouter API error: {response.status} - {error_text[:200]}")
                raise RewriteError(f"OpenRouter API error {response.status}")

    async def test_connection(self) -> bool:
        """Test the OpenRouter API connection.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            await self.rewrite(PromptStrictness.SOFT, "Hello, world!")
            logger.info("OpenRouter API connection successful")
            return True
        except RewriteError as e:
            logger.error(f"OpenRouter API connection failed: {e}")
            return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error testing OpenRouter connection: {e}")
            return False
