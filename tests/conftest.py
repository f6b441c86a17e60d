import asyncio
from typing import Callable, List, Optional, Tuple

import pytest

from content_restorer.core.errors import PublishError
from content_restorer.core.ledger import PublicationLedger
from content_restorer.models.content import ArticleDraft
from content_restorer.models.restoration import PromptStrictness
from content_restorer.models.settings import Settings
from content_restorer.restoration.interfaces import Publisher, RewriteCapability

SENTENCES = [
    "The harbour town woke slowly under a pale grey sky while the fishing boats drifted back toward the old stone pier one after another",
    "Nobody on the quay seemed to notice the stranger who stepped off the morning ferry carrying a battered leather case and a folded map",
    "She walked past the shuttered market stalls and stopped in front of the bakery where the smell of warm bread spilled into the lane",
    "The owner of the bakery had lived in the town for forty years and remembered every family that had ever rented the house on the hill",
    "Later that afternoon the wind picked up and the rain began to hammer the roofs as the lamps came on one by one along the promenade",
    "In the small library the archivist pulled out a box of letters that had not been opened since the winter the lighthouse went dark",
    "Each letter was written in the same careful hand and described a journey across the northern sea that nobody in the town believed",
    "By the time the ferry returned in the evening the stranger had already decided to stay for the rest of the season and rent a room",
    "The next morning the whole street knew her name and the children followed her down to the beach to watch her sketch the breakwater",
]

FILLER_PREFIX = "To be honest, "
INLINE_FILLER = (
    "It was, to be honest, the quietest winter anyone could remember in that "
    "part of the coast and the long nights felt endless to everyone."
)


def build_paragraphs(count: int = 24) -> List[str]:
    """Artifact-free paragraphs of three ~130 char sentences each."""
    paragraphs = []
    for index in range(count):
        start = (index * 3) % len(SENTENCES)
        sentences = [SENTENCES[(start + k) % len(SENTENCES)] for k in range(3)]
        paragraphs.append(". ".join(sentences) + ".")
    return paragraphs


def build_article(count: int = 24) -> str:
    return "\n\n".join(build_paragraphs(count))


def build_filler_article(prefixed: int = 6, inline: bool = True) -> str:
    """Article with "to be honest" repeated ``prefixed`` (+1 inline) times."""
    paragraphs = build_paragraphs()
    for index in range(prefixed):
        paragraphs[index] = FILLER_PREFIX + paragraphs[index]
    if inline:
        paragraphs[10] = f"{paragraphs[10]} {INLINE_FILLER}"
    return "\n\n".join(paragraphs)


class StubRewriter(RewriteCapability):
    """Rewrite capability driven by a ``transform(chunk, model_tier)`` callable.

    The transform may return a string or an exception instance to raise.
    """

    def __init__(self, transform: Optional[Callable[[str, str], object]] = None, delay: float = 0.0):
        self.transform = transform or (lambda chunk, tier: chunk)
        self.delay = delay
        self.calls: List[Tuple[str, PromptStrictness, str]] = []

    async def rewrite(self, strictness, chunk_text, model_tier="primary"):
        self.calls.append((model_tier, strictness, chunk_text))
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.transform(chunk_text, model_tier)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def tiers_called(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakePublisher(Publisher):
    """Records published articles; fails the first ``failures`` calls."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.published: List[Tuple[str, str]] = []
        self.calls = 0

    @property
    def name(self) -> str:
        return "fake"

    async def publish(self, title, body, image_ref=None):
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise PublishError("destination unavailable")
        self.published.append((title, body))
        return f"fake-{len(self.published)}"


@pytest.fixture
def clean_article():
    return build_article()


@pytest.fixture
def filler_article():
    return build_filler_article()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's .env file."""
    return Settings(
        _env_file=None,
        openrouter_api_key="test_key",
        buttondown_api_key="test_key",
        ledger_path=str(tmp_path / "ledger.db"),
        review_dir=str(tmp_path / "review"),
    )


@pytest.fixture
def ledger(tmp_path):
    return PublicationLedger(str(tmp_path / "ledger.db"))


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def make_draft():
    def _make(body: str, title: str = "The Lighthouse Letters", **kwargs) -> ArticleDraft:
        return ArticleDraft(id=kwargs.pop("id", "lighthouse"), title=title, body=body, **kwargs)

    return _make
