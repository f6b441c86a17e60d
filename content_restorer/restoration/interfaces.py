"""Interfaces for the external collaborators of the restoration pipeline."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.restoration import PromptStrictness


class RewriteCapability(ABC):
    """An opaque text-to-text rewrite service, usually an LLM."""

    @abstractmethod
    async def rewrite(
        self,
        strictness: PromptStrictness,
        chunk_text: str,
        model_tier: str = "primary",
    ) -> str:
        """
        Rewrite one chunk of article text.

        Args:
            strictness: How tightly the prompt constrains the model
            chunk_text: Text to restore
            model_tier: Model tier from the attempt configuration

        Returns:
            The rewritten text

        Raises:
            RewriteError: If the service fails or returns an unusable answer
        """
        pass


class Publisher(ABC):
    """Destination that makes an article public."""

    @property
    @abstractmethod
    def name(self) -> str:
        """A unique name for this destination, e.g. 'buttondown'."""
        pass

    @abstractmethod
    async def publish(self, title: str, body: str, image_ref: Optional[str] = None) -> str:
        """
        Publish an article.

        Returns:
            Destination reference of the published item

        Raises:
            PublishError: If the destination rejected or failed the request
        """
        pass
