"""
Base AI service interface for the meme session.

Any backend that can suggest captions for an image and edit an image from a
text instruction implements this (GeminiClient in production, fakes in tests).
"""

from abc import ABC, abstractmethod
from typing import List

from .source import CanonicalImage


class MemeAIService(ABC):
    """
    Abstract base class for caption suggestion and image edit backends.

    Implementations must raise SuggestionUnavailable / EditUnavailable on
    failure and never return partial results.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name for logging."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the service is configured."""
        pass

    @abstractmethod
    async def suggest_captions(self, image: CanonicalImage) -> List[str]:
        """
        Suggest short captions for an image.

        Args:
            image: Image to caption

        Returns:
            Ordered list of caption candidates
        """
        pass

    @abstractmethod
    async def edit_image(self, image: CanonicalImage, instruction: str) -> CanonicalImage:
        """
        Edit an image according to a free-text instruction.

        Args:
            image: Image to edit
            instruction: What to change, e.g. "Add a retro filter"

        Returns:
            The edited image as a new CanonicalImage
        """
        pass
