"""
MemeSession - owns the editable meme state and the user actions on it.

State:
- image: the current CanonicalImage (or None)
- top_text / bottom_text: captions ("" means not drawn)
- suggestions: AI caption candidates for the current image
- edit_prompt: last image edit instruction

Every mutation replaces whole values and is followed synchronously by a
notification to observers; the RenderTrigger is always subscribed.
Async actions are single-flight and tracked by a RequestState per action.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx

from .errors import (
    ActionInProgress, EditUnavailable, ExportFailed, ImageRequired,
    SourceUnavailable, SuggestionUnavailable,
)
from .services import MemeAIService
from .source import CanonicalImage, DEFAULT_FETCH_TIMEOUT, ImageSourceInput, fetch_template, normalize
from .trigger import RenderTrigger

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5

UPLOAD = "upload"
TEMPLATE = "template"
SUGGEST = "suggest"
EDIT = "edit"
EXPORT = "export"
ACTIONS = (UPLOAD, TEMPLATE, SUGGEST, EDIT, EXPORT)

StateObserver = Callable[[Optional[CanonicalImage], str, str], None]


class RequestState(Enum):
    """Lifecycle of a single user action."""
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionStatus:
    """Current state of an action plus the notice to show the user."""
    state: RequestState = RequestState.IDLE
    notice: Optional[str] = None


class MemeSession:
    """
    Single-user meme editing session.

    Failed actions leave image, captions and suggestions untouched, mark the
    action FAILED with a notice and re-raise the error for the caller.
    """

    def __init__(
        self,
        ai: Optional[MemeAIService] = None,
        trigger: Optional[RenderTrigger] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    ):
        """
        Initialize an empty session.

        Args:
            ai: Caption suggestion / image edit backend (None disables both)
            trigger: Render driver (default: new RenderTrigger)
            http_client: Shared client for template fetches
            fetch_timeout: Timeout for template fetches without a shared client
        """
        self.ai = ai
        self.trigger = trigger or RenderTrigger()
        self.http_client = http_client
        self.fetch_timeout = fetch_timeout

        self._image: Optional[CanonicalImage] = None
        self._top_text = ""
        self._bottom_text = ""
        self._suggestions: List[str] = []
        self.edit_prompt = ""

        self.status: Dict[str, ActionStatus] = {name: ActionStatus() for name in ACTIONS}
        self._observers: List[StateObserver] = []
        self.subscribe(self.trigger.notify)

    # ----- state -----

    @property
    def image(self) -> Optional[CanonicalImage]:
        return self._image

    @property
    def top_text(self) -> str:
        return self._top_text

    @property
    def bottom_text(self) -> str:
        return self._bottom_text

    @property
    def suggestions(self) -> List[str]:
        return list(self._suggestions)

    def subscribe(self, observer: StateObserver) -> None:
        """Call observer(image, top_text, bottom_text) after every mutation."""
        self._observers.append(observer)

    def _changed(self) -> None:
        for observer in list(self._observers):
            observer(self._image, self._top_text, self._bottom_text)

    def _replace_image(self, image: CanonicalImage, clear_captions: bool = False) -> None:
        self._image = image
        self._suggestions = []
        if clear_captions:
            self._top_text = ""
            self._bottom_text = ""
        self._changed()

    def _require_image(self) -> CanonicalImage:
        if self._image is None:
            raise ImageRequired("Upload an image or select a template first")
        return self._image

    @contextmanager
    def _tracking(self, action: str):
        """Run one action under single-flight state tracking."""
        if self.status[action].state is RequestState.IN_FLIGHT:
            raise ActionInProgress(action)

        self.status[action] = ActionStatus(RequestState.IN_FLIGHT)
        try:
            yield
        except asyncio.CancelledError:
            self.status[action] = ActionStatus(RequestState.FAILED, notice="Cancelled")
            logger.warning(f"{action} cancelled")
            raise
        except Exception as e:
            self.status[action] = ActionStatus(RequestState.FAILED, notice=str(e))
            logger.error(f"{action} failed: {e}")
            raise
        if self.status[action].state is RequestState.IN_FLIGHT:
            self.status[action] = ActionStatus(RequestState.SUCCEEDED)

    def is_busy(self, action: str) -> bool:
        return self.status[action].state is RequestState.IN_FLIGHT

    # ----- image acquisition -----

    def upload(self, source: ImageSourceInput) -> CanonicalImage:
        """
        Replace the image with a local upload. Captions are kept.

        Raises:
            SourceUnavailable: the upload is not a decodable image
        """
        with self._tracking(UPLOAD):
            image = normalize(source)
            logger.info(f"Uploaded image: {image.media_type}, {len(image.payload)} bytes")
            self._replace_image(image)
        return image

    async def load_template(self, url: str) -> CanonicalImage:
        """
        Replace the image with a remote template and clear both captions.

        Raises:
            SourceUnavailable: fetch or decode failed
        """
        with self._tracking(TEMPLATE):
            image = await fetch_template(url, client=self.http_client, timeout=self.fetch_timeout)
            self._replace_image(image, clear_captions=True)
        return image

    # ----- captions -----

    def set_top_text(self, text: str) -> None:
        self._top_text = text
        self._changed()

    def set_bottom_text(self, text: str) -> None:
        self._bottom_text = text
        self._changed()

    def set_edit_prompt(self, prompt: str) -> None:
        self.edit_prompt = prompt

    async def suggest_captions(self) -> List[str]:
        """
        Ask the AI service for caption suggestions for the current image.

        Returns:
            The new suggestion list (at most MAX_SUGGESTIONS entries)

        Raises:
            ImageRequired: no image loaded
            SuggestionUnavailable: service missing or failed
        """
        image = self._require_image()

        with self._tracking(SUGGEST):
            if self.ai is None or not self.ai.is_available():
                raise SuggestionUnavailable("Caption suggestions are not configured")

            suggestions = await self.ai.suggest_captions(image)
            suggestions = [s.strip() for s in suggestions if s and s.strip()][:MAX_SUGGESTIONS]

            if self._image is not image:
                logger.warning("Image changed while suggesting captions, discarding results")
                self.status[SUGGEST] = ActionStatus(
                    RequestState.SUCCEEDED, notice="Image changed; suggestions discarded"
                )
                return self.suggestions

            self._suggestions = suggestions
            logger.info(f"Received {len(suggestions)} caption suggestions")

        return self.suggestions

    def apply_suggestion(self, index: int) -> str:
        """Use a suggestion as the bottom caption."""
        if not 0 <= index < len(self._suggestions):
            raise IndexError(f"No suggestion at index {index}")
        caption = self._suggestions[index]
        self.set_bottom_text(caption)
        return caption

    # ----- AI edit -----

    async def edit_image(self, instruction: Optional[str] = None) -> CanonicalImage:
        """
        Replace the image with an AI-edited version. Captions are kept.

        Args:
            instruction: Edit instruction; defaults to edit_prompt

        Raises:
            ImageRequired: no image loaded
            ValueError: empty instruction
            EditUnavailable: service missing, failed or returned no image
        """
        image = self._require_image()

        if instruction is not None:
            self.edit_prompt = instruction
        instruction = self.edit_prompt.strip()
        if not instruction:
            raise ValueError("An edit instruction is required")

        with self._tracking(EDIT):
            if self.ai is None or not self.ai.is_available():
                raise EditUnavailable("Image editing is not configured")

            logger.info(f"Editing image: '{instruction[:80]}'")
            result = await self.ai.edit_image(image, instruction)
            try:
                edited = normalize(result)
            except SourceUnavailable as e:
                raise EditUnavailable(f"Edit returned an unusable image: {e}") from e

            if self._image is not image:
                logger.warning("Image changed while editing, discarding edit result")
                self.status[EDIT] = ActionStatus(
                    RequestState.SUCCEEDED, notice="Image changed; edit discarded"
                )
                return self._image

            self._replace_image(edited)

        return edited

    # ----- output -----

    def export(self, format: str = "PNG") -> bytes:
        """
        Serialize the currently visible meme.

        Raises:
            ImageRequired: no image loaded
            ExportFailed: nothing rendered yet or encoding failed
        """
        self._require_image()

        with self._tracking(EXPORT):
            surface = self.trigger.surface
            if surface is None:
                raise ExportFailed("No rendered meme to export")
            return self.trigger.renderer.export(surface, format=format)

    def reset(self) -> None:
        """Clear image, captions, suggestions and edit prompt."""
        self._image = None
        self._top_text = ""
        self._bottom_text = ""
        self._suggestions = []
        self.edit_prompt = ""
        for action, status in self.status.items():
            if status.state is not RequestState.IN_FLIGHT:
                self.status[action] = ActionStatus()
        logger.info("Session reset")
        self._changed()
