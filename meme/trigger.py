"""
RenderTrigger - re-renders the meme whenever its inputs change.

Each distinct (image, top_text, bottom_text) tuple is rendered once.
Notifications that arrive while a render is running are coalesced and only
the latest one is rendered afterwards. A render that fails to decode the
image is skipped and the previous surface stays current.
"""

import logging
from typing import Callable, List, Optional, Tuple

from PIL import Image

from .errors import SourceUnavailable
from .renderer import MemeRenderer
from .source import CanonicalImage

logger = logging.getLogger(__name__)

RenderInputs = Tuple[Optional[CanonicalImage], str, str]
SurfaceCallback = Callable[[Image.Image], None]


class RenderTrigger:
    """Single-flight render driver for one session."""

    def __init__(self, renderer: Optional[MemeRenderer] = None):
        self.renderer = renderer or MemeRenderer()
        self.render_count = 0
        self.skipped_count = 0
        self._surface: Optional[Image.Image] = None
        self._last_inputs: Optional[RenderInputs] = None
        self._pending: Optional[RenderInputs] = None
        self._rendering = False
        self._subscribers: List[SurfaceCallback] = []

    @property
    def surface(self) -> Optional[Image.Image]:
        """Last successfully rendered surface, or None."""
        return self._surface

    @property
    def is_rendering(self) -> bool:
        return self._rendering

    def subscribe(self, callback: SurfaceCallback) -> None:
        """Call callback with every newly rendered surface."""
        self._subscribers.append(callback)

    def notify(
        self,
        image: Optional[CanonicalImage],
        top_text: str = "",
        bottom_text: str = ""
    ) -> None:
        """
        Report the current inputs.

        Renders synchronously unless a render is already running, in which
        case the inputs replace any pending ones and are rendered when the
        running pass finishes.
        """
        self._pending = (image, top_text, bottom_text)
        if self._rendering:
            logger.debug("Render in progress, coalescing update")
            return

        self._rendering = True
        try:
            while self._pending is not None:
                inputs, self._pending = self._pending, None
                if inputs == self._last_inputs:
                    continue
                self._last_inputs = inputs
                self._render(inputs)
        finally:
            self._rendering = False

    __call__ = notify

    def _render(self, inputs: RenderInputs) -> None:
        image, top_text, bottom_text = inputs

        if image is None:
            # Nothing to draw
            self._surface = None
            return

        try:
            surface = self.renderer.render(image, top_text, bottom_text)
        except SourceUnavailable as e:
            self.skipped_count += 1
            logger.warning(f"Render skipped, keeping previous surface: {e}")
            return

        self._surface = surface
        self.render_count += 1
        logger.info(f"Render #{self.render_count}: {surface.width}x{surface.height}")

        for callback in list(self._subscribers):
            callback(surface)
