import io

import pytest
from PIL import Image

from meme import CanonicalImage, MemeAIService, normalize


def _encode(width: int, height: int, color: str, format: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    """Factory for encoded solid-color images."""
    def factory(width=600, height=400, color="#3498DB", format="PNG") -> bytes:
        return _encode(width, height, color, format)
    return factory


@pytest.fixture
def make_image(image_bytes):
    """Factory for CanonicalImages."""
    def factory(width=600, height=400, color="#3498DB", format="PNG") -> CanonicalImage:
        return normalize((image_bytes(width, height, color, format), f"image/{format.lower()}"))
    return factory


class FakeAI(MemeAIService):
    """In-memory caption/edit service. Set `gate` to hold calls in flight."""

    def __init__(self, captions, edited):
        self.captions = captions
        self.edited = edited
        self.error = None
        self.gate = None
        self.calls = []

    @property
    def name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True

    async def _maybe_wait(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def suggest_captions(self, image):
        self.calls.append(("suggest", image))
        await self._maybe_wait()
        return list(self.captions)

    async def edit_image(self, image, instruction):
        self.calls.append(("edit", image, instruction))
        await self._maybe_wait()
        return self.edited


@pytest.fixture
def fake_ai(make_image):
    return FakeAI(
        captions=[
            "When the build passes on the first try",
            "Nobody: / Me at 3am:",
            "It's not a bug, it's a feature",
            "Me explaining my code to the rubber duck",
            "Works on my machine",
            "Sixth caption that should be dropped",
        ],
        edited=make_image(300, 300, "#FF5733"),
    )
