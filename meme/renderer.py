"""
MemeRenderer - Pillow-based compositor for meme images.

Handles:
1. Bounding the source image to an 800x800 canvas (aspect preserved)
2. Scaling the source to fill that canvas exactly
3. Wrapping top/bottom captions with the TextLayoutEngine
4. Drawing each caption line as a black outline under a white fill
5. Exporting the final surface
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from .errors import ExportFailed
from .layout import TextLayoutEngine, WrappedLine, TOP, BOTTOM
from .source import CanonicalImage

logger = logging.getLogger(__name__)

MAX_WIDTH = 800
MAX_HEIGHT = 800
MARGIN = 20
MIN_FONT_SIZE = 32
MIN_STROKE_WIDTH = 3
LINE_HEIGHT_RATIO = 1.2

FILL_COLOR = "white"
STROKE_COLOR = "black"

# Single bold display face; first one found wins
FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/msttcorefonts/Impact.ttf",
    "/System/Library/Fonts/Supplemental/Impact.ttf",
    "C:\\Windows\\Fonts\\impact.ttf",
    "/usr/share/fonts/truetype/anton/Anton-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "C:\\Windows\\Fonts\\arialbd.ttf",
]


@dataclass(frozen=True)
class RenderGeometry:
    """Output canvas size for one render."""
    width: int
    height: int

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True)
class CaptionStyle:
    """Text style derived from the canvas width."""
    font_size: float
    stroke_width: float
    line_height: float
    margin: int = MARGIN

    @classmethod
    def for_width(cls, width: int) -> "CaptionStyle":
        font_size = max(MIN_FONT_SIZE, width / 10)
        return cls(
            font_size=font_size,
            stroke_width=max(MIN_STROKE_WIDTH, width / 80),
            line_height=font_size * LINE_HEIGHT_RATIO,
        )

    @property
    def outline_width(self) -> int:
        """Pillow stroke width that matches a canvas stroke of stroke_width."""
        # Canvas strokes straddle the glyph edge; Pillow strokes only grow outward
        return max(1, round(self.stroke_width / 2))


@dataclass
class CaptionLayout:
    """Where every caption line lands for a given geometry."""
    geometry: RenderGeometry
    style: CaptionStyle
    top: List[WrappedLine] = field(default_factory=list)
    bottom: List[WrappedLine] = field(default_factory=list)


def compute_geometry(
    width: float,
    height: float,
    max_width: int = MAX_WIDTH,
    max_height: int = MAX_HEIGHT
) -> RenderGeometry:
    """
    Clamp natural image size into the bounding box, preserving aspect ratio.

    Width is clamped first, then the resulting height, so whichever axis is
    the long one ends up within bounds. Fractional sizes are truncated.

    Examples:
        >>> compute_geometry(1600, 800)
        RenderGeometry(width=800, height=400)
        >>> compute_geometry(400, 1600)
        RenderGeometry(width=200, height=800)
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size: {width}x{height}")

    if width > max_width:
        height = (max_width / width) * height
        width = max_width

    if height > max_height:
        width = (max_height / height) * width
        height = max_height

    return RenderGeometry(width=max(1, int(width)), height=max(1, int(height)))


class MemeRenderer:
    """
    Renders meme composites using Pillow.

    The renderer holds no per-image state: the same inputs always produce a
    pixel-identical surface.
    """

    def __init__(
        self,
        font_path: Optional[str] = None,
        layout_engine: Optional[TextLayoutEngine] = None
    ):
        """
        Initialize renderer.

        Args:
            font_path: Optional TrueType font to use instead of the built-in list
            layout_engine: Text layout engine (default: space-separated words)
        """
        self.font_path = font_path
        self.layout_engine = layout_engine or TextLayoutEngine()
        self._fonts: Dict[int, ImageFont.ImageFont] = {}

    def _get_font(self, size: int):
        """Get the display face at the given pixel size."""
        if size in self._fonts:
            return self._fonts[size]

        font = None
        if self.font_path:
            try:
                font = ImageFont.truetype(self.font_path, size)
            except OSError as e:
                logger.warning(f"Failed to load font {self.font_path}: {e}")

        if font is None:
            for fp in FONT_CANDIDATES:
                try:
                    font = ImageFont.truetype(fp, size)
                    break
                except OSError:
                    continue

        if font is None:
            font = ImageFont.load_default(size=size)

        self._fonts[size] = font
        return font

    def layout_for_geometry(
        self,
        geometry: RenderGeometry,
        top_text: str = "",
        bottom_text: str = ""
    ) -> CaptionLayout:
        """
        Compute caption line placement for a canvas size.

        Empty captions produce no lines. Text is upper-cased before wrapping.
        """
        style = CaptionStyle.for_width(geometry.width)
        font = self._get_font(int(style.font_size))
        max_width = geometry.width - 2 * style.margin

        layout = CaptionLayout(geometry=geometry, style=style)

        if top_text:
            layout.top = self.layout_engine.layout(
                top_text.upper(), max_width, font.getlength,
                anchor_y=style.margin,
                line_height=style.line_height,
                position=TOP,
            )

        if bottom_text:
            layout.bottom = self.layout_engine.layout(
                bottom_text.upper(), max_width, font.getlength,
                anchor_y=geometry.height - style.margin,
                line_height=style.line_height,
                position=BOTTOM,
            )

        return layout

    def layout_captions(
        self,
        image: CanonicalImage,
        top_text: str = "",
        bottom_text: str = ""
    ) -> CaptionLayout:
        """Decode the image and compute caption placement without drawing."""
        geometry = compute_geometry(*image.size)
        return self.layout_for_geometry(geometry, top_text, bottom_text)

    def _draw_lines(
        self,
        draw: ImageDraw.ImageDraw,
        lines: List[WrappedLine],
        center_x: float,
        font,
        stroke_width: int,
        anchor: str
    ) -> None:
        for line in lines:
            if not line.text:
                continue
            # Outline first so the fill sits on top of it
            draw.text(
                (center_x, line.y), line.text, font=font, anchor=anchor,
                fill=STROKE_COLOR, stroke_width=stroke_width, stroke_fill=STROKE_COLOR,
            )
            draw.text((center_x, line.y), line.text, font=font, anchor=anchor, fill=FILL_COLOR)

    def render(
        self,
        image: CanonicalImage,
        top_text: str = "",
        bottom_text: str = ""
    ) -> Image.Image:
        """
        Render the complete meme.

        Args:
            image: Source image
            top_text: Caption drawn from the top margin downward ("" = none)
            bottom_text: Caption anchored to the bottom margin ("" = none)

        Returns:
            RGBA surface of exactly the render geometry

        Raises:
            SourceUnavailable: the source image cannot be decoded
        """
        source = image.open()
        geometry = compute_geometry(*source.size)

        surface = source.convert("RGBA").resize(geometry.size, Image.Resampling.LANCZOS)

        layout = self.layout_for_geometry(geometry, top_text, bottom_text)
        font = self._get_font(int(layout.style.font_size))
        stroke_width = layout.style.outline_width

        draw = ImageDraw.Draw(surface)
        center_x = geometry.width / 2
        self._draw_lines(draw, layout.top, center_x, font, stroke_width, anchor="ma")
        self._draw_lines(draw, layout.bottom, center_x, font, stroke_width, anchor="md")

        logger.debug(
            f"Rendered {geometry.width}x{geometry.height}: "
            f"{len(layout.top)} top / {len(layout.bottom)} bottom lines"
        )
        return surface

    def export(
        self,
        surface: Image.Image,
        format: str = "PNG",
        quality: int = 95
    ) -> bytes:
        """
        Serialize a rendered surface.

        Args:
            surface: Rendered meme
            format: Image format (PNG, JPEG, WEBP)
            quality: JPEG/WEBP quality (1-100)

        Returns:
            Encoded image bytes

        Raises:
            ExportFailed: the surface cannot be encoded in this format
        """
        image = surface
        if format.upper() in ("JPEG", "JPG"):
            format = "JPEG"
            if image.mode == "RGBA":
                rgb_image = Image.new("RGB", image.size, (255, 255, 255))
                rgb_image.paste(image, mask=image.split()[3])
                image = rgb_image

        buffer = io.BytesIO()
        try:
            image.save(buffer, format=format, quality=quality)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Export to {format} failed: {e}")
            raise ExportFailed(f"Cannot export meme as {format}: {e}") from e
        return buffer.getvalue()
