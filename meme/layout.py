"""
TextLayoutEngine - word wrapping and vertical placement for captions.

Handles:
1. Greedy line breaking on word boundaries against a measured width
2. Stacking a top caption downward from its anchor
3. Stacking a bottom caption upward so its last line sits on the anchor

The engine never measures text itself; the renderer passes a measure
function bound to the active font.
"""

from dataclasses import dataclass
from typing import Callable, List

Measure = Callable[[str], float]

TOP = "top"
BOTTOM = "bottom"


@dataclass(frozen=True)
class WrappedLine:
    """A single caption line and its vertical anchor position."""
    text: str
    y: float


class TextLayoutEngine:
    """
    Wraps caption text into lines that fit a maximum width.

    Lines only break between words. A single word wider than the limit is
    placed on a line of its own and allowed to overflow.
    """

    def __init__(self, separator: str = " "):
        self.separator = separator

    def wrap(self, text: str, max_width: float, measure: Measure) -> List[str]:
        """
        Break text into lines no wider than max_width where possible.

        Args:
            text: Caption text
            max_width: Maximum line width in the units returned by measure
            measure: Width of a string in the active font

        Returns:
            Non-empty list of trimmed lines. Empty text yields [""].
        """
        lines = []
        line = ""

        # Runs of separators never produce empty words
        words = [word for word in text.split(self.separator) if word]

        for word in words:
            candidate = line + word + self.separator
            if measure(candidate) > max_width and line:
                lines.append(line)
                line = word + self.separator
            else:
                line = candidate

        lines.append(line)
        return [committed.strip().removesuffix(self.separator) for committed in lines]

    def place_lines(
        self,
        lines: List[str],
        anchor_y: float,
        line_height: float,
        position: str = TOP
    ) -> List[WrappedLine]:
        """
        Assign a vertical position to each line.

        Args:
            lines: Wrapped lines in reading order
            anchor_y: First line position for TOP, last line position for BOTTOM
            line_height: Distance between consecutive lines
            position: TOP or BOTTOM

        Returns:
            Lines with their y positions, in reading order
        """
        if position == TOP:
            return [
                WrappedLine(text=line, y=anchor_y + i * line_height)
                for i, line in enumerate(lines)
            ]

        if position == BOTTOM:
            # Offsets counted from the anchor keep the last line exactly on it
            last = len(lines) - 1
            return [
                WrappedLine(text=line, y=anchor_y - (last - i) * line_height)
                for i, line in enumerate(lines)
            ]

        raise ValueError(f"Unknown caption position: {position}")

    def layout(
        self,
        text: str,
        max_width: float,
        measure: Measure,
        anchor_y: float,
        line_height: float,
        position: str = TOP
    ) -> List[WrappedLine]:
        """Wrap text and place the resulting lines in one step."""
        lines = self.wrap(text, max_width, measure)
        return self.place_lines(lines, anchor_y, line_height, position)


_default_engine = TextLayoutEngine()


def wrap(text: str, max_width: float, measure: Measure) -> List[str]:
    """Wrap text on single spaces. See TextLayoutEngine.wrap."""
    return _default_engine.wrap(text, max_width, measure)
