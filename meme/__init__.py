# Meme Module
# Code for compositing, AI only for captions and image edits

from .errors import (
    MemeError,
    SourceUnavailable,
    SuggestionUnavailable,
    EditUnavailable,
    ExportFailed,
    ImageRequired,
    ActionInProgress,
)
from .source import CanonicalImage, normalize, fetch_template
from .layout import TextLayoutEngine, WrappedLine, wrap
from .renderer import MemeRenderer, RenderGeometry, CaptionStyle, compute_geometry
from .trigger import RenderTrigger
from .services import MemeAIService
from .session import MemeSession, RequestState, ActionStatus
from .templates import TEMPLATES, get_template, get_template_options

__all__ = [
    "MemeError",
    "SourceUnavailable",
    "SuggestionUnavailable",
    "EditUnavailable",
    "ExportFailed",
    "ImageRequired",
    "ActionInProgress",
    "CanonicalImage",
    "normalize",
    "fetch_template",
    "TextLayoutEngine",
    "WrappedLine",
    "wrap",
    "MemeRenderer",
    "RenderGeometry",
    "CaptionStyle",
    "compute_geometry",
    "RenderTrigger",
    "MemeAIService",
    "MemeSession",
    "RequestState",
    "ActionStatus",
    "TEMPLATES",
    "get_template",
    "get_template_options",
]
