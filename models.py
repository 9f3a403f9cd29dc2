from pydantic import BaseModel, Field
from typing import Optional, List, Dict


class TemplateRequest(BaseModel):
    """Load one of the built-in templates"""
    template_id: str


class TextUpdateRequest(BaseModel):
    """Caption edits; omitted fields are left unchanged"""
    top_text: Optional[str] = None
    bottom_text: Optional[str] = None


class ApplySuggestionRequest(BaseModel):
    """Pick a caption suggestion as bottom text"""
    index: int = Field(ge=0)


class EditRequest(BaseModel):
    """AI image edit instruction"""
    instruction: Optional[str] = None  # Falls back to the session's last edit prompt


class ActionStatusModel(BaseModel):
    state: str                          # idle, in_flight, succeeded, failed
    notice: Optional[str] = None


class ImageInfo(BaseModel):
    media_type: str
    size_bytes: int
    width: Optional[int] = None         # Natural size, None if undecodable
    height: Optional[int] = None


class RenderInfo(BaseModel):
    width: int
    height: int
    render_count: int


class SessionState(BaseModel):
    """Snapshot of the meme session"""
    image: Optional[ImageInfo] = None
    top_text: str = ""
    bottom_text: str = ""
    suggestions: List[str] = Field(default_factory=list)
    edit_prompt: str = ""
    render: Optional[RenderInfo] = None
    actions: Dict[str, ActionStatusModel] = Field(default_factory=dict)


class SuggestionsResponse(BaseModel):
    suggestions: List[str]


class LinePlacement(BaseModel):
    text: str
    y: float


class LayoutResponse(BaseModel):
    """Caption placement for the current render geometry"""
    width: int
    height: int
    font_size: float
    stroke_width: float
    line_height: float
    top: List[LinePlacement] = Field(default_factory=list)
    bottom: List[LinePlacement] = Field(default_factory=list)


class TemplateOption(BaseModel):
    id: str
    name: str
    url: str


class TemplateOptionsResponse(BaseModel):
    templates: List[TemplateOption]
