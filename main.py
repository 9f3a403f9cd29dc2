from fastapi import FastAPI, HTTPException, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ConfigDict
from pydantic_settings import BaseSettings
from typing import Optional, List
import logging
import traceback

from gemini_client import GeminiClient
from models import (
    TemplateRequest, TextUpdateRequest, ApplySuggestionRequest, EditRequest,
    ActionStatusModel, ImageInfo, RenderInfo, SessionState, SuggestionsResponse,
    LinePlacement, LayoutResponse, TemplateOption, TemplateOptionsResponse
)

# Meme module imports
from meme import (
    MemeRenderer, MemeSession, RenderTrigger, get_template, get_template_options,
    MemeError, ActionInProgress, ImageRequired, SourceUnavailable,
    SuggestionUnavailable, EditUnavailable, ExportFailed,
)

# Logging setup
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EXPORT_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "JPG": "image/jpeg",
    "WEBP": "image/webp",
}


class Settings(BaseSettings):
    gemini_api_keys: Optional[str] = None  # Comma-separated API keys
    gemini_api_key: Optional[str] = None
    gemini_models: Optional[str] = None  # Comma-separated caption models
    gemini_edit_models: Optional[str] = None  # Comma-separated image edit models
    meme_font_path: Optional[str] = None
    template_timeout: float = 30.0  # Seconds

    model_config = ConfigDict(env_file=".env", extra="ignore")


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [v.strip() for v in value.split(",") if v.strip()] or None


settings = Settings()
app = FastAPI(title="Meme Processor", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
gemini_client = GeminiClient(
    api_keys=_split(settings.gemini_api_keys) or _split(settings.gemini_api_key),
    models=_split(settings.gemini_models),
    edit_models=_split(settings.gemini_edit_models),
)
renderer = MemeRenderer(font_path=settings.meme_font_path)
session = MemeSession(
    ai=gemini_client,
    trigger=RenderTrigger(renderer),
    fetch_timeout=settings.template_timeout,
)


def _http_error(e: MemeError) -> HTTPException:
    """Map a meme error to the HTTP status shown to the user."""
    if isinstance(e, (ActionInProgress, ImageRequired)):
        status_code = 409
    elif isinstance(e, SourceUnavailable):
        status_code = 422
    elif isinstance(e, (SuggestionUnavailable, EditUnavailable)):
        status_code = 502
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=str(e))


def _session_state() -> SessionState:
    image_info = None
    if session.image is not None:
        width = height = None
        try:
            width, height = session.image.size
        except SourceUnavailable as e:
            logger.warning(f"Current image cannot be decoded: {e}")
        image_info = ImageInfo(
            media_type=session.image.media_type,
            size_bytes=len(session.image.payload),
            width=width,
            height=height,
        )

    render_info = None
    surface = session.trigger.surface
    if surface is not None:
        render_info = RenderInfo(
            width=surface.width,
            height=surface.height,
            render_count=session.trigger.render_count,
        )

    return SessionState(
        image=image_info,
        top_text=session.top_text,
        bottom_text=session.bottom_text,
        suggestions=session.suggestions,
        edit_prompt=session.edit_prompt,
        render=render_info,
        actions={
            name: ActionStatusModel(state=status.state.value, notice=status.notice)
            for name, status in session.status.items()
        },
    )


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "meme-processor"}


@app.get("/")
async def root():
    return {
        "service": "Meme Processor",
        "version": app.version,
        "description": "Code-based meme compositing with AI captions and image edits",
        "endpoints": [
            "/meme/templates", "/meme/state", "/meme/upload", "/meme/template",
            "/meme/text", "/meme/captions/suggest", "/meme/captions/apply",
            "/meme/edit", "/meme/render", "/meme/layout", "/meme/download",
            "/meme/reset", "/config", "/health"
        ],
    }


@app.get("/config")
async def get_config():
    """Get current configuration."""
    return {
        "ai_available": gemini_client.is_available(),
        "api_keys_count": len(gemini_client.api_keys),
        "models": gemini_client.models,
        "edit_models": gemini_client.edit_models,
        "font_path": settings.meme_font_path,
        "template_timeout": settings.template_timeout,
    }


# ==================== IMAGE ACQUISITION ====================

@app.get("/meme/templates", response_model=TemplateOptionsResponse)
async def list_templates():
    """Get the built-in template images."""
    return TemplateOptionsResponse(
        templates=[TemplateOption(**t) for t in get_template_options()]
    )


@app.get("/meme/state", response_model=SessionState)
async def get_state():
    return _session_state()


@app.post("/meme/upload", response_model=SessionState)
async def upload_image(file: UploadFile = File(...)):
    """
    Replace the meme image with an uploaded file.

    Captions are kept; caption suggestions are cleared.
    """
    try:
        logger.info(f"Upload received: {file.filename} ({file.content_type})")
        content = await file.read()
        session.upload((content, file.content_type))
        return _session_state()
    except MemeError as e:
        raise _http_error(e)


@app.post("/meme/template", response_model=SessionState)
async def load_template(request: TemplateRequest):
    """
    Replace the meme image with one of the built-in templates.

    Only ids from /meme/templates are accepted; arbitrary URLs are never
    fetched. Both captions and the suggestion list are cleared.
    """
    template = get_template(request.template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Unknown template: {request.template_id}")

    try:
        await session.load_template(template.url)
        return _session_state()
    except MemeError as e:
        raise _http_error(e)


# ==================== CAPTIONS ====================

@app.put("/meme/text", response_model=SessionState)
async def update_text(request: TextUpdateRequest):
    """Update top and/or bottom caption text."""
    if request.top_text is not None:
        session.set_top_text(request.top_text)
    if request.bottom_text is not None:
        session.set_bottom_text(request.bottom_text)
    return _session_state()


@app.post("/meme/captions/suggest", response_model=SuggestionsResponse)
async def suggest_captions():
    """
    Ask Gemini for caption suggestions for the current image.

    Only one request runs at a time; a second call while one is pending
    returns 409.
    """
    try:
        suggestions = await session.suggest_captions()
        return SuggestionsResponse(suggestions=suggestions)
    except MemeError as e:
        raise _http_error(e)
    except Exception as e:
        tb = traceback.format_exc()
        logger.error(f"Caption suggestion error: {e}")
        logger.error(f"Traceback:\n{tb}")
        raise HTTPException(status_code=500, detail=f"Caption suggestion failed: {e}")


@app.post("/meme/captions/apply", response_model=SessionState)
async def apply_suggestion(request: ApplySuggestionRequest):
    """Use one of the suggestions as the bottom caption."""
    try:
        session.apply_suggestion(request.index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _session_state()


# ==================== AI IMAGE EDIT ====================

@app.post("/meme/edit", response_model=SessionState)
async def edit_image(request: EditRequest):
    """
    Edit the current image with a text instruction (e.g. "Add a retro filter").

    On success the edited image replaces the current one; captions are kept.
    """
    try:
        await session.edit_image(request.instruction)
        return _session_state()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except MemeError as e:
        raise _http_error(e)
    except Exception as e:
        tb = traceback.format_exc()
        logger.error(f"Image edit error: {e}")
        logger.error(f"Traceback:\n{tb}")
        raise HTTPException(status_code=500, detail=f"Image edit failed: {e}")


# ==================== OUTPUT ====================

@app.get("/meme/render")
async def get_render():
    """Current composite as PNG for display."""
    surface = session.trigger.surface
    if surface is None:
        raise HTTPException(status_code=409, detail="Nothing rendered yet")
    try:
        content = session.trigger.renderer.export(surface, format="PNG")
    except ExportFailed as e:
        raise _http_error(e)
    return Response(content=content, media_type="image/png")


@app.get("/meme/layout", response_model=LayoutResponse)
async def get_layout():
    """Caption line placement for the current image and text."""
    if session.image is None:
        raise HTTPException(status_code=409, detail="No image loaded")
    try:
        layout = session.trigger.renderer.layout_captions(
            session.image, session.top_text, session.bottom_text
        )
    except SourceUnavailable as e:
        raise _http_error(e)

    return LayoutResponse(
        width=layout.geometry.width,
        height=layout.geometry.height,
        font_size=layout.style.font_size,
        stroke_width=layout.style.stroke_width,
        line_height=layout.style.line_height,
        top=[LinePlacement(text=line.text, y=line.y) for line in layout.top],
        bottom=[LinePlacement(text=line.text, y=line.y) for line in layout.bottom],
    )


@app.get("/meme/download")
async def download_meme(format: str = "png"):
    """
    Download the current composite.

    Args:
        format: png, jpeg or webp
    """
    format = format.upper()
    if format not in EXPORT_MEDIA_TYPES:
        raise HTTPException(status_code=422, detail=f"Unsupported format: {format}")

    try:
        content = session.export(format=format)
    except MemeError as e:
        raise _http_error(e)

    extension = "jpg" if format in ("JPEG", "JPG") else format.lower()
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="meme.{extension}"'},
    )


@app.post("/meme/reset", response_model=SessionState)
async def reset_session():
    """Clear image, captions, suggestions and edit prompt."""
    session.reset()
    return _session_state()
