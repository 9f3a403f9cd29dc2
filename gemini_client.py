"""
GeminiClient - Caption suggestions and image edits with model + API key rotation

Strategy: Rotate through models FIRST, then switch API key when all models exhausted.
Models: gemini-2.5-flash → gemini-2.5-flash-lite → gemini-2.0-flash
Rate-limited or unknown model+key combinations are skipped for the rest of the session.

Captions go through google-generativeai. Image edits go through google-genai,
which is the SDK that can ask for IMAGE output modality.

Only talks to Gemini. Compositing is handled by meme.MemeRenderer (code-based).
"""

import base64
import json
import logging
import os
import traceback
from typing import Awaitable, Callable, List, Optional

import google.generativeai as genai
from google import genai as genai_sdk
from google.api_core import exceptions as google_exceptions
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from meme.errors import EditUnavailable, SourceUnavailable, SuggestionUnavailable
from meme.services import MemeAIService
from meme.source import CanonicalImage, normalize

logger = logging.getLogger(__name__)

# Available models for rotation (in priority order)
AVAILABLE_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
]

# Models able to return image parts
EDIT_MODELS = [
    "gemini-2.5-flash-image",
    "gemini-2.0-flash-preview-image-generation",
]

# Image models reject IMAGE-only requests; text comes back alongside
EDIT_RESPONSE_MODALITIES = ["TEXT", "IMAGE"]

# google-genai reports these as APIError.code
RATE_LIMITED = 429
NOT_FOUND = 404

SUGGESTION_COUNT = 5

CAPTION_PROMPT = (
    f"Analyze this image and suggest {SUGGESTION_COUNT} funny, relevant meme captions. "
    "Return a JSON array of strings. "
    "Keep them punchy and formatted as a single line of text."
)


def _split_env_list(name: str) -> List[str]:
    return [v.strip() for v in os.getenv(name, '').split(',') if v.strip()]


class GeminiClient(MemeAIService):
    """
    Gemini API client with multi-model rotation and API key fallback.

    Rotation Strategy:
    1. Try all models with current API key
    2. If all models exhausted (rate limited), switch to next API key
    3. Repeat until success or all combinations exhausted

    Environment Variables:
        GEMINI_API_KEYS: Comma-separated list of API keys (preferred)
        GEMINI_API_KEY: Single API key (fallback)
        GEMINI_MODELS: Comma-separated list of caption models (optional)
        GEMINI_EDIT_MODELS: Comma-separated list of image edit models (optional)
    """

    def __init__(
        self,
        api_keys: Optional[List[str]] = None,
        models: Optional[List[str]] = None,
        edit_models: Optional[List[str]] = None
    ):
        """
        Initialize client with zero or more API keys and models.

        Without keys the client stays unavailable and every call fails with
        the matching *Unavailable error.

        Args:
            api_keys: List of API keys. If None, reads from environment.
            models: Caption models to rotate through. If None, uses AVAILABLE_MODELS.
            edit_models: Image edit models. If None, uses EDIT_MODELS.
        """
        if api_keys is None:
            api_keys = _split_env_list('GEMINI_API_KEYS')
            if not api_keys:
                single_key = os.getenv('GEMINI_API_KEY', '')
                api_keys = [single_key] if single_key else []

        self.api_keys = api_keys
        self.models = models or _split_env_list('GEMINI_MODELS') or AVAILABLE_MODELS.copy()
        self.edit_models = edit_models or _split_env_list('GEMINI_EDIT_MODELS') or EDIT_MODELS.copy()

        # Track failed model+key combinations for this session
        self._failed_combos: set = set()

        if self.api_keys:
            logger.info(f"GeminiClient initialized with {len(self.api_keys)} API keys, {len(self.models)} models")
            logger.info(f"Models: {', '.join(self.models)}; edit models: {', '.join(self.edit_models)}")
        else:
            logger.warning("No GEMINI_API_KEY - caption suggestions and image edits disabled")

    @property
    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return len(self.api_keys) > 0

    def _get_model_with_key(self, api_key: str, model_name: str) -> genai.GenerativeModel:
        """Get a GenerativeModel configured with a specific API key and model."""
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(model_name)

    @staticmethod
    def _image_part(image: CanonicalImage) -> dict:
        return {"mime_type": image.media_type, "data": image.payload}

    def _get_edit_client(self, api_key: str) -> genai_sdk.Client:
        """Get a google-genai client for image edits with a specific API key."""
        return genai_sdk.Client(api_key=api_key)

    async def _rotate(
        self,
        call: Callable[[str, str], Awaitable],
        models: List[str],
        purpose: str
    ):
        """
        Run call(api_key, model_name), rotating models then keys.

        Raises:
            RuntimeError: every model+key combination failed
        """
        last_error = None
        total_combinations = len(models) * len(self.api_keys)
        attempt = 0

        for api_key in self.api_keys:
            key_suffix = api_key[-6:] if len(api_key) > 6 else api_key

            for model_name in models:
                attempt += 1
                combo_id = f"{model_name}:{key_suffix}"

                if combo_id in self._failed_combos:
                    logger.debug(f"Skipping known failed combo: {combo_id}")
                    continue

                try:
                    logger.info(f"[{attempt}/{total_combinations}] {purpose}: trying {model_name} with key ...{key_suffix}")
                    response = await call(api_key, model_name)
                    logger.info(f"✓ {purpose} succeeded with {model_name} (key ...{key_suffix})")
                    return response

                except google_exceptions.ResourceExhausted as e:
                    logger.warning(f"⚠ {model_name} rate limited (429), marking combo and trying next...")
                    self._failed_combos.add(combo_id)
                    last_error = e

                except google_exceptions.NotFound as e:
                    logger.warning(f"Model {model_name} not available, marking as failed")
                    self._failed_combos.add(combo_id)
                    last_error = e

                except genai_errors.APIError as e:
                    if e.code in (RATE_LIMITED, NOT_FOUND):
                        logger.warning(f"⚠ {model_name} returned {e.code}, marking combo and trying next...")
                        self._failed_combos.add(combo_id)
                    else:
                        logger.error(f"✗ {model_name} error: {e}")
                    last_error = e

                except (google_exceptions.GoogleAPIError, ValueError) as e:
                    logger.error(f"✗ {model_name} error: {e}")
                    logger.debug(f"Full traceback:\n{traceback.format_exc()}")
                    last_error = e

        error_msg = f"All {total_combinations} model+key combinations exhausted. Last error: {last_error}"
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    async def _generate(self, contents: list, generation_config: dict, models: List[str], purpose: str):
        """Run one google-generativeai generate_content call under rotation."""
        async def call(api_key: str, model_name: str):
            model = self._get_model_with_key(api_key, model_name)
            return await model.generate_content_async(
                contents,
                generation_config=generation_config
            )

        return await self._rotate(call, models, purpose)

    async def _generate_image(self, image: CanonicalImage, instruction: str):
        """Run one google-genai image edit call under rotation."""
        contents = [
            genai_types.Part.from_bytes(data=image.payload, mime_type=image.media_type),
            instruction,
        ]
        config = genai_types.GenerateContentConfig(
            response_modalities=EDIT_RESPONSE_MODALITIES,
            temperature=0.4,
        )

        async def call(api_key: str, model_name: str):
            client = self._get_edit_client(api_key)
            return await client.aio.models.generate_content(
                model=model_name,
                contents=contents,
                config=config,
            )

        return await self._rotate(call, self.edit_models, "image edit")

    @staticmethod
    def _parse_captions(text: str) -> List[str]:
        """Parse the model's JSON array of captions."""
        response_text = text.strip()

        # Clean up markdown code blocks
        if response_text.startswith('```'):
            lines = response_text.split('\n')
            response_text = '\n'.join(lines[1:-1])

        data = json.loads(response_text)
        if isinstance(data, dict):
            data = data.get('captions', [])
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON array of captions, got {type(data).__name__}")

        return [item.strip() for item in data if isinstance(item, str) and item.strip()]

    async def suggest_captions(self, image: CanonicalImage) -> List[str]:
        """
        Suggest meme captions for an image.

        Args:
            image: Image to caption

        Returns:
            Up to SUGGESTION_COUNT caption strings

        Raises:
            SuggestionUnavailable: no API key, all combinations failed,
                or the response was not a usable JSON array
        """
        if not self.is_available():
            raise SuggestionUnavailable("No Gemini API key configured")

        try:
            response = await self._generate(
                [self._image_part(image), CAPTION_PROMPT],
                generation_config={
                    "temperature": 0.9,
                    "response_mime_type": "application/json",
                },
                models=self.models,
                purpose="caption suggestion",
            )
            captions = self._parse_captions(response.text)
        except (RuntimeError, ValueError) as e:
            logger.error(f"Caption suggestion failed: {e}")
            raise SuggestionUnavailable(f"Error generating captions: {e}") from e

        if not captions:
            raise SuggestionUnavailable("Model returned no captions")

        logger.info(f"Parsed {len(captions)} captions")
        return captions[:SUGGESTION_COUNT]

    async def edit_image(self, image: CanonicalImage, instruction: str) -> CanonicalImage:
        """
        Edit an image with a free-text instruction.

        The first inline image part of the first candidate becomes the result.

        Raises:
            EditUnavailable: no API key, all combinations failed, or no
                decodable image in the response
        """
        if not self.is_available():
            raise EditUnavailable("No Gemini API key configured")

        try:
            response = await self._generate_image(image, instruction)
        except RuntimeError as e:
            raise EditUnavailable(f"Error editing image: {e}") from e

        candidates = getattr(response, 'candidates', None) or []
        content = getattr(candidates[0], 'content', None) if candidates else None
        parts = getattr(content, 'parts', None) or []

        for part in parts:
            inline_data = getattr(part, 'inline_data', None)
            if not inline_data or not inline_data.data:
                continue

            data = inline_data.data
            if isinstance(data, str):
                data = base64.b64decode(data)

            try:
                edited = normalize((data, inline_data.mime_type))
            except SourceUnavailable as e:
                raise EditUnavailable(f"Edited image could not be decoded: {e}") from e

            logger.info(f"Image edit returned {edited.media_type}, {len(edited.payload)} bytes")
            return edited

        logger.warning("Image edit response contained no image part")
        raise EditUnavailable("Model returned no image")
