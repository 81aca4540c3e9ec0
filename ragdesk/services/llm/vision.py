"""
Vision providers for RagDesk.

Images have no literal text to extract, so ingestion asks a vision-capable
model for a structured description and indexes that instead.
"""

from typing import Optional
import logging
from abc import ABC, abstractmethod

from ragdesk.core.config import Settings, settings as default_settings
from ragdesk.services.storage import fetch_bytes

logger = logging.getLogger(__name__)

IMAGE_DESCRIPTION_PROMPT = """Analyze this image and provide a detailed description of its contents.
If it contains text (like a document, screenshot, or infographic), extract and transcribe all visible text.
If it's a diagram, chart, or visual, describe its structure and meaning.
If it's a photo, describe what you see in detail.

Image filename: {file_name}

Provide your response in a structured format that can be used for search and retrieval."""


class VisionProvider(ABC):
    """Abstract base class for image description providers."""

    @abstractmethod
    async def describe_image(self, image_url: str, file_name: str, mime_type: str) -> str:
        """
        Describe an image in searchable natural language.

        Args:
            image_url: Time-limited URL of the image. It is fetched locally and
                only the image bytes reach the model
            file_name: Display name of the image, included in the prompt
            mime_type: MIME type of the image

        Returns:
            Description text
        """
        pass


class GeminiVisionProvider(VisionProvider):
    """Google Gemini implementation."""

    def __init__(self, client=None, model: Optional[str] = None, settings: Settings = default_settings):
        """
        Initialize the Gemini provider.

        Args:
            client: google-genai client (created from settings when omitted)
            model: Gemini model to use
        """
        if client is None:
            from google import genai
            client = genai.Client(api_key=settings.GEMINI_API_KEY)

        self.client = client
        self.model_name = model or settings.VISION_MODEL
        logger.info(f"Initialized GeminiVisionProvider with model: {self.model_name}")

    async def describe_image(self, image_url: str, file_name: str, mime_type: str) -> str:
        """
        Describe an image with Gemini.

        The URL is fetched locally and the bytes are sent inline; Gemini is
        never given the URL itself.
        """
        from google.genai import types

        image_bytes = await fetch_bytes(image_url)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    IMAGE_DESCRIPTION_PROMPT.format(file_name=file_name),
                ],
            )
        except Exception as e:
            logger.error(f"Error describing image {file_name} with Gemini: {e}", exc_info=True)
            raise

        return response.text or ""


class VisionFactory:
    """Factory for creating vision provider instances."""

    @staticmethod
    def create(provider: str = "gemini", model: Optional[str] = None, settings: Settings = default_settings) -> VisionProvider:
        if provider == "gemini":
            return GeminiVisionProvider(model=model, settings=settings)
        raise ValueError(f"Unsupported vision provider: {provider}")
