"""Image-generation provider for virtual staging.

``GeminiImageGenerator`` talks to the image model and reports every outcome
as an ``ImageGenerationResult``, except quota errors, which it re-raises so
the API gateway can back off. ``GeminiStagingProvider`` adapts it to the
``StagingProvider`` protocol the job queue consumes.
"""

import base64
import re
from typing import Any, Final, Protocol

import httpx
from pydantic import BaseModel

from taste_to_lead.logging import get_logger
from taste_to_lead.models import ProviderOutput
from taste_to_lead.utils.api_gateway import ApiGateway, is_quota_error

logger = get_logger(__name__)

DEFAULT_IMAGE_MODEL: Final = "gemini-2.5-flash-image"

_DATA_URL_RE: Final = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)

# Candidate finish reasons that mean the model refused on safety grounds
_SAFETY_FINISH_REASONS: Final = frozenset(
    {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}
)

SAFETY_BLOCKED_MESSAGE: Final = (
    "Image generation blocked by safety filter. "
    "Please try a different prompt or room description."
)
PERMISSION_MESSAGE: Final = (
    "Image API not enabled or insufficient permissions. Check the API key and project access."
)


class StagingProviderError(RuntimeError):
    """A provider call that produced no usable image."""


class StagingProvider(Protocol):
    """Anything that can stage one room image from a prompt pair."""

    async def generate(
        self, *, input_image_url: str, prompt: str, negative_prompt: str
    ) -> ProviderOutput: ...


class ImageGenerationResult(BaseModel):
    """Outcome of one image-model call. ``image_data`` is base64 without a data-URL prefix."""

    success: bool
    image_data: str | None = None
    error: str | None = None
    safety_blocked: bool = False


def split_data_url(data_url: str) -> tuple[str, bytes] | None:
    """Split an image data URL into (mime type, raw bytes), or None if it isn't one."""
    match = _DATA_URL_RE.match(data_url.strip())
    if match is None:
        return None
    try:
        return match.group(1), base64.b64decode(match.group(2), validate=False)
    except ValueError:
        return None


def _enum_name(value: Any) -> str:
    return str(getattr(value, "name", value) or "")


def _is_safety_blocked(response: Any) -> bool:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        return True
    for candidate in getattr(response, "candidates", None) or []:
        if _enum_name(getattr(candidate, "finish_reason", None)) in _SAFETY_FINISH_REASONS:
            return True
    return False


def _extract_image_bytes(response: Any) -> bytes | None:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return inline.data
    return None


def _is_permission_error(exc: Exception) -> bool:
    if getattr(exc, "code", None) == 403:
        return True
    message = str(exc).lower()
    return "permission" in message or "403" in message


class GeminiImageGenerator:
    """Reference-image editing with a Gemini image model."""

    def __init__(
        self, api_key: str, model: str = DEFAULT_IMAGE_MODEL, *, client: Any = None
    ) -> None:
        """Initialize the generator.

        Args:
            api_key: Gemini API key. Empty means every call fails without a request.
            model: Image-capable model name.
            client: Pre-built ``google.genai.Client``, mainly for tests.
        """
        self._api_key = api_key
        self._model = model
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(self, prompt: str, reference_image: str | None) -> ImageGenerationResult:
        """Edit the reference image according to ``prompt``.

        Args:
            prompt: Full instruction text.
            reference_image: Image data URL of the room to edit.

        Raises:
            Exception: Quota/rate-limit errors from the SDK, for the gateway to retry.
        """
        if not self._api_key and self._client is None:
            return ImageGenerationResult(success=False, error="Gemini API key not configured")

        reference = split_data_url(reference_image) if reference_image else None
        if reference is None:
            return ImageGenerationResult(
                success=False, error="Reference image is required for staging edit requests"
            )
        mime_type, image_bytes = reference

        from google.genai import types

        try:
            client = self._get_client()
            logger.debug(
                "image_generation_started",
                model=self._model,
                prompt_chars=len(prompt),
                reference_bytes=len(image_bytes),
            )
            response = await client.aio.models.generate_content(
                model=self._model,
                contents=[prompt, types.Part.from_bytes(data=image_bytes, mime_type=mime_type)],
                config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except Exception as e:
            if is_quota_error(e):
                raise
            if _is_permission_error(e):
                logger.error("image_generation_permission_denied", error=str(e))
                return ImageGenerationResult(success=False, error=PERMISSION_MESSAGE)
            logger.warning("image_generation_failed", error=str(e), error_type=type(e).__name__)
            return ImageGenerationResult(success=False, error=f"Image generation failed: {e}")

        if _is_safety_blocked(response):
            logger.warning("image_generation_safety_blocked", model=self._model)
            return ImageGenerationResult(
                success=False, safety_blocked=True, error=SAFETY_BLOCKED_MESSAGE
            )

        data = _extract_image_bytes(response)
        if data is None:
            logger.warning("image_generation_empty", model=self._model)
            return ImageGenerationResult(success=False, error="No image data in response")

        return ImageGenerationResult(
            success=True, image_data=base64.b64encode(data).decode("ascii")
        )


class GeminiStagingProvider:
    """StagingProvider backed by ``GeminiImageGenerator`` behind an API gateway."""

    def __init__(
        self,
        generator: GeminiImageGenerator,
        gateway: ApiGateway,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._generator = generator
        self._gateway = gateway
        self._http = http_client

    async def to_data_url(self, image_url: str) -> str | None:
        """Normalize an input image reference to a data URL.

        Data URLs pass through; http(s) URLs are downloaded and re-encoded;
        anything else, or a failed download, yields None.
        """
        if image_url.startswith("data:image/"):
            return image_url
        if not re.match(r"^https?://", image_url, re.IGNORECASE):
            return None
        try:
            response = await self._http.get(image_url, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.warning("input_image_fetch_failed", url=image_url, error=str(e))
            return None
        if not response.is_success:
            logger.warning(
                "input_image_fetch_failed", url=image_url, status_code=response.status_code
            )
            return None
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{mime_type or 'image/jpeg'};base64,{encoded}"

    async def generate(
        self, *, input_image_url: str, prompt: str, negative_prompt: str
    ) -> ProviderOutput:
        reference = await self.to_data_url(input_image_url)
        merged_prompt = f"{prompt}\n\nNegative prompt constraints: {negative_prompt}"
        result = await self._gateway.call(self._generator.generate, merged_prompt, reference)

        if result.safety_blocked:
            return ProviderOutput(output_image_url=None, provider_meta={"safety_blocked": True})
        if not result.success or not result.image_data:
            raise StagingProviderError(result.error or "staging_generation_failed")
        return ProviderOutput(
            output_image_url=f"data:image/png;base64,{result.image_data}",
            provider_meta={"safety_blocked": False},
        )
