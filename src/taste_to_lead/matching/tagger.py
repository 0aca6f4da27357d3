"""LLM vibe tagging of listing photos and descriptions."""

import re
from typing import TYPE_CHECKING, Any, Final

from taste_to_lead.logging import get_logger
from taste_to_lead.models import UNCLASSIFIED, Vibe
from taste_to_lead.taxonomy import VIBE_DEFINITIONS, VIBES
from taste_to_lead.utils.api_gateway import ApiGateway

if TYPE_CHECKING:
    import anthropic

logger = get_logger(__name__)

DEFAULT_TAGGER_MODEL: Final = "claude-haiku-4-5"

# Prompt listing order; parsing still checks taxonomy order
_PROMPT_ORDER: Final = (
    Vibe.MONARCH,
    Vibe.INDUSTRIALIST,
    Vibe.PURIST,
    Vibe.NATURALIST,
    Vibe.FUTURIST,
    Vibe.CURATOR,
    Vibe.NOMAD,
    Vibe.CLASSICIST,
)

# Answer used when the model replies with something that names no vibe
DEFAULT_TAG: Final = Vibe.CLASSICIST

_MAX_TOKENS: Final = 16
_REQUEST_TIMEOUT: Final = 60.0


def _archetype_guide() -> str:
    blocks = []
    for idx, vibe in enumerate(_PROMPT_ORDER, start=1):
        definition = VIBE_DEFINITIONS[vibe]
        keywords = '", "'.join(definition.keywords)
        blocks.append(
            f"{idx}. {vibe.value.upper()}\n"
            f'   Keywords: "{keywords}"\n'
            f"   Visuals: {', '.join(definition.visual_cues)}\n"
            f"   Psychology: {', '.join(definition.psychology)}"
        )
    return "\n\n".join(blocks)


VIBE_BIBLE_PROMPT: Final = f"""You are the "Vibe Bible" - a strict real estate \
archetype classifier. \
Analyze the property listing (image and/or description) and classify it into exactly ONE of \
the 8 mutually exclusive archetypes below.

THE 8 ARCHETYPES (Mutually Exclusive):

{_archetype_guide()}

RULES:
- Select the SINGLE best-fit archetype from the 8 above.
- Match based on keywords in the listing text AND visual cues in the image.
- If ambiguous and the property has vibrant colors or bold art, default to "Curator".
- If ambiguous and the property has neutral/traditional elements, default to "Classicist".
- Return ONLY the single archetype word (e.g. "Monarch"). No explanation, no punctuation."""


def parse_vibe_answer(text: str) -> Vibe:
    """Map a model answer to a vibe: exact match, then first vibe named in it, else Classicist."""
    answer = text.strip().lower()
    for vibe in VIBES:
        if vibe.value.lower() == answer:
            return vibe
    for vibe in VIBES:
        if vibe.value.lower() in answer:
            return vibe
    logger.warning("unexpected_tagger_answer", answer=text[:100], default=DEFAULT_TAG.value)
    return DEFAULT_TAG


def _is_image_url(value: str) -> bool:
    return re.match(r"^https?://", value, re.IGNORECASE) is not None


class VibeTagger:
    """Classifies a listing into one vibe with Claude, through a rate-limited gateway."""

    def __init__(
        self,
        api_key: str,
        gateway: ApiGateway,
        *,
        model: str = DEFAULT_TAGGER_MODEL,
        client: "anthropic.AsyncAnthropic | None" = None,
    ) -> None:
        self._api_key = api_key
        self._gateway = gateway
        self._model = model
        self._client = client

    def _get_client(self) -> "anthropic.AsyncAnthropic":
        if self._client is None:
            import anthropic as _anthropic
            import httpx

            self._client = _anthropic.AsyncAnthropic(
                api_key=self._api_key,
                max_retries=0,  # quota retries happen in the gateway
                timeout=httpx.Timeout(_REQUEST_TIMEOUT),
            )
        return self._client

    def _build_content(self, listing: str) -> list[Any]:
        from anthropic.types import ImageBlockParam, TextBlockParam, URLImageSourceParam

        if _is_image_url(listing):
            return [
                ImageBlockParam(type="image", source=URLImageSourceParam(type="url", url=listing)),
                TextBlockParam(type="text", text="Classify this property."),
            ]
        return [
            TextBlockParam(
                type="text",
                text=(
                    "The property has no image available. "
                    f'Classify based on this description: "{listing}"'
                ),
            )
        ]

    async def _classify(self, listing: str) -> str:
        client = self._get_client()
        response = await client.messages.create(
            model=self._model,
            max_tokens=_MAX_TOKENS,
            system=VIBE_BIBLE_PROMPT,
            messages=[{"role": "user", "content": self._build_content(listing)}],
        )
        return "".join(
            getattr(block, "text", "") for block in response.content if block.type == "text"
        )

    async def tag_listing(self, listing: str) -> str:
        """Classify a listing photo URL, or a description, into one vibe.

        Args:
            listing: An http(s) image URL, or the listing description text.

        Returns:
            The vibe name, or "Unclassified" when no API key is configured or
            the call fails after gateway retries.
        """
        if not self._api_key and self._client is None:
            logger.warning("tagger_not_configured", default=UNCLASSIFIED)
            return UNCLASSIFIED

        try:
            text = await self._gateway.call(self._classify, listing)
        except Exception as e:
            logger.error(
                "tagger_failed", error=str(e), error_type=type(e).__name__, default=UNCLASSIFIED
            )
            return UNCLASSIFIED

        vibe = parse_vibe_answer(text)
        logger.info(
            "listing_tagged",
            vibe=vibe.value,
            source="image" if _is_image_url(listing) else "text",
        )
        return vibe.value
