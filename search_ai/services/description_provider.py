import logging
import re
from typing import Any, List, Protocol

import httpx
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from search_ai.core.exceptions import ImageDescriptionError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful assistant that describes fashion product images.
The user prompt will be the fashion product's official name or title.
Your output must be a concise list of points, one per line, describing ONLY the specific fashion item identified by its name.
DO NOT MAKE STUFF UP. IF YOU CANNOT KNOW FOR SURE IF SOMETHING IS TRUE, DO NOT SAY IT.
DO NOT MENTION COLORS AT ALL.
Ensure accuracy in all details. If an attribute is not clearly discernible from the image, omit it rather than guessing.
Each point should be a very short phrase or keyword, avoiding complete sentences and unnecessary connecting words.
Focus on key visual attributes such as silhouette, fabric, fit, design elements, construction details, and any distinctive features.
If given multiple images (additional angle shots of the same item), do not redescribe them as new items.
DO NOT describe any other items, props, background elements, or staging present in the image that are not part of the named fashion product itself.
Use precise fashion terminology and keywords as often as possible (e.g., for a "Cotton Button-Down Shirt," output "Button-down shirt," "Cotton," "Collared," "Long sleeves," "Chest pocket." Be specific about features like "Slim fit," "French cuffs," if clearly visible).
The output should be in the same language as the product name and contain no other text formatting.
Crucially, each point must be on its own line without any preceding characters like hyphens, bullets, or numbers.
Limit your description to a maximum of 10 key points.
When describing product variants visible in the image (e.g., multiple sizes, styles), list each variant on its own line.
Only describe what is visually apparent in the image - do not infer care instructions, fabric composition, or other details not clearly visible.
Prioritize features in this order:
1) Primary garment category
2) Visible fabric texture or material appearance
3) Silhouette/fit
4) Key design elements and construction details
5) Visible functionality and styling features
6) Specific occasions or styling contexts (only if clearly suggested by the garment's visible style)
7) Target demographic or style category (only if clearly inferable from visible design)
8) Any visible labels, tags, or technical details.

For occasions, styling contexts, or target demographic, only include these if they are clearly suggested by the visible design and styling of the garment.

Example good output:
Blazer
Textured fabric
Tailored fit
Notched lapels
Two-button closure
Chest pocket
Side vents
Business professional
Office wear
Formal occasions"""

_STOP_WORDS = {"in", "the", "a", "an", "and", "or", "for", "to", "of", "backorder"}
_FILTERED_FINISH_REASONS = {"content_filter", "safety", "prohibited_content", "blocklist"}
_NON_RETRYABLE_MARKERS = ("content_filter", "invalid_request", "authentication")


class ImageDescriptionProvider(Protocol):
    async def describe(self, image_urls: List[str], product_name: str) -> str:
        """Empty string means no description is available."""
        ...


def _is_retryable(error: BaseException) -> bool:
    message = str(error).lower()
    return not any(marker in message for marker in _NON_RETRYABLE_MARKERS)


def _is_content_filtered(response: BaseMessage) -> bool:
    metadata = getattr(response, "response_metadata", None) or {}
    reason = str(metadata.get("finish_reason") or "").lower()
    return reason in _FILTERED_FINISH_REASONS


def _content_text(response: BaseMessage) -> str:
    content = response.content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        content = "".join(parts)
    return (content or "").strip()


def url_keyword_mismatch(image_urls: List[str], product_name: str) -> bool:
    """True when no image URL mentions any keyword of the product name."""
    cleaned = re.sub(r"[^a-z0-9\s]", "", product_name.lower())
    keywords = [w for w in cleaned.split() if w and w not in _STOP_WORDS]
    return not any(
        keyword in url.lower() for url in image_urls for keyword in keywords
    )


class LLMImageDescriptionProvider:
    """
    Describes product images with a multimodal chat model.

    The primary model is retried with exponential backoff; when it fails or
    its answer is blocked by a content filter, the fallback model is tried.
    Expected failure modes (content filter, empty answer) yield "", while
    exhausted retries raise ImageDescriptionError.
    """

    def __init__(self, llm: Any, fallback_llm: Any, http: httpx.AsyncClient):
        self.llm = llm
        self.fallback_llm = fallback_llm
        self.http = http

    @retry(
        retry=retry_if_exception(_is_retryable),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        stop=stop_after_attempt(4),
        reraise=True,
    )
    async def _invoke_safe(self, llm: Any, messages: List[BaseMessage]) -> BaseMessage:
        return await llm.ainvoke(messages)

    async def _validate_image_urls(self, image_urls: List[str]) -> List[str]:
        valid_urls = []
        for url in image_urls:
            try:
                response = await self.http.head(url, follow_redirects=True)
            except httpx.HTTPError as e:
                logger.error(f"❌ Error validating image URL {url}: {e}")
                continue

            content_type = response.headers.get("content-type", "")
            if response.is_success and content_type.startswith("image/"):
                valid_urls.append(url)
            else:
                logger.error(
                    f"❌ Invalid image URL or not an image: {url} "
                    f"(status {response.status_code}, content-type {content_type!r})"
                )
        return valid_urls

    @staticmethod
    def _build_messages(product_name: str, image_urls: List[str]) -> List[BaseMessage]:
        return [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(
                content=[{"type": "text", "text": product_name}]
                + [{"type": "image_url", "image_url": {"url": url}} for url in image_urls]
            ),
        ]

    async def describe(self, image_urls: List[str], product_name: str) -> str:
        if url_keyword_mismatch(image_urls, product_name):
            logger.warning(
                f"⚠️ Image URLs don't seem to match product name \"{product_name}\". First image: {image_urls[0]}"
            )

        logger.info(f"🔍 Validating {len(image_urls)} image URLs...")
        valid_urls = await self._validate_image_urls(image_urls)
        if not valid_urls:
            raise ImageDescriptionError(f"No valid image URLs found for {product_name}")

        messages = self._build_messages(product_name, valid_urls)

        try:
            response = await self._invoke_safe(self.llm, messages)
            if _is_content_filtered(response):
                logger.warning("Content filter triggered on primary model, trying fallback model...")
                response = await self._invoke_safe(self.fallback_llm, messages)
        except Exception as primary_error:
            logger.error(f"Primary model failed ({primary_error}), trying fallback model...")
            try:
                response = await self._invoke_safe(self.fallback_llm, messages)
            except Exception as fallback_error:
                raise ImageDescriptionError(
                    f"Both models failed to describe {product_name}: {fallback_error}",
                    original_error=fallback_error,
                ) from fallback_error

        if _is_content_filtered(response):
            logger.warning("Content filter triggered on both models, no description available")
            return ""

        text = _content_text(response)
        if not text:
            logger.error(f"❌ Model returned an empty description for {product_name}")
        return text
