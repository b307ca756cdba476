"""
Completion-service client for the text and vision extraction tiers.

Thin wrapper over the OpenAI chat completions API. Both modes return the raw
message content; decoding it is left to load_json_object() so the orchestrator
decides what a malformed response means for its tier.
"""

import base64
import json
import logging
import re
import time
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from shiftscan.config import Settings, settings as default_settings
from shiftscan.services.errors import CompletionServiceError, ConfigurationError

logger = logging.getLogger(__name__)

TEXT_TIER = "ai_text"
VISION_TIER = "ai_vision"

# ```json ... ``` or ``` ... ``` around the whole response
_OPENING_FENCE = re.compile(r'^```(?:json)?[ \t]*\n?', re.IGNORECASE)
_CLOSING_FENCE = re.compile(r'\n?```\s*$')


class CompletionService:
    """Service for calling the completion endpoint in text or vision mode."""

    def __init__(self, config: Optional[Settings] = None, client: Optional[OpenAI] = None):
        """
        Initialize the service.

        Args:
            config: Settings to read models and credentials from
            client: Pre-built OpenAI client (tests); built lazily otherwise
        """
        self.config = config or default_settings
        self._client = client

    @property
    def client(self) -> OpenAI:
        """OpenAI client, created on first use so a missing key only fails when a tier needs it."""
        if self._client is None:
            if not self.config.OPENAI_API_KEY:
                raise ConfigurationError("OPENAI_API_KEY not configured")
            self._client = OpenAI(
                api_key=self.config.OPENAI_API_KEY,
                timeout=self.config.OPENAI_TIMEOUT,
            )
        return self._client

    def complete_text(self, system_prompt: str, user_text: str) -> str:
        """
        Run a JSON-mode text completion.

        Args:
            system_prompt: Extraction instructions
            user_text: OCR text to normalize

        Returns:
            Message content (expected to be a JSON object)

        Raises:
            ConfigurationError: No API key configured
            CompletionServiceError: Transport failure or empty response
        """
        return self._create(
            tier=TEXT_TIER,
            model=self.config.OPENAI_TEXT_MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_text},
            ],
            response_format={"type": "json_object"},
        )

    def complete_vision(self, prompt: str, image_data: bytes, mime_type: str) -> str:
        """
        Run a multimodal completion over one image.

        The image travels inline as a base64 data URL. The response may come
        back wrapped in Markdown code fences; see strip_code_fences().

        Args:
            prompt: Extraction instructions
            image_data: Raw image bytes (JPEG / PNG)
            mime_type: MIME type of image_data

        Returns:
            Message content

        Raises:
            ConfigurationError: No API key configured
            CompletionServiceError: Transport failure or empty response
        """
        encoded = base64.b64encode(image_data).decode('utf-8')
        return self._create(
            tier=VISION_TIER,
            model=self.config.OPENAI_VISION_MODEL,
            messages=[{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:{mime_type};base64,{encoded}",
                            "detail": "high",
                        },
                    },
                ],
            }],
        )

    def _create(self, tier: str, model: str, **kwargs) -> str:
        client = self.client
        t0 = time.monotonic()

        try:
            response = client.chat.completions.create(
                model=model,
                temperature=0,
                max_tokens=self.config.OPENAI_MAX_TOKENS,
                **kwargs,
            )
        except OpenAIError as e:
            ms = int((time.monotonic() - t0) * 1000)
            logger.warning("Completion call failed", extra={
                "tier": tier,
                "model": model,
                "elapsed_ms": ms,
                "error": str(e),
            })
            raise CompletionServiceError(f"Completion call failed: {e}", tier=tier) from e

        content = response.choices[0].message.content if response.choices else None
        ms = int((time.monotonic() - t0) * 1000)

        if not content or not content.strip():
            logger.warning("Completion returned no content", extra={
                "tier": tier,
                "model": model,
                "elapsed_ms": ms,
            })
            raise CompletionServiceError("No response from completion service", tier=tier)

        logger.info("Completion call succeeded", extra={
            "tier": tier,
            "model": model,
            "elapsed_ms": ms,
            "response_chars": len(content),
        })
        return content.strip()


def strip_code_fences(text: str) -> str:
    """
    Remove a Markdown code fence wrapped around the whole response.

    Examples:
        >>> strip_code_fences('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
        >>> strip_code_fences('{"a": 1}')
        '{"a": 1}'
    """
    cleaned = (text or "").strip()
    if not cleaned.startswith('```'):
        return cleaned
    cleaned = _OPENING_FENCE.sub('', cleaned, count=1)
    cleaned = _CLOSING_FENCE.sub('', cleaned, count=1)
    return cleaned.strip()


def load_json_object(text: str, tier: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode a completion response that must be a JSON object.

    Raises:
        CompletionServiceError: Malformed JSON, or JSON that is not an object
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise CompletionServiceError(f"Malformed JSON in completion response: {e}", tier=tier) from e

    if not isinstance(data, dict):
        raise CompletionServiceError(
            f"Completion response is a JSON {type(data).__name__}, expected an object",
            tier=tier,
        )
    return data
