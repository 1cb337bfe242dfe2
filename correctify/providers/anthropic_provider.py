"""
Anthropic Messages API corrector.
"""
from __future__ import annotations

from typing import Optional

from ..models import ProviderId
from ..schemas import CorrectionRequest
from .base import Corrector
from .http import post_json

MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
MAX_OUTPUT_TOKENS = 4096


class AnthropicCorrector(Corrector):
    """Claude models over the Messages API."""

    provider = ProviderId.ANTHROPIC

    async def _complete(self, request: CorrectionRequest) -> Optional[str]:
        data = await post_json(
            self.provider,
            MESSAGES_URL,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            payload={
                "model": request.model,
                "max_tokens": MAX_OUTPUT_TOKENS,
                "system": request.instructions,
                "messages": [{"role": "user", "content": request.text}],
                "temperature": request.temperature,
            },
            timeout=self.timeout,
        )
        blocks = data.get("content") or []
        parts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "".join(parts)
