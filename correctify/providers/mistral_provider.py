"""
Mistral chat completions corrector.
"""
from __future__ import annotations

from typing import Optional

from ..models import ProviderId
from ..schemas import CorrectionRequest
from .base import Corrector
from .http import post_json

CHAT_COMPLETIONS_URL = "https://api.mistral.ai/v1/chat/completions"


class MistralCorrector(Corrector):
    """Mistral models over the chat completions API."""

    provider = ProviderId.MISTRAL

    async def _complete(self, request: CorrectionRequest) -> Optional[str]:
        data = await post_json(
            self.provider,
            CHAT_COMPLETIONS_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            payload={
                "model": request.model,
                "messages": [
                    {"role": "system", "content": request.instructions},
                    {"role": "user", "content": request.text},
                ],
                "temperature": request.temperature,
            },
            timeout=self.timeout,
        )
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        content = message.get("content")
        return content if isinstance(content, str) else None
