"""
OpenAI chat completions corrector.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import openai

from ..exceptions import ProviderError
from ..models import ProviderId
from ..schemas import CorrectionRequest
from .base import Corrector


async def chat_completion(
    provider: ProviderId,
    client_kwargs: Dict[str, Any],
    request: CorrectionRequest,
) -> Optional[str]:
    """Run one chat completion through an OpenAI-compatible endpoint.

    SDK exceptions are translated into :class:`ProviderError`; the SDK's own
    retry loop is disabled so each call is a single request. The SDK runs on
    an httpx client owned by this call.
    """
    label = provider.label
    try:
        async with httpx.AsyncClient(timeout=client_kwargs.get("timeout")) as http_client:
            client = openai.AsyncOpenAI(max_retries=0, http_client=http_client, **client_kwargs)
            completion = await client.chat.completions.create(
                model=request.model,
                messages=[
                    {"role": "system", "content": request.instructions},
                    {"role": "user", "content": request.text},
                ],
                temperature=request.temperature,
            )
    except openai.APIStatusError as exc:
        raise ProviderError(
            f"{label} API returned {exc.status_code}: {exc.message}",
            status_code=exc.status_code,
            provider=provider.value,
        ) from exc
    except openai.APITimeoutError as exc:
        raise ProviderError(f"{label} request timed out", provider=provider.value) from exc
    except openai.APIError as exc:
        raise ProviderError(f"{label} request failed: {exc.message}", provider=provider.value) from exc

    choices = getattr(completion, "choices", None)
    if not choices:
        return None
    return choices[0].message.content


class OpenAICorrector(Corrector):
    """OpenAI API corrector."""

    provider = ProviderId.OPENAI

    async def _complete(self, request: CorrectionRequest) -> Optional[str]:
        return await chat_completion(
            self.provider,
            {"api_key": self.api_key, "timeout": self.timeout},
            request,
        )
