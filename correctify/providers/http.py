"""JSON-over-HTTP helper for providers called without an SDK."""
from __future__ import annotations

from typing import Any, Dict

import httpx

from ..exceptions import ProviderError
from ..logger import get_logger
from ..models import ProviderId

logger = get_logger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or "")
    if isinstance(error, str):
        return error
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return ""


async def post_json(
    provider: ProviderId,
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
) -> Dict[str, Any]:
    """POST ``payload`` and return the decoded JSON body.

    Raises:
        ProviderError: On transport failure, timeout, non-2xx status or a
            body that is not a JSON object.
    """
    label = provider.label
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, headers=headers, json=payload)
    except httpx.TimeoutException as exc:
        raise ProviderError(
            f"{label} request timed out after {timeout:g}s", provider=provider.value
        ) from exc
    except httpx.HTTPError as exc:
        raise ProviderError(f"{label} request failed: {exc}", provider=provider.value) from exc

    if not response.is_success:
        detail = _error_detail(response)
        message = f"{label} API returned {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        logger.warning(message)
        raise ProviderError(message, status_code=response.status_code, provider=provider.value)

    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderError(
            f"{label} returned a malformed response", status_code=response.status_code,
            provider=provider.value,
        ) from exc
    if not isinstance(data, dict):
        raise ProviderError(
            f"{label} returned a malformed response", status_code=response.status_code,
            provider=provider.value,
        )
    return data
