"""
Correction orchestrator: resolves provider, model and key for a request,
calls the provider gateway and records every attempt in the usage ledger.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import CorrectifyError, MissingKeyError, ProviderError, ValidationError
from .logger import get_logger, preview
from .models import DEFAULT_MODEL_ID, ModelTier, ProviderId, available_models, model_by_id, parse_provider, provider_for_model
from .native_host import NativeHost, SoundType
from .prompts import WritingStyle, parse_style
from .providers import DEFAULT_TIMEOUT, Corrector, create_corrector
from .schemas import CorrectionRequest, CorrectionResult
from .secure_keys import KeyStore
from .usage_ledger import UsageEntry, UsageLedger, estimate_tokens, now_ms

logger = get_logger(__name__)

CorrectorFactory = Callable[..., Corrector]


@dataclass(frozen=True)
class CorrectionOutcome:
    """Result of an in-app correction, including any fallback offer."""

    text: str
    writing_style: WritingStyle
    custom_rules: Optional[str]
    model_id: str
    provider: ProviderId
    duration_ms: int
    temperature: float = 0.0
    result: Optional[CorrectionResult] = None
    error: Optional[CorrectifyError] = None
    fallback_model_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class CorrectionOrchestrator:
    """
    Stateless between calls apart from the usage ledger.

    Failures are recorded and re-raised; nothing is retried automatically.
    A free fallback model may be offered to interactive callers, who must
    confirm before it is used.
    """

    def __init__(
        self,
        key_store: KeyStore,
        ledger: UsageLedger,
        *,
        corrector_factory: CorrectorFactory = create_corrector,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._key_store = key_store
        self._ledger = ledger
        self._corrector_factory = corrector_factory
        self.timeout = timeout

    @property
    def ledger(self) -> UsageLedger:
        return self._ledger

    def _resolve_provider(self, model_id: str, provider: Optional[ProviderId | str]) -> ProviderId:
        derived = provider_for_model(model_id)
        if provider is None:
            return derived
        explicit = parse_provider(provider)
        model = model_by_id(model_id)
        if model is not None and model.provider is not explicit:
            raise ValidationError(
                f"Model '{model_id}' belongs to {model.provider.value}, not {explicit.value}"
            )
        return explicit

    async def submit(
        self,
        text: str,
        style: WritingStyle | str = WritingStyle.GRAMMAR,
        custom_rules: Optional[str] = None,
        model_id: str = DEFAULT_MODEL_ID,
        *,
        temperature: float = 0.0,
        api_key: Optional[str] = None,
        provider: Optional[ProviderId | str] = None,
    ) -> CorrectionResult:
        """
        Correct ``text`` with ``model_id``.

        Args:
            text: Text to correct
            style: Writing style
            custom_rules: Extra user rules appended to the instructions
            model_id: Catalog model id
            temperature: Sampling temperature
            api_key: Key to use instead of the key store (HTTP endpoint path)
            provider: Explicit provider; must agree with the catalog

        Returns:
            CorrectionResult with the corrected text

        Raises:
            ValidationError: Bad input; nothing is recorded
            MissingKeyError: No key for the provider; a failed entry is recorded
            ProviderError: Provider call failed; a failed entry is recorded
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text is required")
        style = parse_style(style)
        resolved = self._resolve_provider(model_id, provider)

        started: Optional[float] = None
        try:
            key = api_key if api_key is not None else await self._key_store.get_provider_key(resolved)
            if not key or not key.strip():
                raise MissingKeyError(
                    f"No API key configured for {resolved.label}. "
                    f"Add your {resolved.label} API key in settings.",
                    provider=resolved.value,
                )
            request = CorrectionRequest(
                text=text,
                provider=resolved,
                model=model_id,
                temperature=temperature,
                writing_style=style,
                custom_rules=custom_rules,
            )
            corrector = self._corrector_factory(resolved, key, timeout=self.timeout)
            logger.debug(f"Correcting {len(text)} chars with {model_id}: '{preview(text)}'")
            started = time.monotonic()
            result = await corrector.correct(request)
        except ValidationError:
            raise
        except CorrectifyError as exc:
            await self._record_failure(resolved, model_id, text, started, exc)
            raise
        except Exception as exc:
            logger.exception(f"Unexpected error from {resolved.label}")
            wrapped = ProviderError(str(exc) or type(exc).__name__, provider=resolved.value)
            await self._record_failure(resolved, model_id, text, started, wrapped)
            raise wrapped from exc

        duration_ms = self._elapsed_ms(started)
        await self._record(UsageEntry(
            timestamp=now_ms(),
            provider=resolved,
            model=model_id,
            tokens_estimated=estimate_tokens(text) + estimate_tokens(result.text),
            duration_ms=duration_ms,
            success=True,
        ))
        logger.info(f"Correction with {model_id} succeeded in {duration_ms}ms")
        return result

    @staticmethod
    def _elapsed_ms(started: Optional[float]) -> int:
        if started is None:
            return 0
        return int((time.monotonic() - started) * 1000)

    async def _record(self, entry: UsageEntry) -> None:
        # sqlite writes may wait on the ledger lock and its busy timeout
        await asyncio.get_running_loop().run_in_executor(None, self._ledger.record, entry)

    async def _record_failure(
        self,
        provider: ProviderId,
        model_id: str,
        text: str,
        started: Optional[float],
        error: CorrectifyError,
    ) -> None:
        message = str(error) or type(error).__name__
        logger.warning(f"Correction with {model_id} failed: {message}")
        await self._record(UsageEntry(
            timestamp=now_ms(),
            provider=provider,
            model=model_id,
            tokens_estimated=estimate_tokens(text),
            duration_ms=self._elapsed_ms(started),
            success=False,
            error=message,
        ))

    async def find_fallback(self, failed_model_id: str) -> Optional[str]:
        """First usable free model other than ``failed_model_id``, if any."""
        flags = await self._key_store.key_flags()
        for model in available_models(flags):
            if model.tier is ModelTier.FREE and model.id != failed_model_id:
                return model.id
        return None

    async def correct_interactive(
        self,
        text: str,
        style: WritingStyle | str = WritingStyle.GRAMMAR,
        custom_rules: Optional[str] = None,
        model_id: str = DEFAULT_MODEL_ID,
        *,
        temperature: float = 0.0,
        host: Optional[NativeHost] = None,
    ) -> CorrectionOutcome:
        """
        In-app correction. Failures come back as an outcome carrying the
        error and, when eligible, a fallback model the user may retry with.

        Raises:
            ValidationError: Bad input
        """
        style = parse_style(style)
        provider = provider_for_model(model_id)
        await self._play(host, SoundType.PROCESSING)
        started = time.monotonic()
        try:
            result = await self.submit(text, style, custom_rules, model_id, temperature=temperature)
        except ValidationError:
            raise
        except CorrectifyError as exc:
            return CorrectionOutcome(
                text=text,
                writing_style=style,
                custom_rules=custom_rules,
                model_id=model_id,
                provider=provider,
                duration_ms=self._elapsed_ms(started),
                temperature=temperature,
                error=exc,
                fallback_model_id=await self.find_fallback(model_id),
            )
        await self._play(host, SoundType.COMPLETED)
        return CorrectionOutcome(
            text=text,
            writing_style=style,
            custom_rules=custom_rules,
            model_id=model_id,
            provider=provider,
            duration_ms=self._elapsed_ms(started),
            temperature=temperature,
            result=result,
        )

    async def retry_with_fallback(
        self,
        outcome: CorrectionOutcome,
        *,
        host: Optional[NativeHost] = None,
    ) -> CorrectionOutcome:
        """Re-run a failed correction with the model offered in ``outcome``.

        Raises:
            ValidationError: If the outcome offers no fallback
        """
        if outcome.ok or not outcome.fallback_model_id:
            raise ValidationError("No fallback model was offered for this correction")
        logger.info(f"Retrying with fallback model {outcome.fallback_model_id}")
        return await self.correct_interactive(
            outcome.text,
            outcome.writing_style,
            outcome.custom_rules,
            outcome.fallback_model_id,
            temperature=outcome.temperature,
            host=host,
        )

    @staticmethod
    async def _play(host: Optional[NativeHost], sound: SoundType) -> None:
        if host is None:
            return
        try:
            await host.play_sound_in_app(sound)
        except Exception as e:
            logger.warning(f"Failed to play {sound.value} sound: {e}")
