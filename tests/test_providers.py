"""Unit tests for provider correctors, with HTTP mocked by respx."""
from __future__ import annotations

import json
import unittest
from unittest.mock import patch

import httpx
import openai
import respx

from correctify.exceptions import ConfigurationError, EmptyResponseError, ProviderError, ValidationError
from correctify.models import ProviderId
from correctify.providers import (
    CORRECTOR_CLASSES,
    AnthropicCorrector,
    MistralCorrector,
    OpenAICorrector,
    OpenRouterCorrector,
    create_corrector,
)
from correctify.providers.anthropic_provider import MESSAGES_URL
from correctify.providers.mistral_provider import CHAT_COMPLETIONS_URL
from correctify.schemas import CorrectionRequest

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def chat_completion_body(content, model="gpt-4o-mini"):
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
    }


class RespxTestCase(unittest.IsolatedAsyncioTestCase):
    """Starts a respx router for each test."""

    def setUp(self):
        self.router = respx.mock(assert_all_called=False)
        self.router.start()
        self.addCleanup(self.router.stop)


class TestCreateCorrector(unittest.TestCase):
    """Test cases for provider dispatch."""

    def test_every_provider_has_a_class(self):
        self.assertEqual(set(CORRECTOR_CLASSES), set(ProviderId))
        for provider, corrector_class in CORRECTOR_CLASSES.items():
            self.assertIs(corrector_class.provider, provider)

    def test_dispatch(self):
        corrector = create_corrector("anthropic", "sk-ant", timeout=5)
        self.assertIsInstance(corrector, AnthropicCorrector)
        self.assertEqual(corrector.timeout, 5)

    def test_blank_key_rejected_at_construction(self):
        for key in ("", "   "):
            with self.subTest(key=key):
                with self.assertRaises(ConfigurationError) as cm:
                    create_corrector(ProviderId.OPENAI, key)
                self.assertEqual(cm.exception.provider, "openai")

    def test_unknown_provider(self):
        with self.assertRaises(ValidationError):
            create_corrector("ollama", "key")


class TestOpenAICorrector(RespxTestCase):
    """Test cases for the OpenAI SDK-backed corrector."""

    def setUp(self):
        super().setUp()
        self.corrector = OpenAICorrector(api_key="sk-test")
        self.request = CorrectionRequest(
            text="I goes to the store yesterday.",
            provider=ProviderId.OPENAI,
            model="gpt-4o-mini",
            custom_rules="Keep it short.",
        )

    async def test_successful_correction(self):
        route = self.router.post(OPENAI_URL).mock(
            return_value=httpx.Response(200, json=chat_completion_body("  I went to the store yesterday.\n"))
        )

        result = await self.corrector.correct(self.request)

        self.assertEqual(result.text, "I went to the store yesterday.")
        self.assertEqual(route.call_count, 1)
        sent = json.loads(route.calls.last.request.content)
        self.assertEqual(sent["model"], "gpt-4o-mini")
        self.assertEqual(sent["temperature"], 0.0)
        self.assertEqual(sent["messages"][0]["role"], "system")
        self.assertIn("Keep it short.", sent["messages"][0]["content"])
        self.assertEqual(sent["messages"][1], {"role": "user", "content": "I goes to the store yesterday."})
        self.assertEqual(route.calls.last.request.headers["authorization"], "Bearer sk-test")

    async def test_sdk_runs_on_gateway_http_client(self):
        self.router.post(OPENAI_URL).mock(
            return_value=httpx.Response(200, json=chat_completion_body("Fixed."))
        )
        corrector = OpenAICorrector(api_key="sk-test", timeout=12)

        with patch.object(openai, "AsyncOpenAI", wraps=openai.AsyncOpenAI) as sdk_client:
            await corrector.correct(self.request)

        kwargs = sdk_client.call_args.kwargs
        self.assertIsInstance(kwargs["http_client"], httpx.AsyncClient)
        self.assertEqual(kwargs["http_client"].timeout, httpx.Timeout(12))
        self.assertEqual(kwargs["max_retries"], 0)
        self.assertEqual(self.router.calls.call_count, 1)

    async def test_http_error_normalized(self):
        route = self.router.post(OPENAI_URL).mock(
            return_value=httpx.Response(500, json={"error": {"message": "server exploded", "type": "server_error"}})
        )

        with self.assertRaises(ProviderError) as cm:
            await self.corrector.correct(self.request)

        self.assertEqual(cm.exception.status_code, 500)
        self.assertEqual(cm.exception.provider, "openai")
        self.assertIn("500", str(cm.exception))
        # No retries inside the gateway.
        self.assertEqual(route.call_count, 1)

    async def test_timeout_normalized(self):
        self.router.post(OPENAI_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        with self.assertRaises(ProviderError) as cm:
            await self.corrector.correct(self.request)

        self.assertIn("timed out", str(cm.exception))
        self.assertIsNone(cm.exception.status_code)

    async def test_empty_content(self):
        self.router.post(OPENAI_URL).mock(
            return_value=httpx.Response(200, json=chat_completion_body("   "))
        )

        with self.assertRaises(EmptyResponseError):
            await self.corrector.correct(self.request)

    async def test_wrong_provider_request(self):
        request = CorrectionRequest(text="x", provider=ProviderId.MISTRAL, model="mistral-small-latest")
        with self.assertRaises(ValidationError):
            await self.corrector.correct(request)


class TestOpenRouterCorrector(RespxTestCase):
    """Test cases for the OpenRouter corrector."""

    async def test_targets_openrouter(self):
        model = "meta-llama/llama-3.2-3b-instruct:free"
        route = self.router.post(OPENROUTER_URL).mock(
            return_value=httpx.Response(200, json=chat_completion_body("Fixed.", model=model))
        )
        corrector = OpenRouterCorrector(api_key="or-key")

        result = await corrector.correct(CorrectionRequest(text="fixd", provider="openrouter", model=model))

        self.assertEqual(result.text, "Fixed.")
        request = route.calls.last.request
        self.assertEqual(request.headers["x-title"], "Correctify")
        self.assertEqual(json.loads(request.content)["model"], model)


class TestAnthropicCorrector(RespxTestCase):
    """Test cases for the Anthropic Messages API corrector."""

    def setUp(self):
        super().setUp()
        self.corrector = AnthropicCorrector(api_key="sk-ant-test")
        self.request = CorrectionRequest(
            text="teh cat", provider=ProviderId.ANTHROPIC, model="claude-3-5-haiku-20241022",
            writing_style="formal",
        )

    async def test_successful_correction(self):
        route = self.router.post(MESSAGES_URL).mock(return_value=httpx.Response(200, json={
            "content": [
                {"type": "text", "text": "The "},
                {"type": "text", "text": "cat"},
            ],
        }))

        result = await self.corrector.correct(self.request)

        self.assertEqual(result.text, "The cat")
        request = route.calls.last.request
        self.assertEqual(request.headers["x-api-key"], "sk-ant-test")
        self.assertEqual(request.headers["anthropic-version"], "2023-06-01")
        body = json.loads(request.content)
        self.assertIn("Formal Tone", body["system"])
        self.assertEqual(body["messages"], [{"role": "user", "content": "teh cat"}])
        self.assertEqual(body["max_tokens"], 4096)

    async def test_error_status(self):
        self.router.post(MESSAGES_URL).mock(return_value=httpx.Response(401, json={
            "type": "error",
            "error": {"type": "authentication_error", "message": "invalid x-api-key"},
        }))

        with self.assertRaises(ProviderError) as cm:
            await self.corrector.correct(self.request)

        self.assertEqual(cm.exception.status_code, 401)
        self.assertIn("invalid x-api-key", str(cm.exception))

    async def test_no_text_blocks(self):
        self.router.post(MESSAGES_URL).mock(return_value=httpx.Response(200, json={"content": []}))

        with self.assertRaises(EmptyResponseError):
            await self.corrector.correct(self.request)

    async def test_malformed_body(self):
        self.router.post(MESSAGES_URL).mock(return_value=httpx.Response(200, text="not json"))

        with self.assertRaises(ProviderError):
            await self.corrector.correct(self.request)


class TestMistralCorrector(RespxTestCase):
    """Test cases for the Mistral corrector."""

    def setUp(self):
        super().setUp()
        self.corrector = MistralCorrector(api_key="mistral-key")
        self.request = CorrectionRequest(text="helo", provider="mistral", model="mistral-small-latest")

    async def test_successful_correction(self):
        route = self.router.post(CHAT_COMPLETIONS_URL).mock(return_value=httpx.Response(200, json={
            "choices": [{"message": {"role": "assistant", "content": "Hello"}}],
        }))

        result = await self.corrector.correct(self.request)

        self.assertEqual(result.text, "Hello")
        self.assertEqual(route.calls.last.request.headers["authorization"], "Bearer mistral-key")

    async def test_connection_error(self):
        self.router.post(CHAT_COMPLETIONS_URL).mock(side_effect=httpx.ConnectError("refused"))

        with self.assertRaises(ProviderError) as cm:
            await self.corrector.correct(self.request)

        self.assertIn("request failed", str(cm.exception))

    async def test_timeout(self):
        self.router.post(CHAT_COMPLETIONS_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        with self.assertRaises(ProviderError) as cm:
            await self.corrector.correct(self.request)

        self.assertIn("timed out after 30s", str(cm.exception))

    async def test_missing_choices(self):
        self.router.post(CHAT_COMPLETIONS_URL).mock(return_value=httpx.Response(200, json={"choices": []}))

        with self.assertRaises(EmptyResponseError):
            await self.corrector.correct(self.request)


if __name__ == '__main__':
    unittest.main()
