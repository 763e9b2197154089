"""Tests for the text-generation client, adapters and factory."""

import time
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase

from apps.personalization.adapters.base import AdapterConfig, BaseTextAdapter, TextAdapterError
from apps.personalization.adapters.openai_adapter import OpenaiAdapter
from apps.personalization.collaborators import GenerationResult
from apps.personalization.text_generation import (
    TextAdapterFactory,
    TextGenerationClient,
    build_text_generator,
)


class StaticAdapter(BaseTextAdapter):
    def __init__(self, text="Generated text", delay=0.0, error=None):
        super().__init__(AdapterConfig(provider="static", model_id="static"))
        self.text = text
        self.delay = delay
        self.error = error
        self.calls = []

    def generate(self, prompt, params):
        self.calls.append((prompt, params))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return GenerationResult(text=self.text, confidence=0.9)


class TextGenerationClientTests(SimpleTestCase):
    """Tests for TextGenerationClient.generate()."""

    async def test_successful_generation(self):
        adapter = StaticAdapter()
        client = TextGenerationClient(adapter=adapter, default_params={"temperature": 0.2})

        result, used_fallback = await client.generate("prompt", params={"max_tokens": 50}, fallback="fb")

        self.assertFalse(used_fallback)
        self.assertEqual(result.text, "Generated text")
        self.assertEqual(adapter.calls, [("prompt", {"temperature": 0.2, "max_tokens": 50})])

    async def test_disabled_client_returns_fallback(self):
        client = TextGenerationClient(adapter=None)

        result, used_fallback = await client.generate("prompt", fallback="fallback text")

        self.assertTrue(used_fallback)
        self.assertEqual(result.text, "fallback text")
        self.assertEqual(result.metadata["fallback_reason"], "disabled")

    async def test_timeout_returns_fallback(self):
        client = TextGenerationClient(adapter=StaticAdapter(delay=0.5), timeout_seconds=0.05)

        with self.assertLogs("apps.personalization", level="WARNING"):
            result, used_fallback = await client.generate("prompt", fallback="fallback text")

        self.assertTrue(used_fallback)
        self.assertEqual(result.text, "fallback text")
        self.assertEqual(result.confidence, 0.0)
        self.assertEqual(result.metadata["fallback_reason"], "timeout")

    async def test_provider_error_returns_fallback(self):
        client = TextGenerationClient(adapter=StaticAdapter(error=TextAdapterError("boom")))

        with self.assertLogs("apps.personalization", level="WARNING"):
            result, used_fallback = await client.generate("prompt", fallback="fallback text")

        self.assertTrue(used_fallback)
        self.assertEqual(result.metadata["fallback_reason"], "upstream_unavailable")

    async def test_empty_text_returns_fallback(self):
        client = TextGenerationClient(adapter=StaticAdapter(text=""))

        result, used_fallback = await client.generate("prompt", fallback="fallback text")

        self.assertTrue(used_fallback)
        self.assertEqual(result.text, "fallback text")


class TextAdapterFactoryTests(SimpleTestCase):
    def test_known_provider(self):
        self.assertIs(TextAdapterFactory.get_adapter("OpenAI"), OpenaiAdapter)

    def test_unknown_provider(self):
        with self.assertLogs("apps.personalization", level="ERROR"):
            with self.assertRaises(TextAdapterError):
                TextAdapterFactory.get_adapter("nonexistent")


class BuildTextGeneratorTests(SimpleTestCase):
    def test_no_provider_gives_disabled_client(self):
        client = build_text_generator({"PROVIDER": None, "TIMEOUT_SECONDS": 3})

        self.assertFalse(client.enabled)
        self.assertEqual(client.timeout_seconds, 3.0)

    def test_missing_api_key_disables_client(self):
        with self.assertLogs("apps.personalization", level="WARNING"):
            client = build_text_generator({"PROVIDER": "openai", "MODEL_ID": "gpt-4o-mini"})

        self.assertFalse(client.enabled)


class OpenaiAdapterTests(SimpleTestCase):
    @patch("apps.personalization.adapters.openai_adapter.openai.OpenAI")
    def test_generate_maps_response(self, mock_openai):
        choice = MagicMock(finish_reason="stop")
        choice.message.content = "  Study in the morning.  "
        response = MagicMock(choices=[choice], model="gpt-4o-mini")
        response.usage.prompt_tokens = 12
        response.usage.completion_tokens = 5
        mock_openai.return_value.chat.completions.create.return_value = response

        adapter = OpenaiAdapter(AdapterConfig(provider="openai", model_id="gpt-4o-mini", api_key="sk-test"))
        result = adapter.generate("prompt", {"temperature": 0.1})

        self.assertEqual(result.text, "Study in the morning.")
        self.assertEqual(result.confidence, 0.9)
        self.assertEqual(result.metadata["finish_reason"], "stop")
        kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["temperature"], 0.1)
