"""
Optional text-generation collaborator.

Provider SDK calls are blocking, so they run in a worker thread under a
caller-supplied timeout. Any timeout or provider error is answered with the
caller's deterministic fallback text; upstream failures never propagate.
"""

import asyncio
import importlib
import logging

from .adapters.base import AdapterConfig, TextAdapterError
from .collaborators import GenerationResult, TextGenerationService
from .conf import get_setting
from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


class TextAdapterFactory:
    """Factory to get the adapter class for a provider name."""

    _adapter_cache = {}

    @classmethod
    def get_adapter(cls, provider_name: str):
        key = provider_name.lower()
        if key in cls._adapter_cache:
            return cls._adapter_cache[key]

        module_path = f"apps.personalization.adapters.{key}_adapter"
        class_name = f"{key.capitalize()}Adapter"

        try:
            module = importlib.import_module(module_path)
            adapter_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            logger.error(f"Could not load text adapter for provider '{provider_name}': {e}")
            raise TextAdapterError(
                f"Adapter for provider '{provider_name}' not found or invalid."
            ) from e

        cls._adapter_cache[key] = adapter_class
        return adapter_class


class TextGenerationClient(TextGenerationService):
    """Bounded-wait wrapper around a provider adapter."""

    def __init__(
        self,
        adapter=None,
        timeout_seconds: float = 10.0,
        default_params: dict | None = None,
        logger: logging.Logger | None = None,
    ):
        self.adapter = adapter
        self.timeout_seconds = timeout_seconds
        self.default_params = dict(default_params or {})
        self.logger = logger or logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return self.adapter is not None

    def _fallback(self, fallback: str, reason: str) -> tuple[GenerationResult, bool]:
        return GenerationResult(text=fallback, confidence=0.0, metadata={"fallback_reason": reason}), True

    async def generate(self, prompt, params=None, fallback=""):
        """
        Generate text, falling back to `fallback` on timeout or error.

        Returns:
            Tuple of (GenerationResult, used_fallback).
        """
        if self.adapter is None:
            return self._fallback(fallback, "disabled")

        merged = {**self.default_params, **(params or {})}
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.adapter.generate, prompt, merged),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Text generation timed out after {self.timeout_seconds}s, using fallback"
            )
            return self._fallback(fallback, "timeout")
        except UpstreamUnavailable as e:
            self.logger.warning(f"Text generation unavailable, using fallback: {e}")
            return self._fallback(fallback, "upstream_unavailable")
        except Exception as e:
            self.logger.error(f"Unexpected text generation error, using fallback: {e}", exc_info=True)
            return self._fallback(fallback, "error")

        if not result.text:
            return self._fallback(fallback, "empty")
        return result, False


def build_text_generator(config: dict | None = None) -> TextGenerationClient:
    """Create the client described by the TEXT_GENERATION setting.

    A missing provider, or an adapter that cannot be constructed, yields a
    disabled client that always answers with the fallback.
    """
    config = config if config is not None else get_setting("TEXT_GENERATION")
    timeout = float(config.get("TIMEOUT_SECONDS") or 10.0)
    params = config.get("DEFAULT_PARAMS") or {}
    provider = config.get("PROVIDER")

    if not provider:
        return TextGenerationClient(adapter=None, timeout_seconds=timeout, default_params=params)

    try:
        adapter_class = TextAdapterFactory.get_adapter(provider)
        adapter = adapter_class(
            AdapterConfig(
                provider=provider,
                model_id=config.get("MODEL_ID") or "",
                api_key=config.get("API_KEY"),
                base_url=config.get("BASE_URL"),
            )
        )
    except TextAdapterError as e:
        logger.warning(f"Text generation disabled: {e}")
        adapter = None

    return TextGenerationClient(adapter=adapter, timeout_seconds=timeout, default_params=params)
