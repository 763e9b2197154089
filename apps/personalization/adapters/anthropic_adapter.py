import logging

import anthropic

from ..collaborators import GenerationResult
from .base import AdapterConfig, BaseTextAdapter, TextAdapterError

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseTextAdapter):
    """Text generation through Anthropic's Messages API."""

    def __init__(self, config: AdapterConfig):
        super().__init__(config)
        api_key = self._get_api_key()
        if not api_key:
            raise TextAdapterError("Anthropic API key is missing in configuration.")

        base_url = self._get_base_url()
        if base_url:
            self.client = anthropic.Anthropic(api_key=api_key, base_url=base_url)
            logger.info(f"Using custom Anthropic API base URL: {base_url}")
        else:
            self.client = anthropic.Anthropic(api_key=api_key)

    def generate(self, prompt: str, params: dict) -> GenerationResult:
        model_id = self.config.model_id
        logger.info(f"Sending request to Anthropic model: {model_id}")

        # max_tokens is required by the Messages API
        api_params = {
            "model": model_id,
            "max_tokens": params.get("max_tokens", 256),
            "temperature": params.get("temperature", 0.4),
        }
        if "stop_sequences" in params:
            api_params["stop_sequences"] = params["stop_sequences"]
        system_prompt = params.get("system")
        if system_prompt:
            api_params["system"] = system_prompt

        try:
            message = self.client.messages.create(
                messages=[{"role": "user", "content": prompt}],
                **api_params,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}", exc_info=True)
            raise TextAdapterError(f"Anthropic API error: {e}") from e

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        ).strip()
        metadata = {
            "model_used": message.model,
            "input_tokens": message.usage.input_tokens,
            "output_tokens": message.usage.output_tokens,
            "stop_reason": message.stop_reason,
        }
        logger.info(
            f"Received response from Anthropic model {model_id}. Stop reason: {message.stop_reason}"
        )
        return GenerationResult(
            text=text,
            confidence=self.confidence_for(message.stop_reason) if text else 0.0,
            metadata=metadata,
        )
