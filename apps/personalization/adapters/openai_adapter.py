import logging

import openai

from ..collaborators import GenerationResult
from .base import AdapterConfig, BaseTextAdapter, TextAdapterError

logger = logging.getLogger(__name__)


class OpenaiAdapter(BaseTextAdapter):  # Class name must match provider for the factory
    """Text generation through the OpenAI chat completions API."""

    def __init__(self, config: AdapterConfig):
        super().__init__(config)
        api_key = self._get_api_key()
        if not api_key:
            raise TextAdapterError("OpenAI API key is missing in configuration.")

        base_url = self._get_base_url()
        if base_url:
            self.client = openai.OpenAI(api_key=api_key, base_url=base_url)
            logger.info(f"Using custom OpenAI API base URL: {base_url}")
        else:
            self.client = openai.OpenAI(api_key=api_key)

    def generate(self, prompt: str, params: dict) -> GenerationResult:
        model_id = self.config.model_id
        logger.info(f"Sending request to OpenAI model: {model_id}")

        api_params = {
            "model": model_id,
            "temperature": params.get("temperature", 0.4),
            "max_tokens": params.get("max_tokens", 256),
        }
        for optional in ("top_p", "frequency_penalty", "presence_penalty", "stop"):
            if optional in params:
                api_params[optional] = params[optional]

        messages = [{"role": "user", "content": prompt}]
        if params.get("system"):
            messages.insert(0, {"role": "system", "content": params["system"]})

        try:
            response = self.client.chat.completions.create(messages=messages, **api_params)
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API error: {e}", exc_info=True)
            raise TextAdapterError(f"OpenAI API error: {e}") from e

        choice = response.choices[0]
        text = (choice.message.content or "").strip()
        usage = response.usage
        metadata = {
            "model_used": response.model,
            "prompt_tokens": usage.prompt_tokens if usage else None,
            "completion_tokens": usage.completion_tokens if usage else None,
            "finish_reason": choice.finish_reason,
        }
        logger.info(
            f"Received response from OpenAI model {model_id}. Finish reason: {choice.finish_reason}"
        )
        return GenerationResult(
            text=text,
            confidence=self.confidence_for(choice.finish_reason) if text else 0.0,
            metadata=metadata,
        )
