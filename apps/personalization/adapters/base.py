from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..collaborators import GenerationResult
from ..exceptions import UpstreamUnavailable


class TextAdapterError(UpstreamUnavailable):
    """Raised when a text-generation provider call fails."""
    pass


@dataclass(frozen=True)
class AdapterConfig:
    provider: str
    model_id: str
    api_key: str | None = None
    base_url: str | None = None


# Finish reasons that indicate a complete answer
COMPLETE_FINISH_REASONS = {"stop", "end_turn", "stop_sequence"}


class BaseTextAdapter(ABC):
    """Abstract base class for text-generation providers."""

    def __init__(self, config: AdapterConfig):
        self.config = config

    @abstractmethod
    def generate(self, prompt: str, params: dict) -> GenerationResult:
        """
        Sends the prompt to the provider and returns the generated text.

        :param prompt: The input prompt text.
        :param params: Generation parameters (temperature, max_tokens...).
        :return: GenerationResult with text, a confidence in [0, 1] and metadata
                 such as token usage and finish reason.
        :raises TextAdapterError: If the API call fails.
        """
        pass

    @staticmethod
    def confidence_for(finish_reason: str | None) -> float:
        """Truncated or filtered completions are trusted less than complete ones."""
        if finish_reason in COMPLETE_FINISH_REASONS:
            return 0.9
        if finish_reason in ("length", "max_tokens"):
            return 0.5
        return 0.3

    def _get_api_key(self) -> str | None:
        return self.config.api_key

    def _get_base_url(self) -> str | None:
        return self.config.base_url
