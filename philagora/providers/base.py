"""Abstract base for all model providers."""

from abc import ABC, abstractmethod

from philagora.models import ModelResponse


class ProviderError(Exception):
    """Raised when a provider call fails (network, API error, timeout, empty output)."""

    def __init__(self, provider_name: str, message: str, *, timed_out: bool = False) -> None:
        self.provider_name = provider_name
        self.timed_out = timed_out
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'claude', 'openai')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int,
        temperature: float,
    ) -> ModelResponse:
        """Generate text for one system frame + user frame.

        Args:
            system: Persona or editorial frame.
            user: Content frame (source material).
            max_tokens: Output-size ceiling.
            temperature: Sampling temperature.

        Returns:
            ModelResponse with the concatenated text and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...
