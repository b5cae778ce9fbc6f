"""LLM provider configuration."""

from typing import Literal

from pydantic import BaseModel, SecretStr

LLMProvider = Literal["openai", "anthropic", "google"]


class LLMConfig(BaseModel, frozen=True):
    """LLM provider settings used for title generation."""

    provider: LLMProvider
    openai_api_key: SecretStr
    openai_model: str
    anthropic_api_key: SecretStr
    anthropic_model: str
    gemini_api_key: SecretStr
    google_api_key: SecretStr
    google_model: str

    @property
    def default_model_ref(self) -> str:
        """Default ``provider/model`` reference of the configured provider."""
        match self.provider:
            case "openai":
                return f"openai/{self.openai_model}"
            case "anthropic":
                return f"anthropic/{self.anthropic_model}"
            case "google":
                return f"google/{self.google_model}"

    def api_key_for(self, provider: str) -> SecretStr | None:
        """Resolve the API key for a provider family, or None when unset."""
        match provider:
            case "google":
                candidates = [self.gemini_api_key, self.google_api_key]
            case "anthropic":
                candidates = [self.anthropic_api_key]
            case "openai":
                candidates = [self.openai_api_key]
            case _:
                candidates = []
        for key in candidates:
            if key.get_secret_value().strip():
                return key
        return None
