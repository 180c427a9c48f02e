"""
LLM provider factory
"""
from .llm.base import LLMProvider
from .llm.providers import OllamaProvider, OpenAICompatibleProvider
from ..config import API_ENDPOINT, DEFAULT_MODEL, OLLAMA_API_ENDPOINT, OLLAMA_NUM_CTX, OPENAI_API_KEY


def create_llm_provider(provider_type: str = "openai", **kwargs) -> LLMProvider:
    """Factory function to create LLM providers"""
    model = kwargs.get("model") or DEFAULT_MODEL
    extra = {key: kwargs[key] for key in ("transport", "retry_delay") if key in kwargs}

    if provider_type.lower() == "ollama":
        return OllamaProvider(
            api_endpoint=kwargs.get("api_endpoint") or OLLAMA_API_ENDPOINT,
            model=model,
            context_window=kwargs.get("context_window") or OLLAMA_NUM_CTX,
            **extra
        )
    elif provider_type.lower() == "openai":
        return OpenAICompatibleProvider(
            api_endpoint=kwargs.get("api_endpoint") or API_ENDPOINT,
            model=model,
            api_key=kwargs.get("api_key") or OPENAI_API_KEY,
            **extra
        )
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")
