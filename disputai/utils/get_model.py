import os
from typing import Literal

from langchain.chat_models import init_chat_model

from disputai.config import settings

Provider = Literal["openai", "gemini", "groq"]

# Our provider names -> langchain model_provider names
PROVIDER_MAP = {
    "openai": "openai",
    "gemini": "google_genai",
    "groq": "groq",
}

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "groq": "GROQ_API_KEY",
}


def resolve_provider(
    provider: Provider | None = None,
    api_key: str | None = None,
    model: str | None = None,
) -> tuple[Provider, str, str]:
    """Fill in provider, API key and model name from settings.

    Raises:
        ValueError: If the provider is unknown or has no API key
    """
    provider = provider or settings.llm_provider
    if provider not in PROVIDER_MAP:
        raise ValueError(f"Unknown provider: {provider}")

    api_key = api_key or getattr(settings, f"{provider}_api_key")
    model = model or getattr(settings, f"{provider}_model")

    if not api_key:
        raise ValueError(
            f"{provider.title()} API key is required. "
            f"Set {provider.upper()}_API_KEY in .env or pass api_key parameter."
        )
    return provider, api_key, model


def create_llm(
    provider: Provider,
    api_key: str,
    model: str,
    temperature: float = 0.3,
):
    """Create a chat model for the provider using init_chat_model.

    Args:
        provider: The LLM provider ('openai', 'gemini' or 'groq')
        api_key: API key for the provider
        model: Model name to use
        temperature: Temperature for response generation

    Returns:
        Configured chat model instance
    """
    # init_chat_model reads credentials from the environment
    os.environ[API_KEY_ENV[provider]] = api_key

    return init_chat_model(
        model=model,
        model_provider=PROVIDER_MAP[provider],
        temperature=temperature,
    )
