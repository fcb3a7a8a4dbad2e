"""Chat model configuration — supports OpenAI and Gemini."""

from keyword_matcher.config import Settings, get_settings


def has_credentials(settings: Settings | None = None) -> bool:
    """Whether the configured AI provider has an API key."""
    settings = settings or get_settings()
    if settings.AI_PROVIDER == "openai":
        return bool(settings.OPENAI_API_KEY)
    return bool(settings.GEMINI_API_KEY)


def get_llm(settings: Settings | None = None):
    """Get the configured chat model, asked for JSON output where the provider supports it."""
    settings = settings or get_settings()
    if settings.AI_PROVIDER == "openai":
        from langchain_openai import ChatOpenAI
        return ChatOpenAI(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            temperature=0.1,
            model_kwargs={"response_format": {"type": "json_object"}},
        )
    else:
        from langchain_google_genai import ChatGoogleGenerativeAI
        return ChatGoogleGenerativeAI(
            google_api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            temperature=0.1,
        )
