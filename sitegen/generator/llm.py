"""Chat model construction for page copy generation."""

from langchain_openai import ChatOpenAI
import structlog

from sitegen.config import Settings

logger = structlog.get_logger()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class LLMFactory:
    """Creates ChatOpenAI clients for OpenAI or OpenRouter."""

    @staticmethod
    def create_llm(settings: Settings) -> ChatOpenAI:
        """Create an LLM instance from settings.

        Raises:
            ValueError: unknown provider.
            KeyError: the provider's API key is not configured.
        """
        provider = settings.llm_provider
        logger.info(
            "llm_created",
            provider=provider,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
        )
        if provider == "openrouter":
            return LLMFactory._create_openrouter_llm(settings)
        elif provider == "openai":
            return LLMFactory._create_openai_llm(settings)
        else:
            raise ValueError(
                f"Unknown LLM provider: {provider}. Supported providers: openrouter, openai"
            )

    @staticmethod
    def _create_openrouter_llm(settings: Settings) -> ChatOpenAI:
        if not settings.open_router_key:
            raise KeyError("OPEN_ROUTER_KEY is not set. Please set it to use OpenRouter.")
        return ChatOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=settings.open_router_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            default_headers={"X-Title": "sitegen"},
        )

    @staticmethod
    def _create_openai_llm(settings: Settings) -> ChatOpenAI:
        if not settings.openai_api_key:
            raise KeyError("OPENAI_API_KEY is not set. Please set it to use OpenAI.")
        return ChatOpenAI(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
        )
