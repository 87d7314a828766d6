"""Provider routing: build the configured classifier from settings."""
from insurance_verification.config.logging_config import get_logger
from insurance_verification.config.settings import Settings
from insurance_verification.models.enums import ClassifierProvider
from insurance_verification.reasoning.classifier_gateway import (
    Classifier,
    ClassifierGateway,
    TextGenerator,
    is_retryable_generation_error,
)
from insurance_verification.retry_policy import RetryPolicy

logger = get_logger(__name__)


class ProviderNotConfigured(ValueError):
    """The selected provider is missing credentials or is unknown."""
    pass


def create_text_generator(settings: Settings) -> TextGenerator:
    """
    Create the text generator for ``settings.classifier_provider``.

    Vendor SDKs are imported lazily so an unused vendor never needs
    credentials at startup.

    Raises:
        ProviderNotConfigured: If the provider is unknown or lacks credentials
    """
    try:
        provider = ClassifierProvider(settings.classifier_provider.lower())
    except ValueError as e:
        raise ProviderNotConfigured(f"Unknown classifier provider: {settings.classifier_provider}") from e

    if provider == ClassifierProvider.GEMINI:
        if not settings.gemini_api_key:
            raise ProviderNotConfigured("GEMINI_API_KEY is required for the gemini classifier")
        from insurance_verification.reasoning.gemini_client import GeminiClient
        return GeminiClient(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model,
            temperature=settings.classifier_temperature,
            max_output_tokens=settings.classifier_max_output_tokens,
            request_timeout=settings.classifier_request_timeout_seconds,
        )

    if provider == ClassifierProvider.CLAUDE:
        if not settings.anthropic_api_key:
            raise ProviderNotConfigured("ANTHROPIC_API_KEY is required for the claude classifier")
        from insurance_verification.reasoning.claude_client import ClaudeClient
        return ClaudeClient(
            api_key=settings.anthropic_api_key,
            model=settings.claude_model,
            temperature=settings.classifier_temperature,
            max_tokens=settings.classifier_max_output_tokens,
            request_timeout=settings.classifier_request_timeout_seconds,
        )

    if provider == ClassifierProvider.AZURE_OPENAI:
        if not settings.azure_openai_api_key or not settings.azure_openai_endpoint:
            raise ProviderNotConfigured(
                "AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT are required for the azure_openai classifier"
            )
        from insurance_verification.reasoning.openai_client import AzureOpenAIClient
        return AzureOpenAIClient(
            api_key=settings.azure_openai_api_key,
            endpoint=settings.azure_openai_endpoint,
            deployment=settings.azure_openai_deployment,
            api_version=settings.azure_openai_api_version,
            temperature=settings.classifier_temperature,
            max_tokens=settings.classifier_max_output_tokens,
            request_timeout=settings.classifier_request_timeout_seconds,
        )

    raise ProviderNotConfigured(f"Provider {provider.value} has no text generator")


def create_classifier(settings: Settings) -> Classifier:
    """Create the classifier the verification lifecycle uses."""
    if settings.classifier_provider.lower() == ClassifierProvider.FAKE.value:
        from insurance_verification.reasoning.fake_classifier import FakeClassifier
        logger.warning("Using fake classifier; eligibility results are canned")
        return FakeClassifier()

    retry_policy = RetryPolicy(
        max_attempts=settings.classifier_max_attempts,
        backoff_base=settings.classifier_backoff_base_seconds,
        retryable=is_retryable_generation_error,
        name="classifier",
    )
    return ClassifierGateway(
        create_text_generator(settings),
        retry_policy=retry_policy,
        request_timeout=settings.classifier_request_timeout_seconds,
    )
