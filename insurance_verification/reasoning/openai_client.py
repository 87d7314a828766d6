"""Azure OpenAI text generator for eligibility classification."""
import time
from typing import Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncAzureOpenAI

from insurance_verification.config.logging_config import get_logger
from insurance_verification.reasoning.classifier_gateway import TextGenerationError, TextGenerator

logger = get_logger(__name__)


class AzureOpenAIClient(TextGenerator):
    """
    Azure OpenAI client.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str = "gpt-4o",
        api_version: str = "2024-08-01-preview",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        request_timeout: float = 30.0,
    ):
        """Initialize the Azure OpenAI client."""
        self.client = AsyncAzureOpenAI(
            api_key=api_key,
            api_version=api_version,
            azure_endpoint=endpoint,
            timeout=request_timeout,
            max_retries=0,
        )
        self.deployment = deployment
        self.temperature = temperature
        self.max_tokens = max_tokens
        logger.info("Azure OpenAI client initialized", deployment=self.deployment)

    @property
    def provider(self) -> str:
        return "azure_openai"

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate content using Azure OpenAI.

        Raises:
            TextGenerationError: If the call fails or returns no content
        """
        logger.info("Generating with Azure OpenAI", deployment=self.deployment)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request_params = {
            "model": self.deployment,
            "messages": messages,
            "max_completion_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        # Some mini deployments reject an explicit temperature
        if "mini" not in self.deployment.lower():
            request_params["temperature"] = self.temperature

        start_time = time.monotonic()
        try:
            response = await self.client.chat.completions.create(**request_params)
        except APITimeoutError as e:
            raise TextGenerationError(f"Azure OpenAI request timed out: {e}", timed_out=True) from e
        except APIConnectionError as e:
            raise TextGenerationError(f"Azure OpenAI connection failed: {e}", status_code=503) from e
        except APIStatusError as e:
            raise TextGenerationError(f"Azure OpenAI API error: {e.message}", status_code=e.status_code) from e
        latency_ms = (time.monotonic() - start_time) * 1000

        if not response.choices:
            raise TextGenerationError("No choices in Azure OpenAI response", status_code=502)

        choice = response.choices[0]
        text = choice.message.content
        if not text:
            raise TextGenerationError(
                f"Empty Azure OpenAI response (finish_reason={choice.finish_reason})",
                status_code=502,
            )

        usage = response.usage
        logger.info(
            "Azure OpenAI response received",
            finish_reason=choice.finish_reason,
            content_length=len(text),
            latency_ms=round(latency_ms, 2),
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )
        return text

    async def close(self) -> None:
        await self.client.close()
