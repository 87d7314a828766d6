"""Gemini text generator for eligibility classification."""
import time
from typing import Optional

import google.generativeai as genai
from google.api_core.exceptions import (
    DeadlineExceeded,
    GoogleAPIError,
    RetryError,
    ServiceUnavailable,
    TooManyRequests,
)

from insurance_verification.config.logging_config import get_logger
from insurance_verification.reasoning.classifier_gateway import TextGenerationError, TextGenerator

logger = get_logger(__name__)


class GeminiClient(TextGenerator):
    """
    Gemini client.

    Makes exactly one request per ``generate`` call; retries belong to the
    classifier gateway.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash-latest",
        temperature: float = 0.3,
        max_output_tokens: int = 1000,
        request_timeout: float = 30.0,
    ):
        """Initialize the Gemini client."""
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.request_timeout = request_timeout
        logger.info("Gemini client initialized", model=self.model_name)

    @property
    def provider(self) -> str:
        return "gemini"

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate content using Gemini.

        Args:
            prompt: The generation prompt
            system_prompt: Optional system instruction

        Returns:
            Response text

        Raises:
            TextGenerationError: If the call fails or returns nothing
        """
        logger.info("Generating with Gemini", model=self.model_name)

        generation_config = genai.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
        )
        # System instruction keeps patient-supplied text out of the system role
        model = genai.GenerativeModel(self.model_name, system_instruction=system_prompt)

        start_time = time.monotonic()
        try:
            response = await model.generate_content_async(
                prompt,
                generation_config=generation_config,
                request_options={"timeout": self.request_timeout},
            )
        except TooManyRequests as e:
            raise TextGenerationError(f"Gemini rate limited: {e}", status_code=429) from e
        except (DeadlineExceeded, RetryError, TimeoutError) as e:
            raise TextGenerationError(f"Gemini request timed out: {e}", timed_out=True) from e
        except ServiceUnavailable as e:
            raise TextGenerationError(f"Gemini unavailable: {e}", status_code=503) from e
        except GoogleAPIError as e:
            status_code = getattr(e, "code", None)
            raise TextGenerationError(
                f"Gemini API error: {e}",
                status_code=status_code if isinstance(status_code, int) else None,
            ) from e
        except ConnectionError as e:
            raise TextGenerationError(f"Gemini connection failed: {e}", status_code=503) from e

        latency_ms = (time.monotonic() - start_time) * 1000

        try:
            text = response.text
        except ValueError as e:
            # Raised when the candidate was blocked or carries no text parts
            raise TextGenerationError(f"Gemini returned no text: {e}", status_code=502) from e
        if not text:
            raise TextGenerationError("Empty response from Gemini", status_code=502)

        usage_meta = getattr(response, "usage_metadata", None)
        logger.debug(
            "Gemini response received",
            length=len(text),
            latency_ms=round(latency_ms, 2),
            input_tokens=getattr(usage_meta, "prompt_token_count", 0) if usage_meta else 0,
            output_tokens=getattr(usage_meta, "candidates_token_count", 0) if usage_meta else 0,
        )
        return text
