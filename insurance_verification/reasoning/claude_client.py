"""Claude text generator for eligibility classification."""
import time
from typing import Optional

import anthropic

from insurance_verification.config.logging_config import get_logger
from insurance_verification.reasoning.classifier_gateway import TextGenerationError, TextGenerator

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are an insurance eligibility verification assistant. Respond with JSON only."


class ClaudeClient(TextGenerator):
    """Claude client. SDK-level retries are disabled; the gateway retries."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        request_timeout: float = 30.0,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=request_timeout,
            max_retries=0,
        )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        logger.info("Claude client initialized", model=self.model)

    @property
    def provider(self) -> str:
        return "claude"

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        logger.info("Generating with Claude", model=self.model)

        start_time = time.monotonic()
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_prompt or DEFAULT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as e:
            raise TextGenerationError(f"Claude request timed out: {e}", timed_out=True) from e
        except anthropic.APIConnectionError as e:
            raise TextGenerationError(f"Claude connection failed: {e}", status_code=503) from e
        except anthropic.APIStatusError as e:
            raise TextGenerationError(f"Claude API error: {e.message}", status_code=e.status_code) from e

        latency_ms = (time.monotonic() - start_time) * 1000

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise TextGenerationError("Empty response from Claude (no text blocks)", status_code=502)

        usage = getattr(message, "usage", None)
        logger.debug(
            "Claude response received",
            length=len(text),
            latency_ms=round(latency_ms, 2),
            input_tokens=getattr(usage, "input_tokens", 0) if usage else 0,
            output_tokens=getattr(usage, "output_tokens", 0) if usage else 0,
        )
        return text

    async def close(self) -> None:
        await self.client.close()
