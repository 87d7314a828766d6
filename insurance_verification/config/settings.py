"""Application settings loaded from environment variables and .env."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the insurance verification service.

    Services never read this globally; the application edge builds one
    instance and hands it (or the relevant values) to each constructor.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    app_base_url: str = Field(default="http://localhost:5173")

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./verifications.db")
    database_echo: bool = Field(default=False)

    # Classifier
    classifier_provider: str = Field(default="gemini")  # gemini | claude | azure_openai | fake
    # Overall budget for one classification, retries included; derived when unset
    classifier_timeout_seconds: Optional[float] = Field(default=None)
    classifier_request_timeout_seconds: float = Field(default=30.0)
    classifier_max_attempts: int = Field(default=3)
    classifier_backoff_base_seconds: float = Field(default=2.0)
    classifier_temperature: float = Field(default=0.3)
    classifier_max_output_tokens: int = Field(default=1000)

    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-1.5-flash-latest")

    anthropic_api_key: Optional[str] = Field(default=None)
    claude_model: str = Field(default="claude-sonnet-4-20250514")

    azure_openai_api_key: Optional[str] = Field(default=None)
    azure_openai_endpoint: Optional[str] = Field(default=None)
    azure_openai_api_version: str = Field(default="2024-08-01-preview")
    azure_openai_deployment: str = Field(default="gpt-4o")

    # Payer channel
    payer_channel: str = Field(default="simulated")  # simulated | http
    payer_scenario: str = Field(default="random")  # approve | more_info | random | unavailable
    payer_approval_rate: float = Field(default=0.7)
    payer_api_url: Optional[str] = Field(default=None)
    payer_api_key: Optional[str] = Field(default=None)
    payer_timeout_seconds: float = Field(default=30.0)

    # Notifications
    email_enabled: bool = Field(default=False)
    email_service_url: Optional[str] = Field(default=None)
    email_recipients: List[str] = Field(default_factory=list)
    slack_enabled: bool = Field(default=False)
    slack_webhook_url: Optional[str] = Field(default=None)
    notification_timeout_seconds: float = Field(default=10.0)

    # Compliance
    retention_period_days: int = Field(default=2555)

    @property
    def classifier_worst_case_seconds(self) -> float:
        """Time the classifier retry policy can take when every attempt times out."""
        from insurance_verification.retry_policy import RetryPolicy

        policy = RetryPolicy(
            max_attempts=self.classifier_max_attempts,
            backoff_base=self.classifier_backoff_base_seconds,
        )
        return policy.worst_case_seconds(self.classifier_request_timeout_seconds)

    @property
    def classifier_budget_seconds(self) -> float:
        if self.classifier_timeout_seconds is None:
            return self.classifier_worst_case_seconds
        return self.classifier_timeout_seconds

    @model_validator(mode="after")
    def check_classifier_budget(self) -> "Settings":
        # The outer budget must leave room for the final attempt
        worst_case = self.classifier_worst_case_seconds
        if self.classifier_timeout_seconds is not None and self.classifier_timeout_seconds < worst_case:
            raise ValueError(
                f"classifier_timeout_seconds ({self.classifier_timeout_seconds:g}) is shorter than the "
                f"classifier retry policy can take ({worst_case:g}s for "
                f"{self.classifier_max_attempts} attempts of {self.classifier_request_timeout_seconds:g}s)"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance."""
    return Settings()
