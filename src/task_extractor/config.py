"""Application configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Slack
    slack_bot_token: str = ""
    slack_rate_limit_delay_ms: int = 1000
    max_messages_per_channel: int = 200

    # Workflow API
    workflow_api_key: str = ""
    workflow_id: str = ""
    workflow_base_url: str = "https://operator.opus.com"
    workflow_poll_interval_ms: int = 3000
    workflow_poll_max_attempts: int = 60
    workflow_fill_schema_defaults: bool = True

    # App
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 3002

    def validation_errors(self) -> list[str]:
        """Return human-readable problems that should block startup.

        Empty list means the settings are usable.
        """
        errors: list[str] = []
        missing = [
            name.upper()
            for name in ("slack_bot_token", "workflow_api_key", "workflow_id")
            if not getattr(self, name)
        ]
        if missing:
            errors.append(f"Missing required environment variables: {', '.join(missing)}")
        if self.slack_bot_token and not self.slack_bot_token.startswith("xoxb-"):
            errors.append('SLACK_BOT_TOKEN must start with "xoxb-"')
        return errors


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings. Lazy initialization to avoid import-time errors."""
    return Settings()
