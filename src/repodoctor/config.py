"""Configuration via pydantic-settings — 12-factor app style."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """repodoctor configuration — loaded from env vars / .env file.

    Webhook URLs left empty mean the channel is not configured.
    """

    github_token: str = Field(default="", description="Token sent as a Bearer header to the GitHub API")
    github_api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL")
    default_repo: str = Field(default="", description="owner/name used when a command omits the repository")
    stale_label: str = Field(default="stale", description="Issue label that marks an issue as stale")
    http_timeout: float = Field(default=10.0, description="Timeout in seconds for GitHub API calls")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL for settings and delivery history")
    alert_webhook_url: str = Field(default="", description="Generic JSON webhook for alerts")
    alert_slack_webhook_url: str = Field(default="", description="Slack incoming webhook URL for alerts")
    alert_discord_webhook_url: str = Field(default="", description="Discord webhook URL for alerts")
    transport_timeout: float = Field(default=5.0, description="Timeout in seconds for webhook delivery")
    batch_limit: int = Field(default=150, description="Max enabled repositories processed per scheduled run")

    class Config:
        env_prefix = "REPODOCTOR_"
        env_file = ".env"


settings = Settings()
