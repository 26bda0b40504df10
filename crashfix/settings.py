from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CRASHFIX_", extra="ignore")

    # GitHub (source hosting)
    github_token: str | None = None
    github_repo: str = "Gooreum/CrashlyticsIntegration"  # owner/name
    github_base_branch: str = "Development"
    github_api_base: str = "https://api.github.com"
    github_timeout_s: float = 20.0

    # Slack (Bot API, threaded replies + interactive buttons)
    slack_bot_token: str | None = None
    slack_channel_id: str = "C0AEKU0J1MY"
    # If set, /slack/interactions rejects requests without a valid v0 signature.
    slack_signing_secret: str | None = None
    slack_api_base: str = "https://slack.com/api"
    slack_timeout_s: float = 15.0
    # Section blocks are capped at 3000 chars; keep some headroom.
    slack_block_limit: int = 2900

    # Anthropic Messages API
    anthropic_api_key: str | None = None
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_timeout_s: float = 120.0
    # Transport-level retries for dropped connections (not HTTP errors).
    anthropic_max_retries: int = 3
    anthropic_retry_backoff_s: float = 0.8
    analysis_max_tokens: int = 2048
    # Fix generation returns whole files; truncation here is what the JSON repair pass exists for.
    fix_max_tokens: int = 16384

    # Pipeline tuning
    tree_cache_ttl_s: float = 300.0
    analysis_retry_delay_s: float = 5.0
    excerpt_context_lines: int = 20
    excerpt_head_lines: int = 100
    history_limit: int = 5
    source_extension: str = "swift"

    # Firebase console link on the initial alert
    firebase_project_id: str = "crashyltics-slack"

    audit_log_path: str = "var/audit/crashfix_audit.jsonl"

    @property
    def console_url(self) -> str:
        return f"https://console.firebase.google.com/project/{self.firebase_project_id}/crashlytics"
