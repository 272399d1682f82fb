"""Service configuration using pydantic-settings.

This module defines the AutoClaudeSettings class that reads configuration
from environment variables with the AUTOCLAUDE_ prefix. The settings object
is built once at startup and handed to every component; nothing below the
application layer reads the environment directly.

Configuration surface:
- Server: host, port
- Webhook: shared secret, mention-trigger username
- Hosting: backend selection (gh CLI or REST), API token, base URL
- Repository: local working copy path, remote, base branch, branch prefix
- Assistant: command, timeout, permission bypass, commit mode
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AutoClaudeSettings(BaseSettings):
    """Service configuration from environment variables.

    All environment variables are prefixed with AUTOCLAUDE_ (e.g.,
    AUTOCLAUDE_WEBHOOK_SECRET). Every field has a default so the service can
    start locally with no configuration at all; optional fields disable the
    feature they control when left unset:

    - webhook_secret: unset disables signature verification (logged)
    - mention_user: unset disables the comment-mention trigger (logged)
    - github_token: unset makes REST calls fail as unauthorized
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOCLAUDE_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 3000

    # -------------------------------------------------------------------------
    # Webhook Configuration
    # -------------------------------------------------------------------------
    # Shared secret for X-Hub-Signature-256 verification
    webhook_secret: Optional[str] = None

    # GitHub login whose @-mention in a comment triggers a run
    mention_user: Optional[str] = None

    # -------------------------------------------------------------------------
    # Hosting Configuration
    # -------------------------------------------------------------------------
    # "cli" shells out to gh, "rest" talks to the REST API with a token
    hosting_backend: Literal["cli", "rest"] = "cli"

    github_token: Optional[str] = None

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    gh_cli_path: str = "gh"

    # -------------------------------------------------------------------------
    # Repository Configuration
    # -------------------------------------------------------------------------
    # Local clone the assistant works in
    repo_path: str = Field(
        default_factory=lambda: str(Path.cwd()), validate_default=True
    )

    git_remote: str = "origin"

    base_branch: str = "main"

    branch_prefix: str = "autoclaude/issue-"

    git_timeout_seconds: int = 120

    # -------------------------------------------------------------------------
    # Assistant Configuration
    # -------------------------------------------------------------------------
    assistant_command: str = "claude"

    assistant_timeout_seconds: int = 300

    # Passes --dangerously-skip-permissions for unattended operation
    assistant_skip_permissions: bool = True

    # Ask the assistant to commit its own changes instead of leaving them
    # for the orchestrator
    assistant_commits_directly: bool = False

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("webhook_secret", "github_token", "mention_user")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty or whitespace-only values as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("mention_user")
    @classmethod
    def strip_mention_prefix(cls, v: Optional[str]) -> Optional[str]:
        """Accept the username with or without a leading '@'."""
        if v is None:
            return None
        return v.lstrip("@") or None

    @field_validator("repo_path")
    @classmethod
    def validate_repo_path(cls, v: str) -> str:
        """Resolve the repository path to an absolute path."""
        if not v or not v.strip():
            raise ValueError("repo_path cannot be empty")
        return str(Path(v).expanduser().resolve())

    @field_validator("base_branch", "git_remote", "branch_prefix", "assistant_command")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("assistant_timeout_seconds", "git_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate that timeouts are positive."""
        if v < 1:
            raise ValueError("timeout must be at least 1 second")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def assistant_args(self) -> list[str]:
        """Arguments passed to the assistant command."""
        args = ["--output-format", "text"]
        if self.assistant_skip_permissions:
            args.append("--dangerously-skip-permissions")
        return args


def get_settings() -> AutoClaudeSettings:
    """Create and return an AutoClaudeSettings instance.

    Returns:
        AutoClaudeSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a configured value is invalid.
    """
    return AutoClaudeSettings()
