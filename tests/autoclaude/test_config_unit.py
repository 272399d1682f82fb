"""Unit tests for AutoClaudeSettings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from autoclaude.config import AutoClaudeSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in [
        "AUTOCLAUDE_WEBHOOK_SECRET",
        "AUTOCLAUDE_MENTION_USER",
        "AUTOCLAUDE_GITHUB_TOKEN",
        "AUTOCLAUDE_PORT",
        "AUTOCLAUDE_REPO_PATH",
        "AUTOCLAUDE_HOSTING_BACKEND",
        "AUTOCLAUDE_ASSISTANT_SKIP_PERMISSIONS",
        "AUTOCLAUDE_ASSISTANT_TIMEOUT_SECONDS",
        "AUTOCLAUDE_BASE_BRANCH",
    ]:
        monkeypatch.delenv(name, raising=False)


def _settings(**kwargs) -> AutoClaudeSettings:
    return AutoClaudeSettings(_env_file=None, **kwargs)


class TestDefaults:
    def test_defaults_need_no_environment(self):
        settings = _settings()

        assert settings.host == "0.0.0.0"
        assert settings.port == 3000
        assert settings.webhook_secret is None
        assert settings.mention_user is None
        assert settings.hosting_backend == "cli"
        assert settings.git_remote == "origin"
        assert settings.base_branch == "main"
        assert settings.branch_prefix == "autoclaude/issue-"
        assert settings.assistant_command == "claude"
        assert settings.assistant_timeout_seconds == 300
        assert settings.git_timeout_seconds == 120
        assert settings.assistant_commits_directly is False

    def test_repo_path_defaults_to_absolute_cwd(self):
        settings = _settings()

        assert Path(settings.repo_path).is_absolute()
        assert Path(settings.repo_path) == Path.cwd().resolve()

    def test_assistant_args_include_permission_bypass_by_default(self):
        assert _settings().assistant_args == [
            "--output-format",
            "text",
            "--dangerously-skip-permissions",
        ]

    def test_assistant_args_without_permission_bypass(self):
        settings = _settings(assistant_skip_permissions=False)

        assert settings.assistant_args == ["--output-format", "text"]


class TestEnvironment:
    def test_reads_prefixed_variables(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AUTOCLAUDE_WEBHOOK_SECRET", "s3cret")
        monkeypatch.setenv("AUTOCLAUDE_PORT", "8080")
        monkeypatch.setenv("AUTOCLAUDE_REPO_PATH", str(tmp_path))
        monkeypatch.setenv("AUTOCLAUDE_HOSTING_BACKEND", "rest")

        settings = _settings()

        assert settings.webhook_secret == "s3cret"
        assert settings.port == 8080
        assert settings.repo_path == str(tmp_path.resolve())
        assert settings.hosting_backend == "rest"

    def test_blank_secret_is_unset(self, monkeypatch):
        monkeypatch.setenv("AUTOCLAUDE_WEBHOOK_SECRET", "   ")

        assert _settings().webhook_secret is None


class TestMentionUser:
    def test_leading_at_is_stripped(self):
        settings = _settings(mention_user="@autoclaude")

        assert settings.mention_user == "autoclaude"

    def test_mention_user_defaults_to_unset(self):
        assert _settings().mention_user is None

    def test_bare_at_sign_is_unset(self):
        assert _settings(mention_user="@").mention_user is None


class TestValidation:
    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_port_out_of_range_rejected(self, port):
        with pytest.raises(ValidationError):
            _settings(port=port)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValidationError):
            _settings(assistant_timeout_seconds=0)

    def test_empty_base_branch_rejected(self):
        with pytest.raises(ValidationError):
            _settings(base_branch="  ")

    def test_unknown_hosting_backend_rejected(self):
        with pytest.raises(ValidationError):
            _settings(hosting_backend="ftp")
