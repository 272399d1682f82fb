"""Unit tests for the analysis and fix prompt builders."""

from autoclaude.assistant import Analysis, build_analysis_prompt, build_fix_prompt
from autoclaude.webhook import WorkItem


def _issue(body: str = "The login page crashes on submit.") -> WorkItem:
    return WorkItem(
        item_number=42,
        title="Login crash",
        body=body,
        repo_owner="acme",
        repo_name="widgets",
    )


def _pr_comment() -> WorkItem:
    return WorkItem(
        item_number=7,
        title="Add retry to client",
        body="PR description",
        repo_owner="acme",
        repo_name="widgets",
        is_pull_request=True,
        comment_body="@autoclaude please add a backoff",
    )


ANALYSIS = Analysis(can_resolve=True, approach="Guard against a missing session")


class TestAnalysisPrompt:
    def test_issue_prompt_contains_heading_and_body(self):
        prompt = build_analysis_prompt(_issue())

        assert prompt.startswith("You are analyzing a GitHub issue")
        assert "Issue #42: Login crash" in prompt
        assert "Issue Body:\nThe login page crashes on submit." in prompt
        assert '"canResolve": true/false' in prompt
        assert "An issue CANNOT be resolved automatically if:" in prompt

    def test_empty_body_uses_placeholder(self):
        prompt = build_analysis_prompt(_issue(body=""))

        assert "Issue Body:\n(No description provided)" in prompt

    def test_pr_prompt_uses_comment(self):
        prompt = build_analysis_prompt(_pr_comment())

        assert prompt.startswith("You are analyzing a comment on a GitHub Pull Request")
        assert "PR #7: Add retry to client" in prompt
        assert "Comment requesting changes:\n@autoclaude please add a backoff" in prompt
        assert "PR description" not in prompt

    def test_issue_mention_uses_issue_body(self):
        item = WorkItem(
            item_number=3,
            title="Docs typo",
            body="Fix the README",
            repo_owner="acme",
            repo_name="widgets",
            comment_body="@autoclaude can you take this?",
        )

        prompt = build_analysis_prompt(item)

        assert "Issue Body:\nFix the README" in prompt
        assert "can you take this" not in prompt


class TestFixPrompt:
    def test_issue_fix_prompt(self):
        prompt = build_fix_prompt(_issue(), ANALYSIS)

        assert prompt.startswith("You need to fix the following GitHub issue.")
        assert "Analysis approach: Guard against a missing session" in prompt
        assert "1. Implement the fix for this issue" in prompt
        assert "5. IMPORTANT: Do NOT commit the changes." in prompt
        assert prompt.endswith(
            "After making changes, provide a brief summary of what you changed."
        )

    def test_pr_fix_prompt_addresses_comment(self):
        prompt = build_fix_prompt(_pr_comment(), ANALYSIS)

        assert prompt.startswith("You need to address the following comment/request")
        assert "1. Implement the fix for this PR" in prompt
        assert "Comment requesting changes:" in prompt

    def test_commits_directly_changes_final_instruction(self):
        prompt = build_fix_prompt(_issue(), ANALYSIS, commits_directly=True)

        assert "Do NOT commit" not in prompt
        assert "5. Commit your changes with a descriptive commit message" in prompt
