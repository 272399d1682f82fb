"""GitHub webhook routing.

This module validates webhook signatures and classifies raw GitHub
deliveries into WorkItems for the orchestrator. Routing is synchronous and
cheap so the HTTP response can be sent before any run starts.

Routing rules:
- issues: only action "opened" produces a WorkItem
- issue_comment: only action "created", and only when the comment body
  contains the configured mention token ("@<user>")
- every other event or action is a no-op reported back to the caller

GitHub Webhook Payload Structure (issue_comment event):
{
  "action": "created",
  "issue": {
    "number": 7,
    "title": "Add retry to client",
    "body": "...",
    "html_url": "https://github.com/owner/repo/pull/7",
    "pull_request": {"url": "..."}
  },
  "comment": {"body": "@autoclaude please rename foo"},
  "repository": {
    "name": "repo-name",
    "owner": {"login": "owner-name"}
  }
}
"""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from autoclaude.webhook.models import GitHubEventType, RouteDecision, WorkItem

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, secret: str) -> str:
    """Compute the X-Hub-Signature-256 header value for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Verify a GitHub webhook signature.

    Args:
        body: Raw request body exactly as received.
        signature: X-Hub-Signature-256 header value, if present.
        secret: Shared webhook secret.

    Returns:
        True if the signature matches, compared in constant time.
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False

    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class WebhookRouter:
    """Classifies GitHub webhook deliveries into work items.

    The router never starts work itself; it returns a RouteDecision and
    leaves dispatch to the caller.

    Attributes:
        mention_user: GitHub login whose mention triggers comment runs.
            None disables the comment trigger.
    """

    def __init__(self, mention_user: Optional[str] = None) -> None:
        self.mention_user = mention_user

        if mention_user is None:
            logger.warning(
                "Mention user not configured, comment-triggered runs are disabled"
            )

    @property
    def mention_token(self) -> Optional[str]:
        if self.mention_user is None:
            return None
        return f"@{self.mention_user}"

    def route(self, event_type: Optional[str], payload: Any) -> RouteDecision:
        """Route one webhook delivery.

        Args:
            event_type: The X-GitHub-Event header value.
            payload: The decoded JSON body.

        Returns:
            RouteDecision carrying a WorkItem for accepted events.
        """
        logger.info("Received GitHub event: %s", event_type)

        if event_type == GitHubEventType.ISSUE_COMMENT.value:
            return self._route_issue_comment(payload)

        if event_type == GitHubEventType.ISSUES.value:
            return self._route_issue(payload)

        return RouteDecision(
            message="Event ignored", details={"event": str(event_type)}
        )

    def _route_issue(self, payload: Any) -> RouteDecision:
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return RouteDecision(message="Invalid payload")

        action = payload.get("action")
        if action != "opened":
            return RouteDecision(
                message="Action ignored", details={"action": str(action)}
            )

        work_item = self._build_work_item(payload, comment_body=None)
        if work_item is None:
            return RouteDecision(message="Invalid payload")

        logger.info(
            "Processing issue #%s: %s", work_item.item_number, work_item.title
        )
        return RouteDecision(
            work_item=work_item, message="Issue received, processing..."
        )

    def _route_issue_comment(self, payload: Any) -> RouteDecision:
        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return RouteDecision(message="Invalid payload")

        action = payload.get("action")
        if action != "created":
            return RouteDecision(
                message="Action ignored", details={"action": str(action)}
            )

        if self.mention_token is None:
            logger.info("Mention user not configured, ignoring comment")
            return RouteDecision(message="Mention user not configured")

        comment_data = payload.get("comment")
        comment_body = (
            comment_data.get("body") if isinstance(comment_data, dict) else None
        )
        if not isinstance(comment_body, str) or self.mention_token not in comment_body:
            return RouteDecision(message="No matching mention found")

        work_item = self._build_work_item(payload, comment_body=comment_body)
        if work_item is None:
            return RouteDecision(message="Invalid payload")

        logger.info(
            "User %s mentioned in comment on %s #%s",
            self.mention_token,
            work_item.kind,
            work_item.item_number,
        )
        return RouteDecision(
            work_item=work_item,
            message="Comment mention received, processing...",
        )

    def _build_work_item(
        self,
        payload: Dict[str, Any],
        comment_body: Optional[str],
    ) -> Optional[WorkItem]:
        """Extract a WorkItem from the issue and repository objects.

        Returns:
            WorkItem if all required fields are present, None otherwise.
        """
        issue_data = payload.get("issue")
        if not isinstance(issue_data, dict):
            logger.warning(
                "Missing or invalid 'issue' field in payload: %s",
                type(issue_data),
            )
            return None

        repo_data = payload.get("repository")
        if not isinstance(repo_data, dict):
            logger.warning(
                "Missing or invalid 'repository' field in payload: %s",
                type(repo_data),
            )
            return None

        number = issue_data.get("number")
        if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
            logger.warning("Invalid issue number: %s", number)
            return None

        title = issue_data.get("title")
        if not isinstance(title, str) or not title.strip():
            logger.warning("Invalid or empty issue title: %s", title)
            return None

        body = issue_data.get("body")
        if not isinstance(body, str):
            body = ""

        url = issue_data.get("html_url")
        if not isinstance(url, str):
            url = ""

        repo_name = repo_data.get("name")
        if not isinstance(repo_name, str) or not repo_name.strip():
            logger.warning("Invalid or empty repository name: %s", repo_name)
            return None

        owner = self._extract_user_login(repo_data.get("owner"), "repository owner")
        if owner is None:
            return None

        # Every mention run works on a pull request branch
        is_pull_request = comment_body is not None

        return WorkItem(
            item_number=number,
            title=title.strip(),
            body=body,
            url=url,
            repo_owner=owner,
            repo_name=repo_name.strip(),
            is_pull_request=is_pull_request,
            comment_body=comment_body,
        )

    def _extract_user_login(self, user_data: Any, context: str) -> Optional[str]:
        """Extract the login field from a user object.

        Args:
            user_data: The user object containing a 'login' field.
            context: Description of the user for logging purposes.

        Returns:
            The login string if valid, None otherwise.
        """
        if not isinstance(user_data, dict):
            logger.warning(
                "Missing or invalid %s data: %s",
                context,
                type(user_data),
            )
            return None

        login = user_data.get("login")
        if not isinstance(login, str) or not login.strip():
            logger.warning("Invalid or empty %s login: %s", context, login)
            return None

        return login.strip()
