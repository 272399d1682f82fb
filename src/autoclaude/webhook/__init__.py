"""GitHub webhook handling.

This module receives and classifies GitHub webhook events:
- issues.opened - New issue created
- issue_comment.created - Comment mentioning the configured user

Signature verification uses the shared webhook secret when one is
configured. Accepted events are dispatched to the orchestrator in the
background so the webhook is acknowledged immediately.
"""

from autoclaude.webhook.dispatcher import BackgroundDispatcher
from autoclaude.webhook.handler import (
    WebhookRouter,
    compute_signature,
    verify_signature,
)
from autoclaude.webhook.models import GitHubEventType, RouteDecision, WorkItem

__all__ = [
    "BackgroundDispatcher",
    "GitHubEventType",
    "RouteDecision",
    "WebhookRouter",
    "WorkItem",
    "compute_signature",
    "verify_signature",
]
