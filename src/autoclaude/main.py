"""FastAPI application entry point for AutoClaude.

This module provides the HTTP surface of the service:
- POST /webhook/github: receives GitHub issues / issue_comment deliveries
- GET /health: liveness probe
- GET /metrics: Prometheus metrics

Accepted deliveries are handed to a background dispatcher, so the webhook
is acknowledged before the orchestrator run starts.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from .assistant.invoker import AssistantInvoker
from .config import AutoClaudeSettings, get_settings
from .events.emitter import EventEmitter, EventSinkType, create_event_emitter
from .events.metrics import generate_metrics_output
from .github import create_hosting_gateway
from .github.models import HostingGateway
from .orchestrator import IssueOrchestrator
from .vcs.git import GitGateway
from .webhook.dispatcher import BackgroundDispatcher
from .webhook.handler import WebhookRouter, verify_signature

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances, initialized during lifespan startup
settings: Optional[AutoClaudeSettings] = None
router: Optional[WebhookRouter] = None
dispatcher: Optional[BackgroundDispatcher] = None
hosting: Optional[HostingGateway] = None
event_emitter: Optional[EventEmitter] = None


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if value is None:
        return "(not set)"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(cfg: AutoClaudeSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("AutoClaude configuration:")
    logger.info(f"  Host: {cfg.host}")
    logger.info(f"  Port: {cfg.port}")
    logger.info(f"  Webhook Secret: {_redact_secret(cfg.webhook_secret)}")
    logger.info(f"  Mention User: {cfg.mention_user or '(not set)'}")
    logger.info(f"  Hosting Backend: {cfg.hosting_backend}")
    logger.info(f"  GitHub Base URL: {cfg.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(cfg.github_token)}")
    logger.info(f"  gh CLI Path: {cfg.gh_cli_path}")
    logger.info(f"  Repository Path: {cfg.repo_path}")
    logger.info(f"  Git Remote: {cfg.git_remote}")
    logger.info(f"  Base Branch: {cfg.base_branch}")
    logger.info(f"  Branch Prefix: {cfg.branch_prefix}")
    logger.info(f"  Git Timeout Seconds: {cfg.git_timeout_seconds}")
    logger.info(f"  Assistant Command: {cfg.assistant_command}")
    logger.info(f"  Assistant Timeout Seconds: {cfg.assistant_timeout_seconds}")
    logger.info(f"  Assistant Skip Permissions: {cfg.assistant_skip_permissions}")
    logger.info(f"  Assistant Commits Directly: {cfg.assistant_commits_directly}")

    if cfg.webhook_secret is None:
        logger.warning(
            "Webhook secret not set - signature verification is disabled"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown.

    Handles:
    - Configuration loading and validation
    - Logging configuration (with secrets redacted)
    - Dependency wiring for the orchestrator and dispatcher
    - Graceful shutdown and cleanup
    """
    global settings, router, dispatcher, hosting, event_emitter

    logger.info("AutoClaude starting up...")

    settings = get_settings()
    _log_configuration(settings)

    router = WebhookRouter(mention_user=settings.mention_user)
    hosting = create_hosting_gateway(settings)
    event_emitter = create_event_emitter(
        [EventSinkType.LOGGING, EventSinkType.METRICS]
    )
    orchestrator = _build_orchestrator(settings, hosting, event_emitter)
    dispatcher = BackgroundDispatcher(processor=orchestrator)

    logger.info("AutoClaude server running on port %s", settings.port)

    yield

    logger.info("AutoClaude shutting down...")

    if dispatcher is not None and dispatcher.in_flight:
        logger.warning("Shutting down with %s run(s) in flight", dispatcher.in_flight)

    if hosting is not None:
        await hosting.close()

    if event_emitter is not None:
        await event_emitter.close()

    logger.info("AutoClaude shutdown complete")


def _build_orchestrator(
    cfg: AutoClaudeSettings,
    hosting_gateway: HostingGateway,
    emitter: EventEmitter,
) -> IssueOrchestrator:
    """Wire all run dependencies into an IssueOrchestrator.

    Args:
        cfg: Validated settings.
        hosting_gateway: The configured hosting binding.
        emitter: Event emitter for run observability.

    Returns:
        Fully wired IssueOrchestrator.
    """
    invoker = AssistantInvoker(
        command=cfg.assistant_command,
        args=cfg.assistant_args,
        timeout_seconds=cfg.assistant_timeout_seconds,
    )

    git = GitGateway(
        repo_path=cfg.repo_path,
        remote=cfg.git_remote,
        base_branch=cfg.base_branch,
        timeout_seconds=cfg.git_timeout_seconds,
    )

    return IssueOrchestrator(
        invoker=invoker,
        git=git,
        hosting=hosting_gateway,
        event_emitter=emitter,
        branch_prefix=cfg.branch_prefix,
        commits_directly=cfg.assistant_commits_directly,
    )


app = FastAPI(
    title="AutoClaude",
    description="Resolves GitHub issues and PR review requests with an AI coding assistant",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)


@app.post("/webhook/github")
async def github_webhook(request: Request):
    """GitHub webhook receiver endpoint.

    Verifies the X-Hub-Signature-256 header over the raw body when a
    webhook secret is configured, routes the event, and dispatches
    accepted work items in the background.

    Returns:
        JSON acknowledgment describing how the delivery was routed.
    """
    if settings is None or router is None or dispatcher is None:
        logger.error("AutoClaude not initialized")
        return JSONResponse(
            status_code=503, content={"error": "Service not initialized"}
        )

    body = await request.body()

    if settings.webhook_secret is not None:
        signature = request.headers.get("x-hub-signature-256")
        if not verify_signature(body, signature, settings.webhook_secret):
            logger.error("Invalid webhook signature")
            return JSONResponse(status_code=401, content={"error": "Invalid signature"})
    else:
        logger.warning("Webhook secret not set - skipping signature verification")

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Rejected webhook with invalid JSON body")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})

    decision = router.route(request.headers.get("x-github-event"), payload)

    if decision.work_item is not None:
        dispatcher.submit(decision.work_item)

    return decision.to_response()


if __name__ == "__main__":
    import uvicorn

    # For local development, load settings to get host/port
    dev_settings = get_settings()
    uvicorn.run(
        "autoclaude.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
