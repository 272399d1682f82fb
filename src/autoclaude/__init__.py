"""Webhook-driven issue resolution with an AI coding assistant.

This package receives GitHub issue and comment webhooks and drives an
external coding assistant through a fixed workflow:
- GitHub webhook validation and routing
- Assistant-based issue analysis (can this be resolved automatically?)
- Branch preparation, fix generation and change detection in a local clone
- Commit, push and pull request creation or update
- Explanatory comments when no automatic fix is possible
"""

__version__ = "1.0.0"
