"""Version control operations on the local working copy."""

from autoclaude.vcs.git import GitGateway, VcsCommandError

__all__ = ["GitGateway", "VcsCommandError"]
