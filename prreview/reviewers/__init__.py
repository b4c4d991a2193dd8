"""
Review providers for AI pull request reviews.

Each provider builds the Invocation that runs a review:
- AICodeReviewer: Azure OpenAI, runs in-process through AzureOpenAIBackend
- ClaudeReviewer: Claude CLI, needs an external process host
- CodexReviewer: Codex CLI, needs an external process host
"""

from prreview.reviewers.base_reviewer import BaseReviewer, DEFAULT_SYSTEM_PROMPTS
from prreview.reviewers.cli_reviewers import ClaudeReviewer, CodexReviewer
from prreview.reviewers.code_reviewer import AICodeReviewer

REVIEWER_CLASSES = {
    "azure": AICodeReviewer,
    "claude": ClaudeReviewer,
    "codex": CodexReviewer,
}

__all__ = [
    'AICodeReviewer',
    'BaseReviewer',
    'ClaudeReviewer',
    'CodexReviewer',
    'DEFAULT_SYSTEM_PROMPTS',
    'REVIEWER_CLASSES',
]
