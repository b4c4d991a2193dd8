#!/usr/bin/env python3

import fnmatch
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional

from prreview.events import EventBus, ExecutionBackend
from prreview.models import FileDiff, Invocation, PRDetails


DEFAULT_SYSTEM_PROMPTS = {
    "default": """You are an expert code reviewer. Review the pull request changes and provide:
1. A brief summary of the changes
2. Potential issues or bugs
3. Security concerns
4. Performance considerations
5. Code style and best practices suggestions

Be constructive and specific. Reference line numbers when commenting on specific code.""",

    "security": """You are a security-focused code reviewer. Analyze the changes for:
1. SQL injection vulnerabilities
2. XSS vulnerabilities
3. Authentication/authorization issues
4. Sensitive data exposure
5. Input validation problems
6. Dependency vulnerabilities

Flag any security concerns with severity levels.""",

    "performance": """You are a performance-focused code reviewer. Analyze the changes for:
1. Algorithmic complexity issues
2. Memory leaks or excessive allocations
3. N+1 query problems
4. Unnecessary re-renders (for frontend)
5. Missing caching opportunities
6. Blocking operations

Suggest optimizations where applicable.""",
}

RESPONSE_FORMAT = """After reviewing the changes, respond with ONLY a valid JSON object (no markdown, no code blocks, no extra text):

{
  "summary": "Brief summary of the changes and your overall assessment",
  "overallScore": 8,
  "comments": [
    {
      "path": "path/to/file.ts",
      "line": 42,
      "severity": "critical|warning|info|suggestion",
      "category": "security|performance|best-practices|code-style|documentation|testing|architecture",
      "body": "Your comment explaining the issue",
      "suggestion": "Optional: code fix suggestion"
    }
  ],
  "suggestions": []
}

If there are no issues, use an empty comments array. Start your response with { and end with }"""


class BaseReviewer(ABC):
    """
    Base class for all AI review providers.
    Each provider turns a pull request into an Invocation for an execution backend.
    """

    provider = ""
    command = ""
    default_model: Optional[str] = None

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.name = self.__class__.__name__
        self.model = config.get("model") or self.default_model
        self.system_prompt = config.get("system_prompt") or DEFAULT_SYSTEM_PROMPTS["default"]

    def can_review_file(self, file_path: str) -> bool:
        """
        Determine if this reviewer can handle this file.
        Can be overridden by subclasses for specific file type filtering.

        Args:
            file_path: Path to the file in the repository

        Returns:
            True if this reviewer can review the file, False otherwise
        """
        exclude_patterns = self.config.get("exclude_patterns", [])
        should_exclude = any(fnmatch.fnmatch(file_path, pattern) for pattern in exclude_patterns)
        return not should_exclude

    def reviewable_files(self, files: List[FileDiff]) -> List[FileDiff]:
        return [f for f in files if f.path and f.path != "/dev/null" and self.can_review_file(f.path)]

    @abstractmethod
    def build_invocation(self, pr_details: PRDetails, files: List[FileDiff]) -> Invocation:
        """
        Build the command that reviews this pull request.

        Args:
            pr_details: Pull request details
            files: Files that should be reviewed

        Returns:
            Invocation for an execution backend
        """
        pass

    def create_backend(self, bus: EventBus) -> Optional[ExecutionBackend]:
        """
        Backend able to run this provider's invocations in-process.

        Returns:
            None when the provider needs an external process host
        """
        return None
