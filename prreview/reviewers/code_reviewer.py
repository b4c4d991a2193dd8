#!/usr/bin/env python3

from typing import List, Dict, Any, Optional

from openai import AzureOpenAI

from prreview.diff_parser import format_file_diff
from prreview.events import EventBus
from prreview.models import FileDiff, Invocation, PRDetails
from prreview.openai_backend import AzureOpenAIBackend
from prreview.reviewers.base_reviewer import BaseReviewer, RESPONSE_FORMAT


class AICodeReviewer(BaseReviewer):
    """AI-powered code reviewer using Azure OpenAI."""

    provider = "azure"

    def __init__(self, config: Dict[str, Any], client: Optional[AzureOpenAI] = None):
        super().__init__(config)
        # Initialize the Azure OpenAI client
        self.client = client or AzureOpenAI(
            base_url=config.get("azure_openai_endpoint"),
            api_key=config.get("azure_openai_key"),
            api_version=config.get("azure_openai_api_version")
        )
        self.deployment = config.get("azure_openai_deployment")

    def build_invocation(self, pr_details: PRDetails, files: List[FileDiff]) -> Invocation:
        """
        The deployment is the command; the prompt, diff included, is piped in.

        Args:
            pr_details: Pull request details
            files: Files that should be reviewed

        Returns:
            Invocation for AzureOpenAIBackend
        """
        prompt = self._create_prompt(pr_details, files)
        return Invocation(command=self.deployment or "", args=[], stdin_input=prompt)

    def create_backend(self, bus: EventBus) -> AzureOpenAIBackend:
        return AzureOpenAIBackend(self.client, bus)

    def _create_prompt(self, pr_details: PRDetails, files: List[FileDiff]) -> str:
        """
        Creates the prompt for the Azure OpenAI model.

        Args:
            pr_details: Pull request details
            files: Files whose changes are included

        Returns:
            Prompt string for OpenAI
        """
        diff_text = "".join(format_file_diff(f) for f in files) or "(no reviewable changes)"
        return f"""{self.system_prompt}

Review Pull Request #{pr_details.pull_number} in repository {pr_details.repository} and take the pull request title and description into account.

Pull request title: {pr_details.title}

Pull request description:
---
{pr_details.description or 'No description provided'}
---

Git diff to review:
```diff
{diff_text}```

Use the new-file line numbers from the diff hunks for "line".

{RESPONSE_FORMAT}"""
