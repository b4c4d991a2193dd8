#!/usr/bin/env python3

from typing import List

from prreview.models import FileDiff, Invocation, PRDetails
from prreview.reviewers.base_reviewer import BaseReviewer, RESPONSE_FORMAT


class CLIReviewer(BaseReviewer):
    """Provider backed by an agentic CLI that fetches the pull request itself through gh."""

    def build_prompt(self, pr_details: PRDetails) -> str:
        number = pr_details.pull_number
        repository = pr_details.repository
        return f"""{self.system_prompt}

Review Pull Request #{number} in repository {repository}.

First, fetch the PR details and diff using the gh CLI:
- Run: gh pr view {number} --repo {repository} --json title,body,files,additions,deletions
- Run: gh pr diff {number} --repo {repository}

{RESPONSE_FORMAT}"""


class ClaudeReviewer(CLIReviewer):
    """Claude CLI in print mode with JSON output."""

    provider = "claude"
    command = "claude"
    default_model = "sonnet"

    def build_invocation(self, pr_details: PRDetails, files: List[FileDiff]) -> Invocation:
        args = ["-p", self.build_prompt(pr_details), "--allowedTools", "Bash(gh:*)", "--output-format", "json"]
        if self.model:
            args = ["--model", self.model] + args
        return Invocation(command=self.command, args=args)


class CodexReviewer(CLIReviewer):
    """Codex CLI exec mode; the sandbox must allow network access for gh."""

    provider = "codex"
    command = "codex"
    default_model = "o4-mini"

    def build_invocation(self, pr_details: PRDetails, files: List[FileDiff]) -> Invocation:
        args = ["exec", "--json", "--skip-git-repo-check", "--sandbox", "danger-full-access"]
        if self.model:
            args.extend(["--model", self.model])
        reasoning_effort = self.config.get("reasoning_effort")
        if reasoning_effort:
            args.extend(["-c", f'model_reasoning_effort="{reasoning_effort}"'])
        args.append(self.build_prompt(pr_details))
        return Invocation(command=self.command, args=args)
