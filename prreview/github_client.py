#!/usr/bin/env python3

import os
import json
import requests
from typing import List, Dict, Any, Optional, Tuple

from github import Github
from prreview.models import AIReviewComment, AIReviewResult, LineComment, PRDetails


SEVERITY_TAGS = {
    "critical": "🔴 CRITICAL",
    "warning": "🟠 WARNING",
    "info": "🔵 INFO",
    "suggestion": "💡 SUGGESTION",
}


class GitHubClient:
    """Handles all interactions with GitHub API."""

    def __init__(self, github_token: str):
        """
        Initialize GitHub client with authentication token.

        Args:
            github_token: GitHub authentication token
        """
        self.github_token = github_token
        self.gh = Github(github_token)

    def get_pr_details(self, repository: Optional[str] = None, pull_number: Optional[int] = None) -> PRDetails:
        """
        Retrieves details of the pull request.

        Without an explicit repository and number, both are read from the
        GitHub Actions event payload.

        Args:
            repository: Repository in owner/name form
            pull_number: Pull request number

        Returns:
            PRDetails object containing PR information
        """
        if not repository or not pull_number:
            repository, pull_number = read_event_payload(os.environ["GITHUB_EVENT_PATH"])

        owner, repo = repository.split("/")

        repo_obj = self.gh.get_repo(repository)
        pr = repo_obj.get_pull(pull_number)

        return PRDetails(owner, repo, pull_number, pr.title, pr.body)

    def get_diff(self, owner: str, repo: str, pull_number: int) -> str:
        """
        Fetches the diff of the pull request from GitHub API.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number

        Returns:
            String containing the diff, empty on failure
        """
        api_url = f"https://api.github.com/repos/{owner}/{repo}/pulls/{pull_number}"

        headers = {
            'Authorization': f'Bearer {self.github_token}',
            'Accept': 'application/vnd.github.v3.diff'
        }

        response = requests.get(f"{api_url}.diff", headers=headers, timeout=60)

        if response.status_code == 200:
            diff = response.text
            print(f"Retrieved diff length: {len(diff) if diff else 0}")
            return diff
        else:
            print(f"Failed to get diff. Status code: {response.status_code}")
            print(f"Response content: {response.text}")
            print(f"URL attempted: {api_url}.diff")
            return ""

    def get_review_comments(self, owner: str, repo: str, pull_number: int) -> List[LineComment]:
        """
        Fetches the existing line comments of the pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number

        Returns:
            List of LineComment objects
        """
        pr = self.gh.get_repo(f"{owner}/{repo}").get_pull(pull_number)
        return convert_review_comments([comment.raw_data for comment in pr.get_review_comments()])

    def create_review(self, owner: str, repo: str, pull_number: int, review: AIReviewResult) -> bool:
        """
        Submits the AI review as a single COMMENT review.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number
            review: Completed AI review

        Returns:
            True if the review was created
        """
        comments = [
            {
                "path": comment.path,
                "line": comment.line,
                "side": comment.side,
                "body": format_comment_body(comment),
            }
            for comment in review.comments
        ]
        print(f"Attempting to create a review with {len(comments)} comments")

        repo_obj = self.gh.get_repo(f"{owner}/{repo}")
        pr = repo_obj.get_pull(pull_number)
        try:
            created = pr.create_review(
                body=format_review_body(review),
                comments=comments,
                event="COMMENT"
            )
            print(f"Review created successfully with ID: {created.id}")
            return True

        except Exception as e:
            print(f"Error creating review: {str(e)}")
            print(f"Error type: {type(e)}")
            return False


def read_event_payload(event_path: str) -> Tuple[str, int]:
    """
    Reads repository and pull request number from a GitHub Actions event file.

    Args:
        event_path: Path of the event payload JSON

    Returns:
        Tuple of (owner/name, pull request number)
    """
    with open(event_path, "r") as f:
        event_data = json.load(f)

    # Comment triggers carry the PR number on the issue
    if "issue" in event_data and "pull_request" in event_data["issue"]:
        pull_number = event_data["issue"]["number"]
    else:
        pull_number = event_data["number"]

    return event_data["repository"]["full_name"], pull_number


def convert_review_comments(raw_comments: List[Dict[str, Any]]) -> List[LineComment]:
    """
    Converts review comments as returned by the REST API.

    Outdated comments fall back to their original line. Comments without a
    path or any line number cannot be anchored and are skipped.

    Args:
        raw_comments: Review comment payloads

    Returns:
        List of LineComment objects, in input order
    """
    comments = []
    for raw in raw_comments:
        line = raw.get("line") or raw.get("original_line")
        path = raw.get("path")
        if not line or not path:
            continue
        user = raw.get("user") or {}
        comments.append(LineComment(
            id=str(raw.get("id", "")),
            path=path,
            line=line,
            side=raw.get("side") or "RIGHT",
            body=raw.get("body", ""),
            author=user.get("login", ""),
            avatar_url=user.get("avatar_url", ""),
            created_at=raw.get("created_at", ""),
        ))
    return comments


def format_comment_body(comment: AIReviewComment) -> str:
    tag = SEVERITY_TAGS.get(comment.severity, SEVERITY_TAGS["info"])
    body = f"**{tag}** · {comment.category}\n\n{comment.body}"
    if comment.suggestion:
        body += f"\n\n```suggestion\n{comment.suggestion}\n```"
    return body


def format_review_body(review: AIReviewResult) -> str:
    body = f"## AI review ({review.provider})\n\n{review.summary or 'No summary provided.'}"
    if review.overall_score is not None:
        body += f"\n\nOverall score: {review.overall_score:g}/10"
    return body
