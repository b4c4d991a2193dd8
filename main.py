#!/usr/bin/env python3

import logging
import os
import sys
import threading
from typing import Dict, Any, List, Optional

from prreview.comment_index import CommentAnchorIndex
from prreview.diff_parser import DiffParser
from prreview.events import EventBus
from prreview.github_client import GitHubClient
from prreview.models import AIReviewResult, FileDiff, PRDetails
from prreview.response_extractor import (
    create_pending_review,
    mark_failed,
    mark_running,
    parse_ai_review_response,
)
from prreview.reviewers import REVIEWER_CLASSES
from prreview.reviewers.base_reviewer import BaseReviewer
from prreview.stream_session import StreamCallbacks, start_streaming_review
from prreview.thinking_parser import parse_ai_stream_output
from config import config_problems, load_config, required_env_vars


def get_reviewer(config: Dict[str, Any]) -> Optional[BaseReviewer]:
    """
    Initialize the reviewer for the configured provider.

    Args:
        config: Configuration dictionary

    Returns:
        Reviewer instance, or None for an unknown provider
    """
    provider = config.get("provider", "")
    reviewer_class = REVIEWER_CLASSES.get(provider)
    if reviewer_class is None:
        print(f"Warning: Unknown provider '{provider}'")
        return None
    reviewer = reviewer_class(config)
    print(f"Initialized {reviewer.name} ({provider})")
    return reviewer


def report_existing_comments(github: GitHubClient, pr_details: PRDetails, files: List[FileDiff]) -> CommentAnchorIndex:
    """Print how the existing review comments map onto the parsed diff."""
    comments = github.get_review_comments(pr_details.owner, pr_details.repo, pr_details.pull_number)
    index = CommentAnchorIndex(comments)
    if not comments:
        return index

    print(f"Existing review comments: {len(index)}")
    for file_diff in files:
        count = index.count_for_path(file_diff.path)
        if count:
            print(f"  {file_diff.path}: {count}")
    orphaned = index.orphaned(files)
    if orphaned:
        print(f"  {len(orphaned)} comment(s) are on lines outside the diff")
    return index


def run_review(
    reviewer: BaseReviewer,
    pr_details: PRDetails,
    files: List[FileDiff],
    timeout: float,
) -> AIReviewResult:
    """
    Runs one streaming review session and waits for its outcome.

    Args:
        reviewer: Provider to run
        pr_details: Pull request details
        files: Files to review
        timeout: Seconds to wait before cancelling

    Returns:
        Completed or failed AIReviewResult
    """
    review = create_pending_review(pr_details.pull_number, pr_details.repository, reviewer.provider)

    bus = EventBus()
    backend = reviewer.create_backend(bus)
    if backend is None:
        return mark_failed(review, f"Provider '{reviewer.provider}' needs an external process host to run")

    done = threading.Event()
    outcome: Dict[str, str] = {}

    def on_complete(output: str) -> None:
        outcome["output"] = output
        done.set()

    def on_error(message: str) -> None:
        outcome["error"] = message
        done.set()

    callbacks = StreamCallbacks(
        on_thinking_start=lambda: print("\n[thinking]"),
        on_text_delta=lambda text: print(text, end="", flush=True),
        on_complete=on_complete,
        on_error=on_error,
    )

    review = mark_running(review)
    invocation = reviewer.build_invocation(pr_details, files)
    session = start_streaming_review(invocation, backend, bus, callbacks)

    if not done.wait(timeout):
        print(f"\nNo result after {timeout:g}s, cancelling review")
        session.cancel()
    print()

    if "error" in outcome:
        return mark_failed(review, outcome["error"])

    output = outcome.get("output", "")
    parsed_output = parse_ai_stream_output(output)
    for block in parsed_output.thinking_blocks:
        print(f"Thinking: {block.title}")

    # Thinking text and stream-event framing are not part of the review;
    # output with no separable response (e.g. a bare JSON object) is used as is
    return parse_ai_review_response(parsed_output.response or output, review)


def print_review(review: AIReviewResult) -> None:
    if review.status == "failed":
        print(f"AI review failed: {review.error}")
        return

    print("Summary:")
    print(review.summary or "(none)")
    if review.overall_score is not None:
        print(f"Overall score: {review.overall_score:g}")
    for comment in review.comments:
        print(f"- [{comment.severity}] {comment.path}:{comment.line} ({comment.category}) {comment.body}")
    if review.suggestions:
        print(f"{len(review.suggestions)} code suggestion(s)")


def main():
    """Main function to execute the code review process."""
    print("Starting PR review client...")

    try:
        # Load configuration
        config = load_config()
        logging.basicConfig(
            level=getattr(logging, config["log_level"], logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        missing_vars = [var for var in required_env_vars(config) if not os.environ.get(var)]
        if missing_vars:
            print(f"Error: Missing required environment variables: {', '.join(missing_vars)}")
            sys.exit(1)

        problems = config_problems(config)
        if problems:
            for problem in problems:
                print(f"Error: {problem}")
            sys.exit(1)

        # Initialize GitHub client
        github = GitHubClient(config["github_token"])

        # Get PR details
        pr_details = github.get_pr_details(config.get("repository"), config.get("pull_number"))
        print(f"Analyzing PR #{pr_details.pull_number} in repo {pr_details.repository}")

        # Get the diff
        diff = github.get_diff(pr_details.owner, pr_details.repo, pr_details.pull_number)
        if not diff:
            print("No diff found. Exiting.")
            return

        # Parse the diff
        parsed = DiffParser.parse_diff(diff)
        stats = parsed.stats
        print(f"{stats.files_changed} files changed, +{stats.additions} -{stats.deletions}")
        if parsed.malformed_hunk_headers:
            print(f"Warning: skipped {parsed.malformed_hunk_headers} unrecognized hunk header(s)")

        report_existing_comments(github, pr_details, parsed.files)

        reviewer = get_reviewer(config)
        if reviewer is None:
            print("No reviewer available. Exiting.")
            sys.exit(1)

        files = reviewer.reviewable_files(parsed.files)
        if not files:
            print("No reviewable files after exclusions. Exiting.")
            return
        print(f"Reviewing {len(files)} of {len(parsed.files)} files")

        review = run_review(reviewer, pr_details, files, config["review_timeout"])
        print_review(review)

        if review.status == "failed":
            sys.exit(1)

        if config.get("post_comments") and (review.comments or review.summary):
            github.create_review(pr_details.owner, pr_details.repo, pr_details.pull_number, review)

    except Exception as e:
        print(f"Error in main execution: {str(e)}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
