#!/usr/bin/env python3

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from prreview.models import AIReviewComment, AIReviewResult, AIReviewSuggestion

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```[\w+-]*\s*([\s\S]*?)```")

NO_RESPONSE_SUMMARY = "No response received from AI"
FAILED_PARSE_PREVIEW = 200


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_pending_review(pr_number: int, repository: str, provider: str) -> AIReviewResult:
    """
    Creates the review record that exists before the provider is started.

    Args:
        pr_number: Pull request number
        repository: Repository in owner/name form
        provider: Provider name (azure, claude, codex)

    Returns:
        AIReviewResult in pending state
    """
    return AIReviewResult(
        id=str(uuid.uuid4()),
        pr_number=pr_number,
        repository=repository,
        provider=provider,
        status="pending",
        created_at=utc_now(),
    )


def mark_running(review: AIReviewResult) -> AIReviewResult:
    if review.is_finished:
        raise ValueError(f"Review {review.id} is already {review.status}")
    return review.model_copy(update={"status": "running"})


def mark_failed(review: AIReviewResult, error: str) -> AIReviewResult:
    if review.is_finished:
        raise ValueError(f"Review {review.id} is already {review.status}")
    return review.model_copy(update={"status": "failed", "error": error, "completed_at": utc_now()})


def extract_json_from_response(response: str) -> Optional[str]:
    """
    Finds the JSON object in free-form model output.

    Tries, in order: a fenced code block whose content starts with ``{``;
    the balanced object starting at the first ``{`` when a ``"summary"`` key
    follows it; the widest ``{ ... }`` span. Truncated output makes the
    second strategy give up rather than guess.

    Args:
        response: Raw model output

    Returns:
        Candidate JSON text, or None if no object-like span exists
    """
    for match in FENCED_BLOCK_RE.finditer(response):
        block = match.group(1).strip()
        if block.startswith("{"):
            return block

    start = response.find("{")
    if start == -1:
        return None

    if response.find('"summary"', start) != -1:
        depth = 0
        for index in range(start, len(response)):
            char = response[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return response[start:index + 1]

    end = response.rfind("}")
    if end > start:
        return response[start:end + 1]
    return None


def normalize_review(response: str, candidate: Optional[str], context: AIReviewResult) -> AIReviewResult:
    """
    Builds the completed review from raw output and the extracted candidate.

    Never raises: output without structure becomes the summary, and a
    candidate that fails to parse is reported inside the summary.

    Args:
        response: Raw model output
        candidate: Result of extract_json_from_response
        context: The pending or running review this output belongs to

    Returns:
        AIReviewResult with status completed
    """
    now = utc_now()
    base = {"status": "completed", "completed_at": now, "comments": [], "suggestions": [], "error": None}

    if candidate is None:
        logger.warning("No JSON found in AI response. Raw response: %s", response[:500])
        return context.model_copy(update=dict(base, summary=response if response else NO_RESPONSE_SUMMARY))

    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError) as e:
        parsed = None
        logger.warning("Failed to parse AI response: %s", e)

    if not isinstance(parsed, dict):
        if response:
            summary = f"Failed to parse response: {response[:FAILED_PARSE_PREVIEW]}..."
        else:
            summary = "No response received"
        return context.model_copy(update=dict(base, summary=summary))

    summary = parsed.get("summary")
    score = parsed.get("overallScore")
    return context.model_copy(update=dict(
        base,
        summary=summary if isinstance(summary, str) else None,
        overall_score=score if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
        comments=_build_items(AIReviewComment, parsed.get("comments"), f"{context.id}-comment"),
        suggestions=_build_items(AIReviewSuggestion, parsed.get("suggestions"), f"{context.id}-suggestion"),
    ))


def parse_ai_review_response(response: str, context: AIReviewResult) -> AIReviewResult:
    return normalize_review(response, extract_json_from_response(response), context)


def _build_items(model, raw_items: Any, id_prefix: str) -> List:
    if not isinstance(raw_items, list):
        return []

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            logger.debug("Skipping non-object entry %d for %s", index, id_prefix)
            continue
        data: Dict[str, Any] = dict(raw)
        data["id"] = f"{id_prefix}-{index}"
        try:
            items.append(model.model_validate(data))
        except ValidationError as e:
            logger.warning("Skipping invalid %s entry %d: %s", model.__name__, index, e.errors()[:1])
    return items
