#!/usr/bin/env python3

import json
from dataclasses import dataclass, field
from typing import Literal, Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


LineType = Literal["addition", "deletion", "context", "hunk-header"]
DiffStatus = Literal["added", "deleted", "modified", "renamed", "copied"]
Side = Literal["LEFT", "RIGHT"]
Severity = Literal["critical", "warning", "info", "suggestion"]
ReviewStatus = Literal["pending", "running", "completed", "failed"]

SEVERITIES = ("critical", "warning", "info", "suggestion")
SIDES = ("LEFT", "RIGHT")
TERMINAL_REVIEW_STATUSES = ("completed", "failed")


@dataclass
class PRDetails:
    """Data class for pull request details."""
    owner: str
    repo: str
    pull_number: int
    title: str
    description: Optional[str] = None

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class DiffLine:
    """Data class for one row of diff content."""
    type: str
    content: str
    old_line_number: Optional[int] = None
    new_line_number: Optional[int] = None


@dataclass
class Hunk:
    """Data class for a contiguous change region of a file."""
    header: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: List[DiffLine] = field(default_factory=list)


@dataclass
class FileDiff:
    """Data class for a changed file in a diff."""
    path: str
    old_path: Optional[str] = None
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    binary: bool = False
    hunks: List[Hunk] = field(default_factory=list)


@dataclass(frozen=True)
class DiffStats:
    files_changed: int = 0
    additions: int = 0
    deletions: int = 0

    @classmethod
    def from_files(cls, files: List[FileDiff]) -> "DiffStats":
        return cls(
            files_changed=len(files),
            additions=sum(f.additions for f in files),
            deletions=sum(f.deletions for f in files),
        )


@dataclass(frozen=True)
class ParsedDiff:
    """Result of parsing a diff: the files in source order plus aggregate stats."""
    files: List[FileDiff]
    stats: DiffStats
    malformed_hunk_headers: int = 0


@dataclass
class LineComment:
    """Data class for an existing review comment anchored to a diff line."""
    id: str
    path: str
    line: int
    side: str
    body: str
    author: str = ""
    avatar_url: str = ""
    created_at: str = ""
    is_ai_generated: bool = False


@dataclass
class Invocation:
    """An external command ready to be dispatched to an execution backend."""
    command: str
    args: List[str] = field(default_factory=list)
    stdin_input: Optional[str] = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AIReviewComment(_CamelModel):
    id: str = Field(..., description="Synthetic id derived from the review id and array position")
    path: str = Field(..., description="File path the comment applies to")
    line: int = Field(..., description="Line number in the file")
    side: Side = Field("RIGHT", description="Diff side the line belongs to")
    severity: Severity = Field("info", description="critical, warning, info or suggestion")
    category: str = Field("best-practices", description="Focus area such as security or performance")
    body: str = Field(..., description="The review comment")
    suggestion: Optional[str] = Field(None, description="Optional code fix suggestion")

    @field_validator("side", mode="before")
    @classmethod
    def _default_side(cls, value):
        return value if value in SIDES else "RIGHT"

    @field_validator("severity", mode="before")
    @classmethod
    def _known_severity(cls, value):
        if isinstance(value, str) and value.lower() in SEVERITIES:
            return value.lower()
        return "info"

    @field_validator("suggestion", mode="before")
    @classmethod
    def _suggestion_text(cls, value):
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2)
        return str(value)


class AIReviewSuggestion(_CamelModel):
    id: str
    path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    original_code: str = ""
    suggested_code: str = ""
    explanation: str = ""
    category: str = "best-practices"


class AIReviewResult(_CamelModel):
    id: str
    pr_number: int
    repository: str
    provider: str
    status: ReviewStatus = "pending"
    summary: Optional[str] = None
    overall_score: Optional[float] = None
    comments: List[AIReviewComment] = Field(default_factory=list)
    suggestions: List[AIReviewSuggestion] = Field(default_factory=list)
    created_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_REVIEW_STATUSES
