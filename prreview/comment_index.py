#!/usr/bin/env python3

from typing import Any, Dict, Iterable, List, Optional, Set

from prreview.models import DiffLine, FileDiff


def comment_key(path: str, line: int, side: str) -> str:
    return f"{path}:{line}:{side}"


class CommentAnchorIndex:
    """
    Lookup from (path, line, side) to the comments attached there.

    Accepts any comment object exposing ``path``, ``line`` and ``side``
    (existing GitHub comments as well as AI review comments). Comments whose
    line is not part of the current diff are kept; see ``orphaned``.
    """

    def __init__(self, comments: Iterable[Any] = ()):
        self._by_key: Dict[str, List[Any]] = {}
        for comment in comments:
            self.add(comment)

    def add(self, comment: Any) -> None:
        key = comment_key(comment.path, comment.line, comment.side)
        self._by_key.setdefault(key, []).append(comment)

    def get(self, path: str, line: Optional[int], side: str) -> List[Any]:
        if line is None:
            return []
        return list(self._by_key.get(comment_key(path, line, side), []))

    def comments_for_line(self, path: str, diff_line: DiffLine) -> List[Any]:
        """Comments on the old side of the line followed by those on the new side."""
        return self.get(path, diff_line.old_line_number, "LEFT") + self.get(path, diff_line.new_line_number, "RIGHT")

    def count_for_path(self, path: str) -> int:
        return sum(1 for comments in self._by_key.values() for comment in comments if comment.path == path)

    def orphaned(self, files: Iterable[FileDiff]) -> List[Any]:
        """
        Returns the comments whose anchor does not appear on any line of the given files.

        Args:
            files: Files as rendered

        Returns:
            Orphaned comments, grouped by anchor in first-seen order
        """
        anchors: Set[str] = set()
        for file_diff in files:
            for hunk in file_diff.hunks:
                for diff_line in hunk.lines:
                    if diff_line.old_line_number is not None:
                        anchors.add(comment_key(file_diff.path, diff_line.old_line_number, "LEFT"))
                    if diff_line.new_line_number is not None:
                        anchors.add(comment_key(file_diff.path, diff_line.new_line_number, "RIGHT"))
        return [
            comment
            for key, comments in self._by_key.items()
            if key not in anchors
            for comment in comments
        ]

    def __len__(self) -> int:
        return sum(len(comments) for comments in self._by_key.values())

    def __contains__(self, key: str) -> bool:
        return key in self._by_key
