#!/usr/bin/env python3

import logging
import re
from typing import List, Optional, Tuple

from prreview.models import DiffLine, DiffStats, FileDiff, Hunk, ParsedDiff

logger = logging.getLogger(__name__)

FILE_HEADER_RE = re.compile(r'^diff --git a/(.+) b/(.+)$')
HUNK_HEADER_RE = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$')
HEADER_PATH_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\S+')

# Prefixes of file header lines. "--- " and "+++ " can also be the
# content of a deleted "-- x" or added "++ x" line inside a hunk.
NOISE_PREFIXES = ('--- ', '+++ ', 'index ', 'similarity index', 'dissimilarity index')


class DiffParser:
    """Parser for Git diff output."""

    @staticmethod
    def parse_diff(diff_str: str) -> ParsedDiff:
        """
        Parses the diff string and returns a structured document.

        Unrecognized lines are dropped instead of raising, so a partial or
        slightly exotic diff still yields everything that could be read.

        Args:
            diff_str: Git diff string (unified format with extended headers)

        Returns:
            ParsedDiff with files in source order and aggregate stats
        """
        files: List[FileDiff] = []
        current_file: Optional[FileDiff] = None
        current_hunk: Optional[Hunk] = None
        path_resolved = True
        old_line = 0
        new_line = 0
        old_remaining = 0
        new_remaining = 0
        malformed_headers = 0

        lines = diff_str.split('\n')
        if lines and lines[-1] == '':
            lines.pop()

        for line in lines:
            if line.startswith('diff --git '):
                if current_file:
                    if current_hunk:
                        current_file.hunks.append(current_hunk)
                    files.append(_finish_file(current_file))
                current_file, path_resolved = _open_file(line)
                current_hunk = None
                continue

            if current_file is None:
                continue

            if line.startswith('new file mode'):
                current_file.status = 'added'
                continue
            if line.startswith('deleted file mode'):
                current_file.status = 'deleted'
                continue
            if line.startswith('rename from '):
                current_file.status = 'renamed'
                current_file.old_path = unquote_path(line[len('rename from '):])
                continue
            if line.startswith('rename to '):
                current_file.path = unquote_path(line[len('rename to '):])
                continue
            if line.startswith('copy from '):
                current_file.status = 'copied'
                current_file.old_path = unquote_path(line[len('copy from '):])
                continue
            if line.startswith('copy to '):
                current_file.path = unquote_path(line[len('copy to '):])
                continue
            if line.startswith('Binary files'):
                current_file.binary = True
                continue

            in_hunk_body = current_hunk is not None and (old_remaining > 0 or new_remaining > 0)
            if not in_hunk_body and (line.startswith(NOISE_PREFIXES) or line in ('---', '+++')):
                if not path_resolved and line.startswith('+++ '):
                    target = unquote_path(line[len('+++ '):])
                    if target.startswith('b/'):
                        current_file.path = target[2:]
                    path_resolved = True
                continue

            if line.startswith('@@'):
                if current_hunk:
                    current_file.hunks.append(current_hunk)
                current_hunk = None

                match = HUNK_HEADER_RE.match(line)
                if not match:
                    malformed_headers += 1
                    logger.debug("Dropping unrecognized hunk header in %s: %r", current_file.path, line)
                    continue
                if current_file.binary:
                    continue

                old_line = int(match.group(1))
                new_line = int(match.group(3))
                old_remaining = int(match.group(2)) if match.group(2) is not None else 1
                new_remaining = int(match.group(4)) if match.group(4) is not None else 1
                current_hunk = Hunk(
                    header=line,
                    old_start=old_line,
                    old_lines=old_remaining,
                    new_start=new_line,
                    new_lines=new_remaining,
                )
                current_hunk.lines.append(DiffLine(type='hunk-header', content=match.group(5).strip()))
                continue

            if current_hunk is None:
                continue

            if line.startswith('+'):
                current_hunk.lines.append(DiffLine(type='addition', content=line[1:], new_line_number=new_line))
                current_file.additions += 1
                new_line += 1
                new_remaining -= 1
            elif line.startswith('-'):
                current_hunk.lines.append(DiffLine(type='deletion', content=line[1:], old_line_number=old_line))
                current_file.deletions += 1
                old_line += 1
                old_remaining -= 1
            elif line.startswith(' ') or line == '':
                current_hunk.lines.append(
                    DiffLine(type='context', content=line[1:], old_line_number=old_line, new_line_number=new_line)
                )
                old_line += 1
                new_line += 1
                old_remaining -= 1
                new_remaining -= 1
            # "\ No newline at end of file" and anything else is skipped

        if current_file:
            if current_hunk:
                current_file.hunks.append(current_hunk)
            files.append(_finish_file(current_file))

        if malformed_headers:
            logger.warning("Dropped %d unrecognized hunk header(s) while parsing diff", malformed_headers)

        return ParsedDiff(files=files, stats=DiffStats.from_files(files), malformed_hunk_headers=malformed_headers)


def parse_diff(diff_str: str) -> ParsedDiff:
    return DiffParser.parse_diff(diff_str)


def unquote_path(value: str) -> str:
    """
    Decodes a path git wrote in C-style quotes (``"caf\\303\\251.txt"``).

    Unquoted values are returned unchanged. Octal escapes are UTF-8 bytes.
    """
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    raw = value[1:-1].encode('utf-8').decode('unicode_escape')
    return raw.encode('latin-1').decode('utf-8', errors='replace')


def _header_paths(rest: str) -> Optional[Tuple[str, str]]:
    tokens = HEADER_PATH_RE.findall(rest)
    if len(tokens) != 2:
        return None
    old_path, new_path = unquote_path(tokens[0]), unquote_path(tokens[1])
    if not (old_path.startswith('a/') and new_path.startswith('b/')):
        return None
    return old_path[2:], new_path[2:]


def _open_file(line: str) -> Tuple[FileDiff, bool]:
    rest = line[len('diff --git '):]
    match = FILE_HEADER_RE.match(line)
    if match:
        paths = (match.group(1), match.group(2))
    else:
        paths = _header_paths(rest)
    if paths is None:
        # Resolved later from the "+++ b/" line, if there is one
        return FileDiff(path=rest), False
    old_path, new_path = paths
    return FileDiff(path=new_path, old_path=old_path if old_path != new_path else None), True


def _finish_file(file_diff: FileDiff) -> FileDiff:
    # old_path is only meaningful for renames and copies
    if file_diff.old_path is not None and file_diff.status == 'modified':
        file_diff.status = 'renamed'
    elif file_diff.status not in ('renamed', 'copied'):
        file_diff.old_path = None
    if file_diff.binary:
        file_diff.hunks = []
    return file_diff


def format_file_diff(file_diff: FileDiff) -> str:
    """
    Renders a parsed file back into unified diff text.

    Args:
        file_diff: File to render

    Returns:
        Patch text for this file, ending with a newline
    """
    old_path = file_diff.old_path or file_diff.path
    out = [f"diff --git a/{old_path} b/{file_diff.path}"]
    if file_diff.status == 'added':
        out.append("new file mode 100644")
    elif file_diff.status == 'deleted':
        out.append("deleted file mode 100644")
    elif file_diff.status == 'renamed':
        out.extend([f"rename from {old_path}", f"rename to {file_diff.path}"])
    elif file_diff.status == 'copied':
        out.extend([f"copy from {old_path}", f"copy to {file_diff.path}"])

    if file_diff.binary:
        out.append(f"Binary files a/{old_path} and b/{file_diff.path} differ")
        return '\n'.join(out) + '\n'

    if file_diff.hunks:
        out.append('--- /dev/null' if file_diff.status == 'added' else f"--- a/{old_path}")
        out.append('+++ /dev/null' if file_diff.status == 'deleted' else f"+++ b/{file_diff.path}")

    prefixes = {'addition': '+', 'deletion': '-', 'context': ' '}
    for hunk in file_diff.hunks:
        out.append(hunk.header)
        for diff_line in hunk.lines:
            if diff_line.type == 'hunk-header':
                continue
            out.append(prefixes[diff_line.type] + diff_line.content)
    return '\n'.join(out) + '\n'
