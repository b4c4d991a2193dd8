#!/usr/bin/env python3

"""Tokenizes file content into colored tokens, one list per line."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

STYLE_NAME = "github-dark"
DEFAULT_LANGUAGE = "text"

# File extension -> Pygments lexer alias
LANGUAGE_MAP = {
    "ts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "jsx",
    "py": "python",
    "rb": "ruby",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "kt": "kotlin",
    "swift": "swift",
    "c": "c",
    "cpp": "cpp",
    "h": "c",
    "hpp": "cpp",
    "cs": "csharp",
    "php": "php",
    "sql": "sql",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "less": "less",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "md": "markdown",
    "mdx": "markdown",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "dockerfile": "docker",
    "toml": "toml",
    "xml": "xml",
    "svg": "xml",
    "vue": "html",
    "svelte": "html",
}


@dataclass(frozen=True)
class HighlightedToken:
    content: str
    color: Optional[str] = None


TokenizedLines = List[List[HighlightedToken]]
Tokenizer = Callable[[str, str], TokenizedLines]


def language_for_path(path: str) -> str:
    """
    Picks the lexer alias for a file path.

    Args:
        path: Repository-relative file path

    Returns:
        Pygments lexer alias, "text" for unknown files
    """
    file_name = path.rsplit("/", 1)[-1].lower()
    if file_name == "dockerfile":
        return "docker"
    if file_name.endswith(".d.ts"):
        return "typescript"
    extension = file_name.rsplit(".", 1)[-1] if "." in file_name else ""
    return LANGUAGE_MAP.get(extension, DEFAULT_LANGUAGE)


def lexer_for_path(path: str) -> Lexer:
    # Line structure must survive lexing, so no newline stripping or appending
    options = {"stripnl": False, "ensurenl": False}
    try:
        return get_lexer_by_name(language_for_path(path), **options)
    except ClassNotFound:
        return TextLexer(**options)


def plain_tokenizer(content: str, path: str) -> TokenizedLines:
    """One uncolored token per line."""
    return [[HighlightedToken(content=line)] for line in content.split("\n")]


def pygments_tokenizer(content: str, path: str) -> TokenizedLines:
    """
    Highlights content with the lexer chosen for its path.

    Falls back to plain_tokenizer when lexing fails.

    Args:
        content: File content
        path: File path, used to pick the language

    Returns:
        One list of tokens per line of content
    """
    try:
        lexer = lexer_for_path(path)
        style = get_style_by_name(STYLE_NAME)
        lines: TokenizedLines = [[]]
        for token_type, value in lexer.get_tokens(content):
            color = style.style_for_token(token_type)["color"]
            for index, part in enumerate(value.split("\n")):
                if index:
                    lines.append([])
                if part:
                    lines[-1].append(HighlightedToken(content=part, color=f"#{color}" if color else None))
    except Exception as e:
        logger.warning("Highlighting %s failed, using plain text: %s", path, e)
        return plain_tokenizer(content, path)

    return [tokens or [HighlightedToken(content="")] for tokens in lines]
