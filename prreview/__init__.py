"""
Pull request review client core.

- diff_parser: unified diff text to a line-addressable document
- comment_index: review comments keyed by (path, line, side)
- highlight_cache: bounded cache of tokenized file content
- response_extractor: model output to a normalized review result
- stream_session: one streamed provider invocation, resolved exactly once
"""

__version__ = "0.1.0"
