#!/usr/bin/env python3

"""Splits raw model output into thinking blocks, tool calls and the response text."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

THINKING_RE = re.compile(r"<thinking>([\s\S]*?)(</thinking>|$)")
FUNCTION_CALLS_RE = re.compile(r"<function_calls>([\s\S]*?)(</function_calls>|$)")
INVOKE_RE = re.compile(r'<invoke name="([^"]+)">')
SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")

IGNORED_EVENT_TYPES = {"system", "init", "mcp_servers", "ping", "session"}
CONTENT_EVENT_TYPES = {
    "message_start",
    "message_delta",
    "message_stop",
    "content_block_start",
    "content_block_delta",
    "content_block_stop",
}

TITLE_LIMIT = 60


@dataclass
class ThinkingBlock:
    id: str
    title: str
    content: str
    is_complete: bool


@dataclass
class ToolCall:
    name: str
    status: str  # running|complete


@dataclass
class ParsedAIOutput:
    thinking_blocks: List[ThinkingBlock] = field(default_factory=list)
    response: str = ""
    is_thinking: bool = False
    tool_calls: List[ToolCall] = field(default_factory=list)


def parse_ai_stream_output(output: str) -> ParsedAIOutput:
    lines = [line for line in output.split("\n") if line.strip()]
    if lines and lines[0].strip().startswith("{"):
        return parse_stream_json_output(lines)
    return parse_plain_text_output(output)


def parse_stream_json_output(lines: List[str]) -> ParsedAIOutput:
    """
    Parses JSON-lines stream events (one event object per line).

    Metadata events are ignored, and so are lines that are not JSON.

    Args:
        lines: Non-empty output lines

    Returns:
        ParsedAIOutput collected from the content events
    """
    result = ParsedAIOutput()
    current_thinking = ""
    index = 0

    for line in lines:
        try:
            event = json.loads(line)
        except ValueError:
            continue
        if not isinstance(event, dict) or _is_metadata_event(event):
            continue

        tool_use = event.get("tool_use")
        if isinstance(tool_use, dict) and tool_use.get("name"):
            result.tool_calls.append(ToolCall(name=tool_use["name"], status="running"))

        if not _is_content_event(event):
            continue

        for key in ("delta", "content_block"):
            part = event.get(key)
            if isinstance(part, dict):
                if part.get("thinking"):
                    current_thinking += part["thinking"]
                    result.is_thinking = True
                if part.get("text"):
                    result.response += part["text"]

        if event.get("type") == "content_block_stop" and current_thinking:
            result.thinking_blocks.append(_block(index, current_thinking, True))
            index += 1
            current_thinking = ""
            result.is_thinking = False

        message = event.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), list):
            for block in message["content"]:
                if not isinstance(block, dict):
                    continue
                if block.get("thinking"):
                    result.thinking_blocks.append(_block(index, block["thinking"], True))
                    index += 1
                if block.get("text"):
                    result.response += block["text"]

    if current_thinking:
        result.thinking_blocks.append(_block(index, current_thinking, False))
        result.is_thinking = True

    result.response = result.response.strip()
    return result


def parse_plain_text_output(output: str) -> ParsedAIOutput:
    result = ParsedAIOutput(tool_calls=parse_tool_calls(output))
    for index, match in enumerate(THINKING_RE.finditer(output)):
        is_complete = match.group(2) == "</thinking>"
        result.thinking_blocks.append(_block(index, match.group(1), is_complete))
        if not is_complete:
            result.is_thinking = True
    result.response = THINKING_RE.sub("", output).strip()
    return result


def parse_tool_calls(output: str) -> List[ToolCall]:
    tools = []
    for match in FUNCTION_CALLS_RE.finditer(output):
        status = "complete" if match.group(2) == "</function_calls>" else "running"
        for name in INVOKE_RE.findall(match.group(1)):
            tools.append(ToolCall(name=name, status=status))
    return tools


def extract_thinking_title(content: str) -> str:
    stripped = content.strip()
    first_line = stripped.split("\n")[0].strip()

    if 0 < len(first_line) <= 100:
        title = re.sub(r"^[#*\-]+\s*", "", first_line)
        return _shorten(title, len(first_line) > TITLE_LIMIT)

    sentences = SENTENCE_RE.findall(stripped)
    if sentences:
        first = sentences[0].strip()
        return _shorten(first, len(first) > TITLE_LIMIT)

    return "Analyzing..."


def _shorten(text: str, truncated: bool) -> str:
    return text[:TITLE_LIMIT] + ("..." if truncated else "")


def _block(index: int, content: str, is_complete: bool) -> ThinkingBlock:
    return ThinkingBlock(
        id=f"thinking-{index}",
        title=extract_thinking_title(content),
        content=content.strip(),
        is_complete=is_complete,
    )


def _is_metadata_event(event: Dict[str, Any]) -> bool:
    if "mcp_servers" in event or "session" in event or "session_id" in event:
        return True
    return isinstance(event.get("type"), str) and event["type"] in IGNORED_EVENT_TYPES


def _is_content_event(event: Dict[str, Any]) -> bool:
    if isinstance(event.get("type"), str):
        return event["type"] in CONTENT_EVENT_TYPES
    return "delta" in event or "content_block" in event
