#!/usr/bin/env python3

import os
from typing import Dict, Any, List, Optional

from prreview.reviewers.base_reviewer import DEFAULT_SYSTEM_PROMPTS

DEFAULT_PROVIDER = "azure"
PROVIDERS = ("azure", "claude", "codex")
# Providers that run as external CLI processes; this runner cannot host them
EXTERNAL_HOST_PROVIDERS = ("claude", "codex")
DEFAULT_REVIEW_TIMEOUT = 600.0


def _parse_list(raw: str) -> List[str]:
    if not raw or not raw.strip():
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _parse_int(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


def _parse_float(raw: Optional[str], default: float) -> float:
    try:
        value = float(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def load_config() -> Dict[str, Any]:
    """
    Loads configuration from environment variables.

    Returns:
        Dict containing configuration values
    """
    provider = os.environ.get("INPUT_PROVIDER", DEFAULT_PROVIDER).strip().lower() or DEFAULT_PROVIDER

    # Unknown focus areas fall back to the general prompt
    review_focus = os.environ.get("INPUT_REVIEW_FOCUS", "default").strip().lower()
    if review_focus not in DEFAULT_SYSTEM_PROMPTS:
        review_focus = "default"

    config = {
        # GitHub configuration
        "github_token": os.environ.get("GITHUB_TOKEN"),
        "repository": os.environ.get("INPUT_REPOSITORY") or None,
        "pull_number": _parse_int(os.environ.get("INPUT_PR_NUMBER")),

        # General configuration
        "exclude_patterns": _parse_list(os.environ.get("INPUT_EXCLUDE", "")),
        "post_comments": os.environ.get("INPUT_POST_COMMENTS", "false").lower() == "true",
        "review_timeout": _parse_float(os.environ.get("INPUT_REVIEW_TIMEOUT"), DEFAULT_REVIEW_TIMEOUT),
        "log_level": os.environ.get("INPUT_LOG_LEVEL", "WARNING").upper(),

        # Review provider configuration
        "provider": provider,
        "model": os.environ.get("INPUT_MODEL") or None,
        "reasoning_effort": os.environ.get("INPUT_REASONING_EFFORT") or None,
        "review_focus": review_focus,
        "system_prompt": os.environ.get("INPUT_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPTS[review_focus],

        # Azure OpenAI configuration
        "azure_openai_endpoint": os.environ.get("AZURE_OPENAI_ENDPOINT"),
        "azure_openai_key": os.environ.get("AZURE_OPENAI_KEY"),
        "azure_openai_deployment": os.environ.get("AZURE_OPENAI_DEPLOYMENT"),
        "azure_openai_api_version": os.environ.get("AZURE_OPENAI_API_VERSION"),
    }

    return config


def required_env_vars(config: Dict[str, Any]) -> List[str]:
    required_vars = ["GITHUB_TOKEN"]
    if config.get("provider") == "azure":
        required_vars.extend([
            "AZURE_OPENAI_ENDPOINT",
            "AZURE_OPENAI_KEY",
            "AZURE_OPENAI_DEPLOYMENT"
        ])
    return required_vars


def config_problems(config: Dict[str, Any]) -> List[str]:
    """
    Checks settings the runner cannot act on.

    Args:
        config: Configuration dictionary

    Returns:
        Messages describing each problem, empty when the config is usable
    """
    provider = config.get("provider")
    if provider not in PROVIDERS:
        return [f"Unknown provider '{provider}', expected one of: {', '.join(PROVIDERS)}"]
    if provider in EXTERNAL_HOST_PROVIDERS:
        return [
            f"Provider '{provider}' runs as an external CLI process and needs a process host; "
            f"use provider 'azure' with this runner"
        ]
    return []
