"""Helpers shared by every provider style: endpoints, credentials, JSON cleanup."""

import os
from urllib.parse import urlsplit

from ..errors import ConfigurationError

CLAUDE_API_SUFFIX = "/v1/messages"
OPENAI_API_SUFFIX = "/v1/chat/completions"
OLLAMA_API_SUFFIX = "/api/generate"

DEFAULT_CLAUDE_BASE = "https://api.anthropic.com"
DEFAULT_OPENAI_BASE = "https://api.openai.com"
DEFAULT_OLLAMA_BASE = "http://localhost:11434"

ERROR_PREVIEW_LENGTH = 500


def complete_endpoint(base_url: str, expected_suffix: str) -> str:
    """
    Complete a user supplied endpoint with the API path it is missing.

    Args:
        base_url: Endpoint from config, e.g. ``https://api.deepseek.com/v1``
        expected_suffix: API path of the provider style, e.g. ``/v1/chat/completions``

    Returns:
        The URL to POST to. Bases that already end with the suffix, or that
        carry a custom path of two or more segments (proxies, self-hosted
        gateways), are returned unchanged.
    """
    url = base_url.rstrip("/")
    suffix = expected_suffix.lstrip("/")

    if url.endswith(suffix):
        return url

    # Base already ends with the first segments of the suffix: add the rest
    parts = suffix.split("/")
    for i in range(len(parts) - 1, 0, -1):
        if url.endswith("/" + "/".join(parts[:i])):
            return f"{url}/{'/'.join(parts[i:])}"

    if is_complete_api_path(url):
        return url

    return f"{url}/{suffix}"


def is_complete_api_path(url: str) -> bool:
    """A path of two or more non-empty segments is treated as a full custom endpoint."""
    path = urlsplit(url).path
    return len([segment for segment in path.split("/") if segment]) >= 2


def api_key_env_var(provider_name: str) -> str:
    """Environment variable holding the key for a named provider."""
    return f"{provider_name.upper().replace('-', '_')}_API_KEY"


def resolve_api_key(configured_key: str | None, provider_name: str, default_env_var: str) -> str:
    """
    Find the API key for a provider.

    Order: explicit key in config, ``<PROVIDER_NAME>_API_KEY``, then the
    family default variable (``ANTHROPIC_API_KEY``, ``OPENAI_API_KEY``).
    """
    if configured_key:
        return configured_key

    candidates = list(dict.fromkeys((api_key_env_var(provider_name), default_env_var)))
    for var in candidates:
        value = os.getenv(var)
        if value:
            return value

    raise ConfigurationError(
        f"API key for provider '{provider_name}' not found.",
        f"Set {' or '.join(candidates)}, or add api_key under "
        f"[llm.providers.{provider_name}] in your config file.",
    )


def clean_json_response(response: str) -> str:
    """Strip prose and markdown fences around a JSON object returned by a model."""
    text = response.strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]

    if text.startswith("```"):
        text = text[3:]
        if text.startswith("json"):
            text = text[4:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def truncate_for_preview(text: str) -> str:
    """Shorten raw responses embedded in error messages."""
    if len(text) > ERROR_PREVIEW_LENGTH:
        return f"{text[:ERROR_PREVIEW_LENGTH]}..."
    return text
