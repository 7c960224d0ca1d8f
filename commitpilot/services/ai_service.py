"""AI service for generating commit messages and code reviews."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

import requests

from ..config.settings import Config, NetworkConfig, ProviderConfig
from ..core.prompt import CommitContext, ReviewKind, build_commit_prompt, build_review_prompt
from ..errors import ConfigurationError, GenerationError, NetworkError, ParseError
from .endpoint import (
    CLAUDE_API_SUFFIX,
    DEFAULT_CLAUDE_BASE,
    DEFAULT_OLLAMA_BASE,
    DEFAULT_OPENAI_BASE,
    OLLAMA_API_SUFFIX,
    OPENAI_API_SUFFIX,
    clean_json_response,
    complete_endpoint,
    resolve_api_key,
    truncate_for_preview,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.3
ANTHROPIC_VERSION = "2023-06-01"
RESERVED_FIELDS = frozenset({"model", "messages", "prompt", "stream"})


class IssueSeverity(Enum):
    """Severity of a review finding, most severe first."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return list(IssueSeverity).index(self)


@dataclass
class ReviewIssue:
    """A single problem found during review."""

    severity: IssueSeverity
    description: str
    file: str | None = None
    line: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewIssue":
        if not isinstance(data, dict):
            raise TypeError("each issue must be a JSON object")
        line = data.get("line")
        return cls(
            severity=IssueSeverity(str(data["severity"]).lower()),
            description=str(data["description"]),
            file=data.get("file") or None,
            line=int(line) if line is not None else None,
        )


@dataclass
class ReviewResult:
    """Structured outcome of a code review."""

    summary: str
    issues: list[ReviewIssue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ReviewResult":
        if not isinstance(data, dict):
            raise TypeError("review result must be a JSON object")
        if not isinstance(data["summary"], str):
            raise TypeError("summary must be a string")
        issues = data.get("issues") or []
        suggestions = data.get("suggestions") or []
        if not isinstance(issues, list):
            raise TypeError("issues must be a list")
        if not isinstance(suggestions, list):
            raise TypeError("suggestions must be a list")
        return cls(
            summary=data["summary"],
            issues=[ReviewIssue.from_dict(issue) for issue in issues],
            suggestions=[str(s) for s in suggestions],
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form, omitting absent file/line fields."""
        issues = []
        for issue in self.issues:
            item: dict[str, Any] = {
                "severity": issue.severity.value,
                "description": issue.description,
            }
            if issue.file is not None:
                item["file"] = issue.file
            if issue.line is not None:
                item["line"] = issue.line
            issues.append(item)
        return {"summary": self.summary, "issues": issues, "suggestions": self.suggestions}


def parse_review_response(response: str) -> ReviewResult:
    """Parse a model's review answer, tolerating code fences and surrounding prose."""
    cleaned = clean_json_response(response)
    try:
        return ReviewResult.from_dict(json.loads(cleaned))
    except (ValueError, KeyError, TypeError) as e:
        preview = truncate_for_preview(response)
        raise ParseError(
            f"Failed to parse review result: {e}. Response preview: {preview}", preview=preview
        ) from e


class ApiStyle(Enum):
    """Wire format families a provider can speak."""

    CLAUDE = "claude"
    OPENAI = "openai"
    OLLAMA = "ollama"

    @property
    def label(self) -> str:
        return {"claude": "Claude", "openai": "OpenAI", "ollama": "Ollama"}[self.value]

    @classmethod
    def resolve(cls, provider_name: str, provider_config: ProviderConfig) -> "ApiStyle":
        """Explicit ``api_style`` wins, otherwise the provider name decides."""
        style = provider_config.api_style or provider_name
        try:
            return cls(style.lower())
        except ValueError:
            raise ConfigurationError(
                f"Unsupported API style '{style}' for provider '{provider_name}'.",
                "Set api_style to one of: claude, openai, ollama.",
            ) from None


# Default base URL, API path and fallback key variable per style
STYLE_DEFAULTS = {
    ApiStyle.CLAUDE: (DEFAULT_CLAUDE_BASE, CLAUDE_API_SUFFIX, "ANTHROPIC_API_KEY"),
    ApiStyle.OPENAI: (DEFAULT_OPENAI_BASE, OPENAI_API_SUFFIX, "OPENAI_API_KEY"),
    ApiStyle.OLLAMA: (DEFAULT_OLLAMA_BASE, OLLAMA_API_SUFFIX, None),
}


class AIService:
    """Service for talking to an LLM provider in one of the supported API styles."""

    def __init__(
        self,
        provider_name: str,
        provider_config: ProviderConfig,
        network: NetworkConfig | None = None,
    ):
        """Resolve style, endpoint and credentials up front so misconfiguration fails early."""
        self.name = provider_name
        self.config = provider_config
        self.style = ApiStyle.resolve(provider_name, provider_config)
        self.model = provider_config.model

        default_base, suffix, key_env_var = STYLE_DEFAULTS[self.style]
        if provider_config.endpoint:
            self.endpoint = complete_endpoint(provider_config.endpoint, suffix)
        else:
            self.endpoint = default_base + suffix

        self.api_key = None
        if key_env_var is not None:
            self.api_key = resolve_api_key(provider_config.api_key, provider_name, key_env_var)

        network = network or NetworkConfig()
        self.timeout = (network.connect_timeout, network.request_timeout)

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.model})"

    def supports_streaming(self) -> bool:
        return True

    def generate_commit_message(self, diff: str, context: CommitContext | None = None) -> str:
        """Generate a commit message in a single request."""
        prompt = self._commit_prompt(diff, context)
        data = self._post(self._build_request(prompt, stream=False))
        message = self._extract_text(data).strip()
        logger.debug("Generated commit message: %s", message)
        return message

    def generate_commit_message_streaming(
        self, diff: str, context: CommitContext | None = None
    ) -> Iterator[str]:
        """
        Generate a commit message incrementally.

        Yields text chunks in the order the provider produces them. The
        request is sent on first iteration and the HTTP response is closed
        when the generator finishes, fails or is closed by the consumer.
        """
        prompt = self._commit_prompt(diff, context)
        response = self._send(self._build_request(prompt, stream=True), stream=True)
        try:
            for line in self._stream_lines(response):
                chunk, done = self._decode_stream_line(line)
                if chunk:
                    yield chunk
                if done:
                    return
            logger.debug("%s stream ended without an end marker", self.style.label)
        finally:
            response.close()

    def review_code(
        self, diff: str, review_kind: ReviewKind, custom_prompt: str | None = None
    ) -> ReviewResult:
        """Review a diff and return structured findings. Never retried."""
        prompt = build_review_prompt(diff, review_kind, custom_prompt)
        logger.debug("Review prompt length: %d chars (%s)", len(prompt), review_kind.value)
        response = self._extract_text(self._post(self._build_request(prompt, stream=False)))
        logger.debug("LLM review response: %s", response)
        return parse_review_response(response)

    def validate(self) -> None:
        """Cheap check that the provider is usable: a key, or a reachable Ollama server."""
        if self.style is not ApiStyle.OLLAMA:
            if not self.api_key or not self.api_key.strip():
                raise ConfigurationError(f"API key for provider '{self.name}' is empty.")
            return

        parts = urlsplit(self.endpoint)
        url = f"{parts.scheme}://{parts.netloc}/api/tags"
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ConfigurationError(
                f"Cannot reach Ollama at {url}: {e}", "Start it with 'ollama serve'."
            ) from e
        if not 200 <= response.status_code < 300:
            raise ConfigurationError(
                f"Ollama at {url} answered with status {response.status_code}.",
                "Check the endpoint configured for this provider.",
            )

    def _commit_prompt(self, diff: str, context: CommitContext | None) -> str:
        context = context or CommitContext()
        prompt = build_commit_prompt(diff, context, context.custom_prompt)
        logger.debug("Commit message generation prompt length: %d chars", len(prompt))
        return prompt

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.style is ApiStyle.CLAUDE:
            headers["x-api-key"] = self.api_key
            headers["anthropic-version"] = ANTHROPIC_VERSION
        elif self.style is ApiStyle.OPENAI:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_request(self, prompt: str, stream: bool) -> dict[str, Any]:
        max_tokens = self.config.max_tokens
        temperature = self.config.temperature
        messages = [{"role": "user", "content": prompt}]

        if self.style is ApiStyle.CLAUDE:
            body: dict[str, Any] = {
                "model": self.model,
                "max_tokens": max_tokens if max_tokens is not None else DEFAULT_MAX_TOKENS,
                "temperature": temperature if temperature is not None else DEFAULT_TEMPERATURE,
                "messages": messages,
            }
            if stream:
                body["stream"] = True
        elif self.style is ApiStyle.OPENAI:
            body = {
                "model": self.model,
                "messages": messages,
                "temperature": temperature if temperature is not None else DEFAULT_TEMPERATURE,
            }
            if max_tokens is not None:
                body["max_tokens"] = max_tokens
            if stream:
                body["stream"] = True
        else:
            body = {"model": self.model, "prompt": prompt, "stream": stream}
            options: dict[str, Any] = {}
            if temperature is not None:
                options["temperature"] = temperature
            if max_tokens is not None:
                options["num_predict"] = max_tokens
            if options:
                body["options"] = options

        # Extension fields ride along but never replace the core ones
        for key, value in self.config.extra.items():
            if key in RESERVED_FIELDS:
                logger.warning("Ignoring reserved field '%s' in provider '%s'", key, self.name)
                continue
            body.setdefault(key, value)

        logger.debug(
            "%s API request: model=%s, max_tokens=%s, temperature=%s, stream=%s",
            self.style.label,
            self.model,
            max_tokens,
            temperature,
            stream,
        )
        return body

    @contextmanager
    def _network_errors(self):
        """Translate requests exceptions into NetworkError kinds."""
        try:
            yield
        except requests.exceptions.Timeout as e:
            raise NetworkError(
                f"Request to {self.endpoint} timed out after {self.timeout[1]}s.",
                NetworkError.TIMEOUT,
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(
                f"Could not connect to {self.endpoint}: {e}", NetworkError.CONNECTION
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"Request to {self.endpoint} failed: {e}", NetworkError.TRANSPORT
            ) from e

    def _send(self, body: dict[str, Any], stream: bool) -> requests.Response:
        with self._network_errors():
            response = requests.post(
                self.endpoint,
                headers=self._headers(),
                json=body,
                timeout=self.timeout,
                stream=stream,
            )

        status = response.status_code
        logger.debug("%s API response status: %s", self.style.label, status)
        if not 200 <= status < 300:
            text = response.text
            response.close()
            raise GenerationError(
                f"{self.style.label} API error ({status}): {text}", status=status, body=text
            )
        return response

    def _post(self, body: dict[str, Any]) -> Any:
        response = self._send(body, stream=False)
        try:
            data = response.json()
        except ValueError as e:
            preview = truncate_for_preview(response.text)
            raise ParseError(
                f"Failed to parse {self.style.label} response: {e}. Raw response: {preview}",
                preview=preview,
            ) from e
        logger.debug("%s API response body: %s", self.style.label, data)
        return data

    def _extract_text(self, data: Any) -> str:
        label = self.style.label
        try:
            if self.style is ApiStyle.CLAUDE:
                return "\n".join(
                    block["text"] for block in data["content"] if block.get("type") == "text"
                )
            if self.style is ApiStyle.OPENAI:
                choices = data["choices"]
                if not choices:
                    raise GenerationError(f"{label} returned no choices", body=json.dumps(data))
                return choices[0]["message"]["content"] or ""
            if data.get("error"):
                raise GenerationError(f"{label} error: {data['error']}", body=json.dumps(data))
            return data["response"]
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            preview = truncate_for_preview(json.dumps(data, default=str))
            raise ParseError(
                f"Unexpected {label} response shape ({e!r}). Raw response: {preview}",
                preview=preview,
            ) from e

    def _stream_lines(self, response: requests.Response) -> Iterator[str]:
        lines = response.iter_lines()
        while True:
            with self._network_errors():
                line = next(lines, None)
            if line is None:
                return
            if isinstance(line, bytes):
                line = line.decode("utf-8", errors="replace")
            if line:
                yield line

    def _load_event(self, payload: str) -> Any:
        try:
            return json.loads(payload)
        except ValueError as e:
            preview = truncate_for_preview(payload)
            raise ParseError(
                f"Failed to parse {self.style.label} stream event: {e}. Raw event: {preview}",
                preview=preview,
            ) from e

    def _decode_stream_line(self, line: str) -> tuple[str, bool]:
        """Return ``(text_chunk, finished)`` for one line of a streamed response."""
        if self.style is ApiStyle.OLLAMA:
            event = self._load_event(line)
            if event.get("error"):
                raise GenerationError(f"Ollama error: {event['error']}", body=line)
            return event.get("response") or "", bool(event.get("done"))

        # Server-sent events; "event:" lines and comments carry no text
        if not line.startswith("data:"):
            return "", False
        payload = line[len("data:") :].strip()

        if self.style is ApiStyle.OPENAI:
            if payload == "[DONE]":
                return "", True
            choices = self._load_event(payload).get("choices") or []
            if not choices:
                return "", False
            return (choices[0].get("delta") or {}).get("content") or "", False

        event = self._load_event(payload)
        kind = event.get("type")
        if kind == "content_block_delta":
            return (event.get("delta") or {}).get("text") or "", False
        if kind == "message_stop":
            return "", True
        if kind == "error":
            message = (event.get("error") or {}).get("message", payload)
            raise GenerationError(f"Claude stream error: {message}", body=payload)
        return "", False


def create_provider(config: Config, provider_name: str | None = None) -> AIService:
    """Build the provider selected on the command line or by ``llm.default_provider``."""
    name = provider_name or config.llm.default_provider
    provider_config = config.llm.providers.get(name)
    if provider_config is None:
        raise ConfigurationError(
            f"Provider '{name}' not found in config.",
            f"Available providers: {', '.join(sorted(config.llm.providers))}.",
        )
    return AIService(name, provider_config, config.network)
