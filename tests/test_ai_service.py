"""Tests for AI service module."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from commitpilot.config.settings import Config, NetworkConfig
from commitpilot.core.prompt import FEEDBACK_HEADING, CommitContext, ReviewKind
from commitpilot.errors import ConfigurationError, GenerationError, NetworkError, ParseError
from commitpilot.services.ai_service import (
    AIService,
    ApiStyle,
    IssueSeverity,
    ReviewResult,
    create_provider,
    parse_review_response,
)


@pytest.fixture
def claude(provider_config):
    """Fixture for a Claude style service."""
    return AIService("claude", provider_config(api_key="sk-ant-test"))


@pytest.fixture
def openai(provider_config):
    """Fixture for an OpenAI style service."""
    return AIService("openai", provider_config(api_key="sk-test"))


@pytest.fixture
def ollama(provider_config):
    """Fixture for an Ollama style service."""
    return AIService("ollama", provider_config())


def sent_body(mock_post):
    return mock_post.call_args.kwargs["json"]


class TestConstruction:
    """Test style, endpoint and credential resolution."""

    def test_style_from_provider_name(self, claude, openai, ollama):
        assert claude.style is ApiStyle.CLAUDE
        assert openai.style is ApiStyle.OPENAI
        assert ollama.style is ApiStyle.OLLAMA

    def test_explicit_api_style_wins(self, provider_config):
        service = AIService(
            "deepseek",
            provider_config(api_style="openai", endpoint="https://api.deepseek.com", api_key="k"),
        )

        assert service.style is ApiStyle.OPENAI
        assert service.endpoint == "https://api.deepseek.com/v1/chat/completions"

    def test_unknown_api_style(self, provider_config):
        with pytest.raises(ConfigurationError) as exc_info:
            AIService("gemini", provider_config(api_key="k"))

        assert "gemini" in str(exc_info.value)

    def test_default_endpoints(self, claude, openai, ollama):
        assert claude.endpoint == "https://api.anthropic.com/v1/messages"
        assert openai.endpoint == "https://api.openai.com/v1/chat/completions"
        assert ollama.endpoint == "http://localhost:11434/api/generate"

    def test_missing_key(self, provider_config):
        with pytest.raises(ConfigurationError) as exc_info:
            AIService("claude", provider_config())

        assert "ANTHROPIC_API_KEY" in exc_info.value.suggestion

    def test_key_from_environment(self, provider_config, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")

        assert AIService("claude", provider_config()).api_key == "env-key"

    def test_ollama_needs_no_key(self, ollama):
        assert ollama.api_key is None

    def test_timeouts_from_network_config(self, provider_config):
        service = AIService(
            "ollama", provider_config(), NetworkConfig(request_timeout=30, connect_timeout=5)
        )

        assert service.timeout == (5, 30)


class TestRequests:
    """Test request bodies and headers per style."""

    @patch("requests.post")
    def test_claude_request(self, mock_post, claude, mock_response, sample_diff):
        mock_post.return_value = mock_response(json_data={"content": [{"type": "text", "text": "x"}]})

        claude.generate_commit_message(sample_diff)

        headers = mock_post.call_args.kwargs["headers"]
        body = sent_body(mock_post)
        assert headers["x-api-key"] == "sk-ant-test"
        assert headers["anthropic-version"] == "2023-06-01"
        assert body["max_tokens"] == 2000
        assert body["temperature"] == 0.3
        assert body["messages"][0]["role"] == "user"
        assert sample_diff in body["messages"][0]["content"]
        assert "stream" not in body

    @patch("requests.post")
    def test_openai_request(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(
            json_data={"choices": [{"message": {"content": "x"}}]}
        )

        openai.generate_commit_message("diff")

        body = sent_body(mock_post)
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert "max_tokens" not in body
        assert body["temperature"] == 0.3

    @patch("requests.post")
    def test_ollama_request(self, mock_post, provider_config, mock_response):
        service = AIService("ollama", provider_config(temperature=0.5, max_tokens=256))
        mock_post.return_value = mock_response(json_data={"response": "x", "done": True})

        service.generate_commit_message("diff")

        body = sent_body(mock_post)
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]
        assert body["stream"] is False
        assert body["options"] == {"temperature": 0.5, "num_predict": 256}
        assert "diff" in body["prompt"]

    @patch("requests.post")
    def test_extra_fields_do_not_override_core(self, mock_post, provider_config, mock_response):
        service = AIService(
            "openai", provider_config(api_key="k", extra={"top_p": 0.9, "model": "other"})
        )
        mock_post.return_value = mock_response(
            json_data={"choices": [{"message": {"content": "x"}}]}
        )

        service.generate_commit_message("diff")

        body = sent_body(mock_post)
        assert body["top_p"] == 0.9
        assert body["model"] == "test-model"

    @patch("requests.post")
    def test_feedback_reaches_prompt(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(
            json_data={"choices": [{"message": {"content": "x"}}]}
        )

        openai.generate_commit_message("diff", CommitContext(feedback=["shorter"]))

        prompt = sent_body(mock_post)["messages"][0]["content"]
        assert f"{FEEDBACK_HEADING}\n1. shorter" in prompt

    @patch("requests.post")
    def test_api_key_is_not_logged(self, mock_post, claude, mock_response, caplog):
        mock_post.return_value = mock_response(json_data={"content": [{"type": "text", "text": "x"}]})

        with caplog.at_level("DEBUG"):
            claude.generate_commit_message("diff")

        assert "sk-ant-test" not in caplog.text


class TestResponses:
    """Test response decoding."""

    @patch("requests.post")
    def test_claude_joins_text_blocks(self, mock_post, claude, mock_response):
        mock_post.return_value = mock_response(
            json_data={
                "content": [
                    {"type": "text", "text": "feat: add x"},
                    {"type": "tool_use", "id": "t1"},
                    {"type": "text", "text": "body line"},
                ]
            }
        )

        assert claude.generate_commit_message("diff") == "feat: add x\nbody line"

    @patch("requests.post")
    def test_message_is_stripped(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(
            json_data={"choices": [{"message": {"content": "\n  fix: typo \n\n"}}]}
        )

        assert openai.generate_commit_message("diff") == "fix: typo"

    @patch("requests.post")
    def test_openai_no_choices(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(json_data={"choices": []})

        with pytest.raises(GenerationError) as exc_info:
            openai.generate_commit_message("diff")

        assert "no choices" in str(exc_info.value)

    @patch("requests.post")
    def test_ollama_error_field(self, mock_post, ollama, mock_response):
        mock_post.return_value = mock_response(json_data={"error": "model not found"})

        with pytest.raises(GenerationError) as exc_info:
            ollama.generate_commit_message("diff")

        assert "model not found" in str(exc_info.value)

    @patch("requests.post")
    def test_unexpected_shape(self, mock_post, claude, mock_response):
        mock_post.return_value = mock_response(json_data={"unexpected": True})

        with pytest.raises(ParseError) as exc_info:
            claude.generate_commit_message("diff")

        assert "unexpected" in exc_info.value.preview

    @patch("requests.post")
    def test_invalid_json(self, mock_post, openai, mock_response):
        response = mock_response(text="<html>gateway</html>")
        response.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = response

        with pytest.raises(ParseError) as exc_info:
            openai.generate_commit_message("diff")

        assert exc_info.value.preview == "<html>gateway</html>"


class TestErrors:
    """Test error classification."""

    @pytest.mark.parametrize(
        "exception, kind",
        [
            (requests.exceptions.ConnectTimeout("slow"), NetworkError.TIMEOUT),
            (requests.exceptions.ReadTimeout("slow"), NetworkError.TIMEOUT),
            (requests.exceptions.ConnectionError("refused"), NetworkError.CONNECTION),
            (requests.exceptions.InvalidURL("bad"), NetworkError.TRANSPORT),
        ],
    )
    @patch("requests.post")
    def test_network_errors(self, mock_post, claude, exception, kind):
        mock_post.side_effect = exception

        with pytest.raises(NetworkError) as exc_info:
            claude.generate_commit_message("diff")

        assert exc_info.value.kind == kind
        assert exc_info.value.suggestion

    @patch("requests.post")
    def test_http_error_keeps_status_and_body(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(status_code=401, text='{"error": "bad key"}')

        with pytest.raises(GenerationError) as exc_info:
            openai.generate_commit_message("diff")

        assert exc_info.value.status == 401
        assert exc_info.value.body == '{"error": "bad key"}'
        assert "API key" in exc_info.value.suggestion

    @patch("requests.post")
    def test_rate_limit_tip(self, mock_post, claude, mock_response):
        mock_post.return_value = mock_response(status_code=429, text="slow down")

        with pytest.raises(GenerationError) as exc_info:
            claude.generate_commit_message("diff")

        assert "Rate limited" in exc_info.value.suggestion


class TestStreaming:
    """Test streamed generation."""

    @patch("requests.post")
    def test_claude_stream(self, mock_post, claude, mock_response):
        response = mock_response(
            lines=[
                b"event: message_start",
                b'data: {"type": "message_start", "message": {}}',
                b"",
                b'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "feat: "}}',
                b'data: {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "add x"}}',
                b'data: {"type": "message_stop"}',
            ]
        )
        mock_post.return_value = response

        chunks = list(claude.generate_commit_message_streaming("diff"))

        assert chunks == ["feat: ", "add x"]
        assert sent_body(mock_post)["stream"] is True
        assert mock_post.call_args.kwargs["stream"] is True
        response.close.assert_called_once()

    @patch("requests.post")
    def test_claude_stream_error_event(self, mock_post, claude, mock_response):
        mock_post.return_value = mock_response(
            lines=[b'data: {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}']
        )

        with pytest.raises(GenerationError) as exc_info:
            list(claude.generate_commit_message_streaming("diff"))

        assert "Overloaded" in str(exc_info.value)

    @patch("requests.post")
    def test_openai_stream(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(
            lines=[
                b'data: {"choices": [{"delta": {"role": "assistant"}}]}',
                b'data: {"choices": [{"delta": {"content": "fix: "}}]}',
                b'data: {"choices": [{"delta": {"content": "typo"}}]}',
                b"data: [DONE]",
                b'data: {"choices": [{"delta": {"content": "ignored"}}]}',
            ]
        )

        assert "".join(openai.generate_commit_message_streaming("diff")) == "fix: typo"

    @patch("requests.post")
    def test_ollama_stream(self, mock_post, ollama, mock_response):
        mock_post.return_value = mock_response(
            lines=[
                json.dumps({"response": "docs: ", "done": False}).encode(),
                json.dumps({"response": "update readme", "done": False}).encode(),
                json.dumps({"response": "", "done": True}).encode(),
            ]
        )

        assert "".join(ollama.generate_commit_message_streaming("diff")) == "docs: update readme"
        assert sent_body(mock_post)["stream"] is True

    @patch("requests.post")
    def test_closing_stream_closes_response(self, mock_post, openai, mock_response):
        response = mock_response(
            lines=[
                b'data: {"choices": [{"delta": {"content": "a"}}]}',
                b'data: {"choices": [{"delta": {"content": "b"}}]}',
            ]
        )
        mock_post.return_value = response

        stream = openai.generate_commit_message_streaming("diff")
        assert next(stream) == "a"
        stream.close()

        response.close.assert_called_once()

    @patch("requests.post")
    def test_stream_interrupted(self, mock_post, openai, mock_response):
        response = mock_response()
        response.iter_lines.return_value = iter_then_fail(
            [b'data: {"choices": [{"delta": {"content": "a"}}]}'],
            requests.exceptions.ChunkedEncodingError("connection reset"),
        )
        mock_post.return_value = response

        with pytest.raises(NetworkError) as exc_info:
            list(openai.generate_commit_message_streaming("diff"))

        assert exc_info.value.kind == NetworkError.TRANSPORT
        response.close.assert_called_once()

    @patch("requests.post")
    def test_stream_http_error(self, mock_post, claude, mock_response):
        response = mock_response(status_code=500, text="boom")
        mock_post.return_value = response

        with pytest.raises(GenerationError) as exc_info:
            list(claude.generate_commit_message_streaming("diff"))

        assert exc_info.value.status == 500
        response.close.assert_called()

    @patch("requests.post")
    def test_bad_stream_event(self, mock_post, openai, mock_response):
        mock_post.return_value = mock_response(lines=[b"data: {not json"])

        with pytest.raises(ParseError):
            list(openai.generate_commit_message_streaming("diff"))

    def test_supports_streaming(self, claude, openai, ollama):
        assert all(s.supports_streaming() for s in (claude, openai, ollama))


def iter_then_fail(lines, error):
    yield from lines
    raise error


class TestReview:
    """Test code review requests and parsing."""

    @patch("requests.post")
    def test_review_code(self, mock_post, openai, mock_response):
        review = {
            "summary": "Mostly fine",
            "issues": [
                {"severity": "warning", "description": "Unused import", "file": "a.py", "line": 3}
            ],
            "suggestions": ["Add tests"],
        }
        content = f"```json\n{json.dumps(review)}\n```"
        mock_post.return_value = mock_response(
            json_data={"choices": [{"message": {"content": content}}]}
        )

        result = openai.review_code("diff", ReviewKind.CHANGES)

        assert result.summary == "Mostly fine"
        assert result.issues[0].severity is IssueSeverity.WARNING
        assert result.issues[0].line == 3
        assert result.suggestions == ["Add tests"]
        assert "## Output Format:" in sent_body(mock_post)["messages"][0]["content"]

    def test_parse_review_defaults(self):
        result = parse_review_response('{"summary": "ok"}')

        assert result == ReviewResult(summary="ok")

    def test_parse_review_not_json(self):
        with pytest.raises(ParseError) as exc_info:
            parse_review_response("I could not review this.")

        assert "I could not review this." in exc_info.value.preview

    def test_parse_review_bad_severity(self):
        with pytest.raises(ParseError):
            parse_review_response(
                '{"summary": "s", "issues": [{"severity": "blocker", "description": "d"}]}'
            )

    @pytest.mark.parametrize(
        "response",
        [
            '{"summary": "ok", "issues": ["missing null check"]}',
            '{"summary": "ok", "issues": "missing null check"}',
            '{"summary": "ok", "suggestions": "add tests"}',
        ],
    )
    def test_parse_review_wrong_field_shapes(self, response):
        with pytest.raises(ParseError) as exc_info:
            parse_review_response(response)

        assert exc_info.value.preview == response

    def test_parse_review_preview_is_truncated(self):
        with pytest.raises(ParseError) as exc_info:
            parse_review_response("x" * 2000)

        assert len(exc_info.value.preview) == 503

    def test_to_dict_omits_missing_location(self):
        result = parse_review_response(
            '{"summary": "s", "issues": [{"severity": "INFO", "description": "d", "line": null}]}'
        )

        assert result.to_dict() == {
            "summary": "s",
            "issues": [{"severity": "info", "description": "d"}],
            "suggestions": [],
        }


class TestValidate:
    """Test provider validation."""

    def test_key_styles(self, claude):
        claude.validate()

    @patch("requests.get")
    def test_ollama_reachable(self, mock_get, ollama):
        mock_get.return_value = MagicMock(status_code=200)

        ollama.validate()

        assert mock_get.call_args.args[0] == "http://localhost:11434/api/tags"

    @patch("requests.get")
    def test_ollama_unreachable(self, mock_get, ollama):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ConfigurationError) as exc_info:
            ollama.validate()

        assert "ollama serve" in exc_info.value.suggestion


class TestCreateProvider:
    """Test provider selection from configuration."""

    def test_default_provider(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")

        service = create_provider(Config.from_dict({}))

        assert service.name == "claude"
        assert service.model == "claude-sonnet-4-20250514"

    def test_named_provider(self):
        service = create_provider(Config.from_dict({}), "ollama")

        assert service.style is ApiStyle.OLLAMA
        assert service.display_name == "ollama (llama3.2)"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_provider(Config.from_dict({}), "nope")

        assert "claude, ollama, openai" in exc_info.value.suggestion
