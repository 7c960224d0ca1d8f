"""Common test fixtures."""

from unittest.mock import MagicMock

import pytest

from commitpilot.config.settings import Config, ProviderConfig

SAMPLE_DIFF = """\
diff --git a/src/app.py b/src/app.py
index 83db48f..bf269f4 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
-import sys
+import json
+import logging

"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real credentials and overrides out of the tests."""
    for var in (
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "CLAUDE_API_KEY",
        "OLLAMA_API_KEY",
        "COMMITPILOT_CONFIG",
        "COMMITPILOT_COMMIT_MAX_RETRIES",
        "COMMITPILOT_UI_STREAMING",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sample_diff():
    """Fixture for a small staged diff."""
    return SAMPLE_DIFF


@pytest.fixture
def provider_config():
    """Fixture for creating ProviderConfig instances."""

    def _create(model: str = "test-model", **kwargs):
        return ProviderConfig(model=model, **kwargs)

    return _create


@pytest.fixture
def mock_response():
    """Fixture for creating fake requests responses."""

    def _create(status_code: int = 200, json_data=None, text: str = "", lines=None):
        response = MagicMock(status_code=status_code, text=text)
        response.json.return_value = json_data
        if lines is not None:
            response.iter_lines.return_value = iter(lines)
        return response

    return _create


@pytest.fixture
def config():
    """Fixture for a default configuration without streaming."""
    return Config.from_dict({"ui": {"streaming": False}})


@pytest.fixture
def mock_git(mocker, sample_diff):
    """Fixture for mocked git operations with one staged change."""
    git = mocker.MagicMock()
    git.has_staged_changes.return_value = True
    git.get_staged_diff.return_value = sample_diff
    git.get_current_branch.return_value = "main"
    return git


@pytest.fixture
def mock_ai(mocker):
    """Fixture for a mocked provider."""
    ai = mocker.MagicMock()
    ai.supports_streaming.return_value = True
    ai.display_name = "claude (test-model)"
    ai.generate_commit_message.return_value = "feat: add logging"
    return ai
