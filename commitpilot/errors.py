"""Error types for CommitPilot."""


class CommitPilotError(Exception):
    """Base class for all CommitPilot errors."""

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(message)
        self._suggestion = suggestion

    @property
    def suggestion(self) -> str | None:
        """One-line remediation hint shown under the error, if any."""
        return self._suggestion


class ConfigurationError(CommitPilotError):
    """Missing credential, unknown provider or malformed configuration."""


class NetworkError(CommitPilotError):
    """The request never produced an HTTP response."""

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    TRANSPORT = "transport"

    _TIPS = {
        TIMEOUT: "The provider did not answer in time. Increase network.request_timeout "
        "or try a smaller change.",
        CONNECTION: "Check the endpoint URL and your network. For Ollama, make sure "
        "'ollama serve' is running.",
        TRANSPORT: "Check your proxy and TLS settings.",
    }

    def __init__(self, message: str, kind: str = TRANSPORT):
        super().__init__(message, self._TIPS.get(kind))
        self.kind = kind


class GenerationError(CommitPilotError):
    """The provider answered, but not with a usable generation."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message, self._tip_for(status))
        self.status = status
        self.body = body

    @staticmethod
    def _tip_for(status: int | None) -> str | None:
        if status in (401, 403):
            return "Check your API key."
        if status == 404:
            return "Check the model name and the endpoint URL."
        if status == 429:
            return "Rate limited by the provider. Wait a moment and retry."
        if status is not None and status >= 500:
            return "The provider is having trouble. Try again later."
        return None


class ParseError(CommitPilotError):
    """A response or input had an unexpected shape."""

    def __init__(
        self,
        message: str,
        preview: str | None = None,
        suggestion: str | None = "Try again, or switch to a different model.",
    ):
        super().__init__(message, suggestion)
        self.preview = preview


class DiffParseError(ParseError):
    """The unified diff was malformed or truncated."""

    def __init__(self, message: str, line_number: int | None = None):
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message, suggestion=None)
        self.line_number = line_number


class RetryLimitExceeded(CommitPilotError):
    """The commit workflow ran out of generation attempts."""

    def __init__(self, max_retries: int):
        super().__init__(
            f"Reached maximum retry limit ({max_retries})",
            "Raise commit.max_retries in your config to allow more attempts.",
        )
        self.max_retries = max_retries


class UserCancelled(CommitPilotError):
    """The user aborted the operation. Not a failure."""

    def __init__(self, message: str = "Operation cancelled by user."):
        super().__init__(message)


class GitError(CommitPilotError):
    """Git operation error."""


class NoStagedChangesError(CommitPilotError):
    """Nothing is staged for commit."""

    def __init__(self, message: str = "No staged changes found."):
        super().__init__(message, "Stage your changes first with 'git add <files>'.")


class InvalidInputError(CommitPilotError):
    """Invalid user input such as a malformed commit range."""
