"""CommitPilot - LLM generated git commit messages and code reviews."""

from .cli.cli_handler import CommitPilot
from .config.settings import Config, load_config
from .core.diff import DiffStats, extract_diff_stats
from .core.git import GitOperations
from .errors import CommitPilotError
from .services.ai_service import AIService, ApiStyle, ReviewResult, create_provider

__version__ = "0.1.0"

__all__ = [
    "CommitPilot",
    "Config",
    "load_config",
    "DiffStats",
    "extract_diff_stats",
    "GitOperations",
    "CommitPilotError",
    "AIService",
    "ApiStyle",
    "ReviewResult",
    "create_provider",
]
