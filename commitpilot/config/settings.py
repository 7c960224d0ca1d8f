"""Configuration settings for CommitPilot."""

import logging
import os
import tomllib
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COMMITPILOT_CONFIG"
ENV_PREFIX = "COMMITPILOT_"
SEVERITIES = ("critical", "warning", "info")
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ProviderConfig:
    """Settings of one LLM provider."""

    model: str
    api_style: str | None = None
    endpoint: str | None = None
    api_key: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, name: str, data: dict[str, Any], base: "ProviderConfig | None" = None
    ) -> "ProviderConfig":
        """Build a provider from a TOML table; unknown keys land in ``extra``."""
        known = [f.name for f in fields(cls) if f.name != "extra"]
        values = {key: getattr(base, key) for key in known} if base else {}
        extra = dict(base.extra) if base else {}
        for key, value in data.items():
            if key in known:
                values[key] = value
            else:
                extra[key] = value

        if not values.get("model"):
            raise ConfigurationError(
                f"Provider '{name}' has no model configured.",
                f'Add model = "<model-id>" under [llm.providers.{name}].',
            )
        max_tokens = values.get("max_tokens")
        if max_tokens is not None and (isinstance(max_tokens, bool) or not isinstance(max_tokens, int)):
            raise ConfigurationError(f"llm.providers.{name}.max_tokens must be an integer.")
        temperature = values.get("temperature")
        if temperature is not None and (
            isinstance(temperature, bool) or not isinstance(temperature, (int, float))
        ):
            raise ConfigurationError(f"llm.providers.{name}.temperature must be a number.")

        return cls(**values, extra=extra)


def default_providers() -> dict[str, ProviderConfig]:
    """Providers available without any config file."""
    return {
        "claude": ProviderConfig(model="claude-sonnet-4-20250514"),
        "openai": ProviderConfig(model="gpt-4o-mini"),
        "ollama": ProviderConfig(model="llama3.2"),
    }


@dataclass(frozen=True)
class LLMConfig:
    default_provider: str = "claude"
    providers: dict[str, ProviderConfig] = field(default_factory=default_providers)


@dataclass(frozen=True)
class CommitConfig:
    show_diff_preview: bool = True
    allow_edit: bool = True
    # Placeholders: {diff} {files_changed} {insertions} {deletions} {branch_name} {branch_info}
    custom_prompt: str | None = None
    max_retries: int = 10


@dataclass(frozen=True)
class ReviewConfig:
    min_severity: str = "info"
    custom_prompt: str | None = None


@dataclass(frozen=True)
class UIConfig:
    colored: bool = True
    verbose: bool = False
    streaming: bool = True


@dataclass(frozen=True)
class NetworkConfig:
    request_timeout: int = 120
    connect_timeout: int = 10


@dataclass(frozen=True)
class FileConfig:
    max_size: int = 10 * 1024 * 1024


@dataclass(frozen=True)
class Config:
    """Main configuration settings."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    file: FileConfig = field(default_factory=FileConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create configuration from parsed TOML data plus environment overrides."""
        llm_data = dict(data.get("llm", {}))
        providers = default_providers()
        for name, table in llm_data.pop("providers", {}).items():
            if not isinstance(table, dict):
                raise ConfigurationError(f"llm.providers.{name} must be a table.")
            providers[name] = ProviderConfig.from_dict(name, table, providers.get(name))

        llm = _build_section(LLMConfig, "llm", llm_data, providers=providers)
        review = _build_section(ReviewConfig, "review", data.get("review", {}))
        if review.min_severity not in SEVERITIES:
            raise ConfigurationError(
                f"Invalid review.min_severity '{review.min_severity}'.",
                f"Use one of: {', '.join(SEVERITIES)}.",
            )

        return cls(
            llm=llm,
            commit=_build_section(CommitConfig, "commit", data.get("commit", {})),
            review=review,
            ui=_build_section(UIConfig, "ui", data.get("ui", {})),
            network=_build_section(NetworkConfig, "network", data.get("network", {})),
            file=_build_section(FileConfig, "file", data.get("file", {})),
        )


def _expected_type(f) -> type:
    default = f.default
    if default is MISSING or default is None:
        return str
    return type(default)


def _coerce_env(name: str, raw: str, expected: type) -> Any:
    if expected is bool:
        lowered = raw.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ConfigurationError(f"{name} must be a boolean, got '{raw}'.")
    try:
        return expected(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be of type {expected.__name__}, got '{raw}'.") from e


def _check_type(name: str, value: Any, expected: type) -> Any:
    if expected is bool:
        valid = isinstance(value, bool)
    elif expected in (int, float):
        valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        if expected is int and isinstance(value, float):
            valid = value.is_integer()
    else:
        valid = isinstance(value, expected)
    if not valid:
        raise ConfigurationError(f"{name} must be of type {expected.__name__}.")
    return expected(value)


def _build_section(cls, section: str, data: dict[str, Any], **overrides: Any):
    if not isinstance(data, dict):
        raise ConfigurationError(f"[{section}] must be a table.")

    values: dict[str, Any] = dict(overrides)
    names = set()
    for f in fields(cls):
        if f.name in overrides:
            continue
        names.add(f.name)
        expected = _expected_type(f)
        key = f"{section}.{f.name}"
        if f.name in data:
            values[f.name] = _check_type(key, data[f.name], expected)
        env_value = os.getenv(f"{ENV_PREFIX}{section.upper()}_{f.name.upper()}")
        if env_value is not None:
            values[f.name] = _coerce_env(key, env_value, expected)

    for unknown in sorted(set(data) - names):
        logger.warning("Ignoring unknown setting %s.%s", section, unknown)

    return cls(**values)


def default_config_path() -> Path:
    """``$XDG_CONFIG_HOME/commitpilot/config.toml`` (``~/.config`` by default)."""
    base = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "commitpilot" / "config.toml"


def load_config(path: Path | None = None) -> Config:
    """
    Load configuration.

    Precedence (highest first): ``COMMITPILOT_<SECTION>_<KEY>`` environment
    variables, the TOML config file, built-in defaults. A ``.env`` file in the
    working tree is loaded first so it can provide API keys and overrides.
    """
    load_dotenv(find_dotenv(usecwd=True))

    if path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else default_config_path()

    data: dict[str, Any] = {}
    if path.exists():
        logger.debug("Loading config from %s", path)
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(
                f"Invalid config file {path}: {e}", "Fix the TOML syntax and try again."
            ) from e

    return Config.from_dict(data)
