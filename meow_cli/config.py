"""Configuration management for Meow CLI."""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.meow-cli/config.yaml").expanduser()
DEFAULT_SESSIONS_PATH = Path("~/.meow-cli/sessions.json").expanduser()
LOCAL_CONFIG_FILENAME = "meow.yaml"


class ModelConfig(BaseModel):
    """Remote model endpoint configuration."""

    api_base: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4-turbo"
    timeout: float = 120.0


class ProfileConfig(BaseModel):
    """System prompt and sampling temperature bundle."""

    system: str
    temperature: float = 0.2


DEFAULT_PROFILES: dict[str, ProfileConfig] = {
    "default": ProfileConfig(
        system=(
            "You are an experienced software engineer. Your answers are short, "
            "precise and to the point. Use the tools to work with files and the system."
        ),
        temperature=0.2,
    ),
    "creative": ProfileConfig(
        system="You are a creative assistant. Suggest unconventional ideas and detailed explanations.",
        temperature=0.7,
    ),
}

DEFAULT_ALIASES: dict[str, str] = {
    "/h": "/help",
    "/q": "/exit",
    "/m": "/model",
    "/p": "/profile",
    "/ls": "/list",
    "/cat": "/read",
    "/run": "/shell",
}

DEFAULT_TEMPLATES: dict[str, str] = {
    "fix": "Fix the bug in the following code: {code}. Explain what the problem was.",
    "refactor": "Refactor this file: {file}. Improve readability and performance.",
    "explain": "Explain what this code does: {context}.",
}


class AgentConfig(BaseModel):
    """Agent loop configuration."""

    max_rounds: int = Field(default=12, ge=1)


class AutopilotConfig(BaseModel):
    """Autopilot continuation configuration."""

    enabled: bool = False
    steps: int = Field(default=5, ge=1)
    done_tag: str = "[DONE]"


class ConfirmationConfig(BaseModel):
    """Confirmation gate configuration."""

    auto_yes: bool = False
    policy: Literal["deny", "approve_on_timeout"] = "deny"
    timeout: float = 15.0


class ShellToolConfig(BaseModel):
    """Shell tool configuration."""

    timeout: int = 120
    max_output: int = 10 * 1024 * 1024


class HttpToolConfig(BaseModel):
    """HTTP request tool configuration."""

    timeout_ms: int = 15000
    max_chars: int = 20000


class ReadToolConfig(BaseModel):
    """Read tool configuration."""

    max_chars: int = 50000


class WebSearchToolConfig(BaseModel):
    """Web search tool configuration."""

    api_key: str = ""
    base_url: str = "https://api.search.brave.com/res/v1/web/search"
    max_results: int = 5
    timeout: int = 20


class ToolsConfig(BaseModel):
    """Tools configuration."""

    shell: ShellToolConfig = Field(default_factory=ShellToolConfig)
    http: HttpToolConfig = Field(default_factory=HttpToolConfig)
    read: ReadToolConfig = Field(default_factory=ReadToolConfig)
    web_search: WebSearchToolConfig = Field(default_factory=WebSearchToolConfig)


class SessionConfig(BaseModel):
    """Session configuration."""

    path: str = str(DEFAULT_SESSIONS_PATH)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for Meow CLI."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    profile: str = "default"
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    autopilot: AutopilotConfig = Field(default_factory=AutopilotConfig)
    confirmation: ConfirmationConfig = Field(default_factory=ConfirmationConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    aliases: dict[str, str] = Field(default_factory=dict)
    templates: dict[str, str] = Field(default_factory=dict)

    model_config = SettingsConfigDict(
        env_prefix="MEOW_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _merge_defaults(self) -> "Config":
        """Layer user profiles, aliases and templates over the built-in ones."""
        self.profiles = {**{k: v.model_copy() for k, v in DEFAULT_PROFILES.items()}, **self.profiles}
        self.aliases = {**DEFAULT_ALIASES, **self.aliases}
        self.templates = {**DEFAULT_TEMPLATES, **self.templates}
        if self.profile not in self.profiles:
            self.profile = "default"
        return self

    def active_profile(self) -> ProfileConfig:
        """Return the active profile, falling back to `default`."""
        return self.profiles.get(self.profile) or self.profiles["default"]

    def apply_env_fallbacks(self) -> None:
        """Fill unset values from the conventional OpenAI-style variables."""
        if not self.model.api_key:
            self.model.api_key = os.environ.get("OPENAI_API_KEY", "").strip()
        base_url = os.environ.get("OPENAI_BASE_URL", "").strip()
        if base_url and self.model.api_base == ModelConfig().api_base:
            self.model.api_base = base_url
        model_name = os.environ.get("OPENAI_MODEL", "").strip()
        if model_name and self.model.model == ModelConfig().model:
            self.model.model = model_name
        if os.environ.get("AI_AUTO_YES", "").strip() == "1":
            self.confirmation.auto_yes = True

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML, then apply legacy env fallbacks."""
        config = cls.from_yaml(path)
        config.apply_env_fallbacks()
        return config

    def save(self, path: Path | str | None = None) -> Path:
        """Save configuration to YAML file, the same one `load` reads by default."""
        config_path = Path(path).expanduser() if path else self.resolve_default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        return config_path
