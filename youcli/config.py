"""Configuration management for You CLI with multi-source loading."""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from pydantic import BaseModel, Field, validator


class LogLevel(str, Enum):
    """Available logging levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LLMProvider(str, Enum):
    """Available LLM providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


# Environment variables for the chat-completion endpoint. The first name of
# each pair wins when both are set.
LLM_ENVIRONMENT_VARIABLES = {
    "api_base": ("DONE_OPENAI_API_BASE", "YOU_OPENAI_API_BASE"),
    "api_key": ("DONE_OPENAI_API_KEY", "YOU_OPENAI_API_KEY"),
    "model": ("DONE_OPENAI_MODEL", "YOU_OPENAI_MODEL"),
}


def default_home_dir() -> Path:
    return Path.home() / ".you"


class PreferredCLI(BaseModel):
    """A tool the user prefers for a given kind of task."""

    name: str
    preferred_for: str


class YouConfig(BaseModel):
    """Main configuration class with validation and multi-source loading."""

    # LLM Configuration
    llm_provider: LLMProvider = Field(
        default=LLMProvider.OPENAI, description="Chat-completion API flavour"
    )
    api_base: Optional[str] = Field(default=None, description="LLM endpoint base URL")
    api_key: Optional[str] = Field(default=None, description="LLM API key")
    model: Optional[str] = Field(default=None, description="LLM model name")
    llm_timeout: float = Field(
        default=120, description="LLM request timeout in seconds (0 disables)"
    )
    max_llm_attempts: int = Field(
        default=5,
        description="Attempts to obtain a well-formed action per turn (0 is unbounded)",
    )

    # Execution Configuration
    command_timeout: float = Field(
        default=600, description="Command execution timeout in seconds (0 disables)"
    )

    # Cache Configuration
    enable_cache: bool = Field(
        default=False, description="Reuse saved scripts whose name matches the request"
    )
    home_dir: Optional[Path] = Field(default=None, description="You CLI home directory")
    cache_dir: Optional[Path] = Field(
        default=None, description="Saved script storage directory"
    )
    preferred_clis: List[PreferredCLI] = Field(
        default_factory=list, description="Tools the LLM should prefer"
    )

    # Output Configuration
    rich_output: bool = Field(default=True, description="Enable rich text formatting")
    show_debug: bool = Field(default=False, description="Show debug information")
    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Logging level")

    @validator("home_dir", pre=True, always=True)
    def set_default_home_dir(cls, v):
        """Set default home directory if not provided."""
        if v is None:
            return default_home_dir()
        return Path(v).expanduser() if isinstance(v, str) else v

    @validator("cache_dir", pre=True, always=True)
    def set_default_cache_dir(cls, v, values):
        """Keep the cache under the home directory unless told otherwise."""
        if v is None:
            home_dir = values.get("home_dir") or default_home_dir()
            return Path(home_dir) / "cache"
        return Path(v).expanduser() if isinstance(v, str) else v

    @validator("api_base", "api_key", "model", pre=True)
    def strip_llm_settings(cls, v):
        """Sanitize LLM settings, treating blank values as unset."""
        if v and isinstance(v, str):
            return v.strip() or None
        return v

    def get_preferred_clis(self) -> str:
        """Render the preferred tools as a sentence for the LLM."""
        return " ".join(
            f"The user prefers using {cli.name} for {cli.preferred_for}."
            for cli in self.preferred_clis
        )

    def missing_llm_settings(self) -> List[str]:
        """Names of the LLM settings that are still unset."""
        return [
            name
            for name in LLM_ENVIRONMENT_VARIABLES
            if not getattr(self, name)
        ]


def get_config_paths() -> List[Path]:
    """Get configuration file paths in priority order."""
    paths = [default_home_dir() / "config.toml"]

    # System config directory
    if os.name == "posix":  # Unix/Linux/macOS
        paths.append(Path("/etc/you/config.toml"))
    elif os.name == "nt":  # Windows
        paths.append(
            Path(os.environ.get("ProgramData", "C:/ProgramData")) / "you" / "config.toml"
        )

    return paths


def load_config_file(config_path: Path) -> Dict[str, Any]:
    """Load configuration from a TOML file."""
    try:
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                return toml.load(f)
    except (OSError, toml.TomlDecodeError):
        # Unreadable config files fall back to defaults
        pass
    return {}


def load_environment_variables() -> Dict[str, Any]:
    """Load configuration from YOUCLI_* environment variables."""
    config = {}
    prefix = "YOUCLI_"

    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix) :].lower()

            # Handle boolean values
            if value.lower() in ("true", "yes", "on"):
                config[config_key] = True
            elif value.lower() in ("false", "no", "off"):
                config[config_key] = False
            else:
                # Try to convert to int, fallback to string
                try:
                    config[config_key] = int(value)
                except ValueError:
                    config[config_key] = value

    return config


def load_llm_environment() -> Dict[str, str]:
    """Read the chat-completion endpoint settings from the environment."""
    config = {}
    for setting, names in LLM_ENVIRONMENT_VARIABLES.items():
        for name in names:
            value = os.environ.get(name)
            if value:
                config[setting] = value
                break
    return config


def load_configuration(
    config_file: Optional[str] = None,
    debug: bool = False,
    model_override: Optional[str] = None,
) -> YouConfig:
    """Load configuration from multiple sources with priority handling.

    Priority order (highest to lowest):
    1. Function parameters (debug, model_override)
    2. LLM environment variables (DONE_OPENAI_*, YOU_OPENAI_*)
    3. Environment variables (YOUCLI_*)
    4. Custom config file (config_file)
    5. User config file (~/.you/config.toml)
    6. System config file (/etc/you/config.toml)
    7. Default values
    """
    primary_config_path = default_home_dir() / "config.toml"

    merged_config: Dict[str, Any] = {}
    config_loaded_from_file = False

    config_paths = get_config_paths()
    if config_file:
        config_paths.insert(0, Path(config_file))

    for path in reversed(config_paths):  # Reverse to maintain priority
        file_config = load_config_file(path)
        if file_config:
            merged_config.update(file_config)
            config_loaded_from_file = True

    merged_config.update(load_environment_variables())
    merged_config.update(load_llm_environment())

    if debug:
        merged_config["show_debug"] = True
        merged_config["log_level"] = LogLevel.DEBUG

    if model_override:
        merged_config["model"] = model_override

    try:
        config = YouConfig(**merged_config)
    except ValueError as e:
        # Invalid configuration: fall back to defaults but keep the endpoint
        config = YouConfig(**load_llm_environment())
        if debug:
            print(f"Warning: Invalid configuration, using defaults. Error: {e}")

    if not config_loaded_from_file:
        save_config(config, primary_config_path)

    return config


def initialize_directories(config: YouConfig) -> None:
    """Create the home and cache directories on first run."""
    config.home_dir.mkdir(parents=True, exist_ok=True)
    config.cache_dir.mkdir(parents=True, exist_ok=True)


def save_config(config: YouConfig, config_path: Optional[Path] = None) -> bool:
    """Save configuration to file."""
    if config_path is None:
        config_path = config.home_dir / "config.toml"

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        # The endpoint settings are read from the environment on every run
        config_dict = config.model_dump(
            exclude_none=True, exclude=set(LLM_ENVIRONMENT_VARIABLES)
        )

        # Convert enums and paths for TOML serialization
        for key, value in config_dict.items():
            if isinstance(value, Enum):
                config_dict[key] = value.value
            elif isinstance(value, Path):
                config_dict[key] = str(value)

        with open(config_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)

        return True

    except (OSError, TypeError, ValueError):
        return False


class ConfigurationError(Exception):
    """Configuration-related errors."""

    pass


def validate_api_setup(config: YouConfig) -> None:
    """Validate that the LLM endpoint is configured before any call is made."""
    missing = config.missing_llm_settings()
    if missing:
        env_vars = ", ".join(LLM_ENVIRONMENT_VARIABLES[name][1] for name in missing)
        raise ConfigurationError(
            f"Missing LLM configuration: {', '.join(missing)}. "
            f"Set the {env_vars} environment variable(s)."
        )
