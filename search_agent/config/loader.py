"""Configuration loader with Pydantic validation and env var expansion."""

import logging
import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel

from ..settings import (
    EXTRACT_TIMEOUT_SECONDS,
    GROQ_API_KEY,
    GROQ_DEFAULT_MODEL,
    HEARTBEAT_INTERVAL_SECONDS,
    MODEL_TIMEOUT_SECONDS,
    SEARCH_TIMEOUT_SECONDS,
    TAVILY_API_KEY,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "profiles.yaml"


class ModelConfig(BaseModel):
    """Configuration for the chat completion backend."""

    backend: Literal["groq", "openrouter", "mock"] = "groq"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    timeout: float = MODEL_TIMEOUT_SECONDS


class SearchConfig(BaseModel):
    """Configuration for the web search / extraction backend."""

    backend: Literal["tavily", "mock"] = "tavily"
    api_key: str | None = None
    base_url: str | None = None
    search_timeout: float = SEARCH_TIMEOUT_SECONDS
    extract_timeout: float = EXTRACT_TIMEOUT_SECONDS
    max_results: int = 5
    deep_max_results: int = 8
    extract_max_chars: int = 8000


class AgentConfig(BaseModel):
    """Configuration for the agent loop.

    Deep research runs get a larger iteration budget and must make at least
    ``deep_min_tool_calls`` tool calls before they may stop.
    """

    max_iterations: int = 5
    deep_max_iterations: int = 10
    min_tool_calls: int = 0
    deep_min_tool_calls: int = 4
    forced_tool: str = "web_search"
    temperature: float = 0.7
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS


class ProfileConfig(BaseModel):
    """Configuration profile containing all backend configs."""

    model: ModelConfig = ModelConfig()
    search: SearchConfig = SearchConfig()
    agent: AgentConfig = AgentConfig()


class ConfigFile(BaseModel):
    """Root configuration file structure."""

    profiles: dict[str, ProfileConfig]


def expand_env_vars(value: str) -> str:
    """Expand ${VAR} references in string with environment variables.

    Unset variables are left as-is.
    """
    if not isinstance(value, str):
        return value

    pattern = r"\$\{([^}]+)\}"

    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return re.sub(pattern, replacer, value)


def _drop_unresolved(value):
    # "${GROQ_API_KEY}" with the variable unset means "not configured"
    if isinstance(value, str) and re.fullmatch(r"\$\{[^}]+\}", value):
        return None
    return value


def expand_env_vars_recursive(data):
    """Recursively expand env vars in nested dict/list structures."""
    if isinstance(data, dict):
        return {k: expand_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return _drop_unresolved(expand_env_vars(data))
    else:
        return data


def list_profiles(config_path: Path | None = None) -> list[str]:
    """Names of the profiles defined in the YAML file."""
    with open(config_path or DEFAULT_CONFIG_PATH) as f:
        raw_data = yaml.safe_load(f) or {}
    return list((raw_data.get("profiles") or {}).keys())


def load_config_from_yaml(config_path: Path, profile_name: str) -> ProfileConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config YAML file
        profile_name: Name of profile to load

    Returns:
        ProfileConfig for the requested profile

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config is invalid
        KeyError: If profile doesn't exist
    """
    with open(config_path) as f:
        raw_data = yaml.safe_load(f)

    expanded_data = expand_env_vars_recursive(raw_data or {})
    config_file = ConfigFile(**expanded_data)

    if profile_name not in config_file.profiles:
        available = ", ".join(config_file.profiles.keys())
        raise KeyError(
            f"Profile '{profile_name}' not found. " f"Available profiles: {available}"
        )

    return config_file.profiles[profile_name]


def load_config_from_env() -> ProfileConfig:
    """Load configuration from environment variables (fallback mode).

    Returns:
        ProfileConfig with Groq + Tavily backends and default agent settings
    """
    model = ModelConfig(
        backend="groq",
        model=GROQ_DEFAULT_MODEL,
        api_key=GROQ_API_KEY,
    )
    search = SearchConfig(
        backend="tavily",
        api_key=TAVILY_API_KEY,
    )

    return ProfileConfig(model=model, search=search, agent=AgentConfig())


def load_config(
    profile: str | None = None,
    config_path: Path | None = None,
) -> ProfileConfig:
    """Load configuration from YAML file or environment variables.

    Args:
        profile: Profile name to load. If None, uses AGENT_PROFILE env var
                or "dev" as default.
        config_path: Path to config file. If None, uses the profiles.yaml
                    shipped with the package.

    Returns:
        ProfileConfig with all backend configurations

    Raises:
        KeyError: If requested profile doesn't exist in a valid file
    """
    if profile is None:
        profile = os.environ.get("AGENT_PROFILE", "dev")

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using environment variables")
        return load_config_from_env()

    try:
        return load_config_from_yaml(config_path, profile)
    except KeyError:
        raise
    except Exception as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Falling back to environment variables...")
        return load_config_from_env()
