"""Configuration system for model, search and agent loop backends."""

from .loader import (
    load_config,
    load_config_from_env,
    load_config_from_yaml,
    list_profiles,
    ProfileConfig,
    ModelConfig,
    SearchConfig,
    AgentConfig,
)
from .factory import (
    create_model_provider,
    create_search_provider,
    create_tool_executor,
    create_orchestrator,
    MockChatProvider,
    MockSearchProvider,
)

__all__ = [
    # Loader
    "load_config",
    "load_config_from_env",
    "load_config_from_yaml",
    "list_profiles",
    "ProfileConfig",
    "ModelConfig",
    "SearchConfig",
    "AgentConfig",
    # Factory
    "create_model_provider",
    "create_search_provider",
    "create_tool_executor",
    "create_orchestrator",
    # Test doubles
    "MockChatProvider",
    "MockSearchProvider",
]
