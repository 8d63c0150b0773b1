"""Configuration management module."""

from marketflow.core.config.settings import (
    API_KEY_VARIABLE,
    AggregationConfig,
    ConfigManager,
    LoggingConfig,
    MarketFlowConfig,
    SourceConfig,
    get_default_config,
    load_config_from_env,
    resolve_api_key,
)

__all__ = [
    "API_KEY_VARIABLE",
    "AggregationConfig",
    "ConfigManager",
    "LoggingConfig",
    "MarketFlowConfig",
    "SourceConfig",
    "get_default_config",
    "load_config_from_env",
    "resolve_api_key",
]
