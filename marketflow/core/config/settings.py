"""配置管理模块 - 处理marketflow的配置"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from marketflow.core.exceptions import ConfigurationError
from marketflow.core.logging import get_logger

DEFAULT_CONFIG_PATH = Path.home() / ".marketflow" / "config.toml"
API_KEY_VARIABLE = "MARKETFLOW_API_KEY"

_GENERIC_KEY_PATTERN = re.compile(r"marketflow[_-]api[_-]key", re.IGNORECASE)
_SOURCE_KEY_VARIABLES: dict[str, tuple[str, re.Pattern[str]]] = {
    "coinapi": ("COINAPI_KEY", re.compile(r"coinapi[_-]key", re.IGNORECASE)),
}

logger = get_logger("marketflow.config")


@dataclass
class AggregationConfig:
    """下载与合并配置"""

    default_dataset_path: str = "./MarketFlowDataset.dat"
    timeout_seconds: float = 60.0
    default_entry_limit: int = 100
    max_page_size: int = 10_000
    ingest_batch_size: int = 50_000


@dataclass
class SourceConfig:
    """数据源配置"""

    name: str = "coinapi"
    base_url: str | None = None
    sandbox: bool = False
    timeout: float = 30.0


@dataclass
class LoggingConfig:
    """日志配置"""

    level: str = "WARNING"
    file: str | None = None
    json: bool = False


@dataclass
class MarketFlowConfig:
    """marketflow主配置"""

    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, Any]) -> MarketFlowConfig:
        """从字典创建配置"""

        try:
            return cls(
                aggregation=AggregationConfig(**config_dict.get("aggregation", {})),
                source=SourceConfig(**config_dict.get("source", {})),
                logging=LoggingConfig(**config_dict.get("logging", {})),
            )
        except TypeError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "aggregation": asdict(self.aggregation),
            "source": asdict(self.source),
            "logging": asdict(self.logging),
        }


class ConfigManager:
    """配置管理器"""

    def __init__(self, config_path: Path | None = None, *, environ: Mapping[str, str] | None = None):
        """初始化配置管理器

        Args:
            config_path: 配置文件路径，如果为None则使用默认路径
            environ: 覆盖配置的环境变量，默认为 ``os.environ``
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._environ = os.environ if environ is None else environ
        self.config = self._load_config()

    def _load_config(self) -> MarketFlowConfig:
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as exc:
                logger.warning(f"Failed to load config from {self.config_path}: {exc}")
                config_dict = {}

        _deep_update(config_dict, load_config_from_env(self._environ))
        return MarketFlowConfig.from_dict(config_dict)

    def get_config(self) -> MarketFlowConfig:
        return self.config

    def update_config(self, **updates: Any) -> None:
        """更新配置"""
        config_dict = self.config.to_dict()
        _deep_update(config_dict, updates)
        self.config = MarketFlowConfig.from_dict(config_dict)


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, Mapping):
            target[key] = _deep_update(dict(target.get(key, {})), value)
        else:
            target[key] = value
    return target


def get_default_config() -> MarketFlowConfig:
    return MarketFlowConfig()


def load_config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """从环境变量加载配置

    Variables are named ``MARKETFLOW_<SECTION>_<FIELD>``, for example
    ``MARKETFLOW_AGGREGATION_TIMEOUT_SECONDS``.
    """

    env = os.environ if environ is None else environ
    config: dict[str, Any] = {}
    sections = {"aggregation": AggregationConfig, "source": SourceConfig, "logging": LoggingConfig}
    for section, section_type in sections.items():
        values: dict[str, Any] = {}
        for item in fields(section_type):
            raw = env.get(f"MARKETFLOW_{section.upper()}_{item.name.upper()}")
            if raw is not None:
                values[item.name] = _coerce(raw, item.default, f"{section}.{item.name}")
        if values:
            config[section] = values
    return config


def _coerce(raw: str, default: Any, name: str) -> Any:
    try:
        if isinstance(default, bool):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Environment value for {name} is not valid: {raw!r}", details={"setting": name}
        ) from exc
    return raw


def resolve_api_key(source: str = "coinapi", environ: Mapping[str, str] | None = None) -> str:
    """Find the API key for ``source`` in the environment.

    ``MARKETFLOW_API_KEY`` wins, then any variable named like
    ``marketflow_api_key`` in another case, then the source's own variable
    (``COINAPI_KEY`` or a case variant of ``coinapi_key``).

    Raises:
        ConfigurationError: no key was found.
    """

    env = os.environ if environ is None else environ
    if env.get(API_KEY_VARIABLE):
        return env[API_KEY_VARIABLE]

    found = _match_variable(env, _GENERIC_KEY_PATTERN)
    if found:
        return found

    specific = _SOURCE_KEY_VARIABLES.get(source.lower())
    if specific is not None:
        variable, pattern = specific
        found = env.get(variable) or _match_variable(env, pattern)
        if found:
            return found

    raise ConfigurationError(
        f"No API key was specified for {source}, and none could be found in the environment. "
        f"Pass --api-key or set {API_KEY_VARIABLE}.",
        details={"source": source},
    )


def _match_variable(env: Mapping[str, str], pattern: re.Pattern[str]) -> str | None:
    for name, value in env.items():
        if pattern.fullmatch(name) and value:
            return value
    return None


__all__ = [
    "API_KEY_VARIABLE",
    "AggregationConfig",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LoggingConfig",
    "MarketFlowConfig",
    "SourceConfig",
    "get_default_config",
    "load_config_from_env",
    "resolve_api_key",
]
