"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (CONTEXTDEX__SECTION__KEY)
3. Repo config (.contextdex/config.yaml)
4. Global config (~/.config/contextdex/config.yaml)
5. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from contextdex.config.constants import CONFIG_FILE, DB_FILE, STATE_DIR
from contextdex.config.models import (
    ContextdexConfig,
    DatabaseConfig,
    ExtractorConfig,
    FallbackConfig,
    IndexConfig,
    LoggingConfig,
    SearchConfig,
    ServerConfig,
    WatcherConfig,
)
from contextdex.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/contextdex/config.yaml").expanduser()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level value must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class ContextdexSettings(BaseSettings):
        """Root config. Env vars: CONTEXTDEX__LOGGING__LEVEL, CONTEXTDEX__SEARCH__DEFAULT_K, etc."""

        model_config = SettingsConfigDict(
            env_prefix="CONTEXTDEX__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        server: ServerConfig = ServerConfig()
        index: IndexConfig = IndexConfig()
        extractor: ExtractorConfig = ExtractorConfig()
        watcher: WatcherConfig = WatcherConfig()
        search: SearchConfig = SearchConfig()
        fallback: FallbackConfig = FallbackConfig()
        database: DatabaseConfig = DatabaseConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return ContextdexSettings


def load_config(repo_root: Path | None = None, **kwargs: Any) -> ContextdexConfig:
    """Load config: defaults < global yaml < repo yaml < env vars < kwargs.

    Args:
        repo_root: Project root to load config from.
                   Defaults to current working directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    repo_root = repo_root or Path.cwd()

    yaml_config = _deep_merge(
        _load_yaml(GLOBAL_CONFIG_PATH),
        _load_yaml(repo_root / STATE_DIR / CONFIG_FILE),
    )

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return ContextdexConfig.model_validate(settings.model_dump())


def get_index_path(repo_root: Path, config: ContextdexConfig | None = None) -> Path:
    """Get db_path for a project, respecting config.index.index_path."""
    config = config or load_config(repo_root)
    if config.index.index_path:
        index_dir = Path(config.index.index_path).expanduser()
        if not index_dir.is_absolute():
            index_dir = repo_root / index_dir
    else:
        index_dir = repo_root / STATE_DIR
    return index_dir / DB_FILE
