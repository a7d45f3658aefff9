"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CONTEXTDEX__SECTION__KEY)
3. Repo YAML (.contextdex/config.yaml)
4. Global YAML (~/.config/contextdex/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    CONTEXTDEX__<SECTION>__<KEY>=<VALUE>

Examples:
    CONTEXTDEX__LOGGING__LEVEL=DEBUG
    CONTEXTDEX__SEARCH__MIN_INDEX_RESULTS=3
    CONTEXTDEX__WATCHER__DEBOUNCE_SEC=1.0
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CONTEXTDEX__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG is verbose and may impact performance.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ServerConfig(BaseModel):
    """HTTP daemon configuration.

    Env vars:
        CONTEXTDEX__SERVER__HOST: Bind address (default: 127.0.0.1)
        CONTEXTDEX__SERVER__PORT: Port number (default: 7655)
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address. Use 0.0.0.0 for network access (security risk).",
    )
    port: int = Field(default=7655, description="Server port.")
    shutdown_timeout_sec: float = Field(
        default=5.0,
        description="Graceful shutdown timeout for watcher and scheduler.",
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (0 <= v <= 65535):
            raise ValueError(f"Port must be 0-65535, got {v}")
        return v


class IndexConfig(BaseModel):
    """Index layout and file selection.

    Env vars:
        CONTEXTDEX__INDEX__INDEX_PATH: Override index storage location
    """

    index_path: str | None = Field(
        default=None,
        description="Override index directory. Default: .contextdex/ in the project root.",
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: [".ex", ".exs"],
        description="Files handed to the extractor command.",
    )
    template_extensions: list[str] = Field(
        default_factory=lambda: [".heex"],
        description="Files indexed in-process as template entities.",
    )
    excluded_dirs: list[str] = Field(
        default_factory=lambda: [
            "deps",
            "_build",
            "node_modules",
            ".git",
            ".elixir_ls",
            "cover",
            "doc",
            ".contextdex",
        ],
        description="Directory names never scanned or watched.",
    )
    primary_source_dirs: list[str] = Field(
        default_factory=lambda: ["lib"],
        description="Directories whose layout maps to container names.",
    )

    @field_validator("source_extensions", "template_extensions")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in v]

    @property
    def indexed_extensions(self) -> list[str]:
        return [*self.source_extensions, *self.template_extensions]


class ExtractorConfig(BaseModel):
    """External extractor command.

    Env vars:
        CONTEXTDEX__EXTRACTOR__TIMEOUT_SEC: Max extractor run time
    """

    command: list[str] = Field(
        default_factory=list,
        description="Argv emitting NDJSON entities on stdout, run from the project root. "
        "Empty disables source extraction (templates are still indexed).",
    )
    files_flag: str = Field(
        default="--files",
        description="Flag placed before the relative paths of an incremental batch.",
    )
    timeout_sec: float = Field(
        default=300.0,
        description="Extractor wall-clock limit. The process is killed on expiry.",
    )


class WatcherConfig(BaseModel):
    """File watcher and scheduler configuration.

    Env vars:
        CONTEXTDEX__WATCHER__DEBOUNCE_SEC: Change coalescing window
        CONTEXTDEX__WATCHER__POLL_INTERVAL_SEC: Poll interval on cross-filesystem mounts
    """

    debounce_sec: float = Field(
        default=0.5,
        description="Debounce window before an incremental merge. "
        "Lower values may cause excessive extractor runs during rapid edits.",
    )
    poll_interval_sec: float = Field(
        default=1.0,
        description="Polling interval for cross-filesystem mounts (WSL /mnt/*).",
    )


class SearchConfig(BaseModel):
    """Hybrid search configuration.

    Env vars:
        CONTEXTDEX__SEARCH__DEFAULT_K: Default result count
        CONTEXTDEX__SEARCH__MIN_INDEX_RESULTS: Index hits below this trigger the fallback
    """

    default_k: int = Field(default=10, ge=1, description="Default result count.")
    min_index_results: int = Field(
        default=2,
        ge=0,
        description="Index result count below which the fallback search runs. "
        "TRADEOFF: Higher values run ripgrep more often.",
    )
    use_fallback: bool = Field(default=True, description="Enable the fallback search.")


class FallbackConfig(BaseModel):
    """Fallback line-search (ripgrep) configuration.

    Env vars:
        CONTEXTDEX__FALLBACK__EXECUTABLE: ripgrep binary
        CONTEXTDEX__FALLBACK__MAX_COUNT_PER_FILE: Match cap per file
    """

    executable: str = Field(default="rg", description="ripgrep executable name or path.")
    max_count_per_file: int = Field(default=3, ge=1, description="Match cap per file.")
    smart_case: bool = Field(default=True, description="Pass --smart-case to ripgrep.")
    timeout_sec: float = Field(default=10.0, description="ripgrep wall-clock limit.")
    test_dirs: list[str] = Field(
        default_factory=lambda: ["test"],
        description="Directories whose matches are scored down.",
    )
    long_line_threshold: int = Field(
        default=200,
        description="Lines longer than this are scored down as likely generated.",
    )


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        CONTEXTDEX__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        CONTEXTDEX__DATABASE__MAX_RETRIES: Max retry attempts for locked DB
    """

    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks.",
    )
    max_retries: int = Field(default=3, description="Max retry attempts for locked database errors.")
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )


class ContextdexConfig(BaseModel):
    """Root configuration for contextdex."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
