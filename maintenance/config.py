"""Configuration with JSON file, secrets.yml, and env variable support.

`MaintenanceConfig` holds the deployment-level settings (index names, table
names, batch sizing). `RunConfig` is the explicit, immutable configuration for a
single run; the CLI builds one at the boundary and hands it to the services.
"""

import json
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from maintenance.enums import ConfirmationMode, StoreKind
from maintenance.errors import ConfigurationError

DEFAULT_PROBE_QUERIES = [
    "training fitness workout goals progress",
    "conversation coach advice guidance",
    "program design structure phases",
    "memory experience reflection learning",
    "methodology technique strategy approach",
]


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Root detection is heuristic but stable:
    - first directory containing `pyproject.toml`
    - otherwise fall back to the current working directory
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except OSError:
        pass

    return Path.cwd()


def _flatten_secrets_mapping(secrets: dict) -> dict:
    """Flatten secrets mapping into MaintenanceConfig-compatible keys.

    Converts nested YAML structure to flat config keys:
        pinecone.api_key -> pinecone_api_key
        dynamodb.table_name -> dynamodb_table_name
    """
    flat = {}
    for section, values in secrets.items():
        if isinstance(values, dict):
            for key, value in values.items():
                flat[f"{section}_{key}"] = value
        else:
            flat[section] = values
    return flat


def _load_secrets(secrets_path: Path) -> dict:
    """Load and flatten secrets from YAML file."""
    if not secrets_path.exists():
        return {}

    with open(secrets_path) as f:
        secrets = yaml.safe_load(f) or {}

    if not isinstance(secrets, dict):
        return {}

    return _flatten_secrets_mapping(secrets)


class MaintenanceConfig(BaseSettings):
    """Configuration with JSON file + secrets.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. config.yml - optional repo-root overlay for non-secret settings
    3. secrets.yml - sensitive values (API keys)
    4. Environment variables - runtime overrides

    Prefix: MAINT_ (e.g., MAINT_PINECONE_INDEX_NAME). PINECONE_API_KEY and
    DYNAMODB_TABLE_NAME are also honoured without the prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Vector store
    pinecone_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "pinecone_api_key", "MAINT_PINECONE_API_KEY", "PINECONE_API_KEY"
        ),
    )
    pinecone_index_name: str = Field(default="coach-creator-proto-v1-dev")
    pinecone_supports_listing: bool = Field(
        default=True,
        description="False for indexes without list(); enumeration then falls back to probe queries",
    )
    pinecone_page_size: int = Field(default=100, gt=0)
    pinecone_page_delay_ms: int = Field(default=100, ge=0)
    pinecone_batch_size: int = Field(default=100, gt=0, le=1000)
    pinecone_inter_batch_delay_ms: int = Field(default=1000, ge=0)
    probe_queries: list[str] = Field(default_factory=lambda: list(DEFAULT_PROBE_QUERIES))
    probe_top_k: int = Field(default=1000, gt=0)
    duplicate_record_type: str = Field(default="user_memory")
    namespace_cleanup_prefix: str = Field(default="user_test_")
    namespace_purge_delay_ms: int = Field(default=200, ge=0)

    # Key-value table
    aws_region: str = Field(default="us-west-2")
    aws_profile: str | None = Field(default=None)
    dynamodb_table_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "dynamodb_table_name", "MAINT_DYNAMODB_TABLE_NAME", "DYNAMODB_TABLE_NAME"
        ),
    )
    dynamodb_partition_template: str = Field(default="user#{scope}")
    dynamodb_batch_size: int = Field(default=25, gt=0)
    dynamodb_inter_batch_delay_ms: int = Field(default=50, ge=0)
    default_exclude_types: list[str] = Field(default_factory=lambda: ["user", "subscription"])

    # Failure log file
    error_log_file_enabled: bool = Field(default=False)
    error_log_file_path: str = Field(default="./logs/maintenance-errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760)
    error_log_backup_count: int = Field(default=5)

    @classmethod
    def from_json_file(
        cls,
        config_path: str = "config.json",
        secrets_path: str = "secrets.yml",
    ) -> "MaintenanceConfig":
        """Load config from JSON + secrets.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.
            secrets_path: Path to secrets YAML file.

        Returns:
            Configured MaintenanceConfig instance.
        """
        config_data = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path) as f:
                config_data = json.load(f)

        # Precedence: config.json < config.yml < secrets.yml < env
        repo_root = _find_repo_root(start=Path(__file__))
        cfg_yml = repo_root / "config.yml"
        if cfg_yml.is_file():
            with cfg_yml.open("r", encoding="utf-8") as f:
                yml_data = yaml.safe_load(f) or {}
            if isinstance(yml_data, dict):
                config_data.update(yml_data)

        config_data.update(_load_secrets(Path(secrets_path)))

        # Drop file values that an env var is about to override.
        env_prefix = "MAINT_"
        unprefixed = {"pinecone_api_key": "PINECONE_API_KEY", "dynamodb_table_name": "DYNAMODB_TABLE_NAME"}
        for key in list(config_data):
            env_keys = {f"{env_prefix}{key.upper()}", unprefixed.get(key, "")}
            if any(k and k in os.environ for k in env_keys):
                del config_data[key]

        return cls(**config_data)

    def batch_size_for(self, store: StoreKind) -> int:
        if store == StoreKind.PINECONE:
            return self.pinecone_batch_size
        return self.dynamodb_batch_size

    def inter_batch_delay_for(self, store: StoreKind) -> int:
        if store == StoreKind.PINECONE:
            return self.pinecone_inter_batch_delay_ms
        return self.dynamodb_inter_batch_delay_ms

    def require_store_settings(self, store: StoreKind) -> None:
        """Fail fast when the settings a store needs are missing.

        Raises:
            ConfigurationError: If the API key or table name is not configured.
        """
        if store == StoreKind.PINECONE and not self.pinecone_api_key:
            raise ConfigurationError(
                "PINECONE_API_KEY is not set (env var, secrets.yml pinecone.api_key, or config.json)"
            )
        if store == StoreKind.DYNAMODB and not self.dynamodb_table_name:
            raise ConfigurationError(
                "Table name is required: use --table=NAME or set DYNAMODB_TABLE_NAME"
            )


class RunConfig(BaseModel):
    """Immutable settings for one maintenance run.

    Built once at the CLI boundary from arguments and `MaintenanceConfig`.
    """

    model_config = ConfigDict(frozen=True)

    store: StoreKind
    scope: str
    mode: ConfirmationMode = ConfirmationMode.INTERACTIVE
    include_types: tuple[str, ...] = ()
    exclude_types: tuple[str, ...] = ()
    batch_size: int = Field(default=100, gt=0)
    inter_batch_delay_ms: int = Field(default=0, ge=0)
    weeks: int | None = Field(default=None, ge=1)
    target_scopes: tuple[str, ...] = ()
    verbose: bool = False
    strict: bool = False
    report_file: Path | None = None

    @property
    def dry_run(self) -> bool:
        return self.mode == ConfirmationMode.DRY_RUN

    def window_start(self, now: datetime | None = None) -> datetime | None:
        """Start of the look-back window, or None when no window applies."""
        if self.weeks is None:
            return None
        now = now or datetime.now(UTC)
        return now - timedelta(weeks=self.weeks)

    @classmethod
    def build(
        cls,
        config: MaintenanceConfig,
        *,
        store: StoreKind,
        scope: str,
        mode: ConfirmationMode,
        **overrides,
    ) -> "RunConfig":
        """Create a RunConfig, filling batch sizing from the store defaults.

        Raises:
            ConfigurationError: If the scope is empty, store settings are missing,
                or an override is out of range.
        """
        scope = (scope or "").strip()
        if not scope:
            raise ConfigurationError("A scope (namespace or user id) is required")
        config.require_store_settings(store)

        values = {
            "batch_size": config.batch_size_for(store),
            "inter_batch_delay_ms": config.inter_batch_delay_for(store),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(store=store, scope=scope, mode=mode, **values)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid run settings: {problems}") from e
