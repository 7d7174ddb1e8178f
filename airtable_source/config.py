import os
import logging
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings


logger = logging.getLogger(__name__)

API_KEY_ENV = "AIRTABLE_API_KEY"
DEFAULT_VIEW = "Grid view"

FieldNamesMode = Literal["first_record", "union"]
IdPolicy = Literal["record", "positional", "sequence"]


class PluginConfigError(Exception):
    """Raised when plugin options are missing or invalid (before any network access)."""


def _env_or_dotenv(key: str, dotenv_path: str = ".env") -> Optional[str]:
    """Get a value from env var (if non-empty) or from .env file.

    An env var set to an empty string would otherwise shadow the .env value,
    so empty values fall through to the file.
    """
    val = os.environ.get(key)
    if val:  # non-empty env var wins
        return val
    try:
        from dotenv import dotenv_values
        vals = dotenv_values(dotenv_path)
        return vals.get(key) or None
    except ImportError:
        return None


class Settings(BaseSettings):
    # Airtable REST API
    airtable_api_key: Optional[str] = None
    airtable_api_url: str = "https://api.airtable.com"
    airtable_page_size: int = 100
    request_timeout: float = 30.0

    # Fetch policy (1 attempt = no retries)
    fetch_max_attempts: int = 1
    fetch_retry_backoff: float = 1.0

    # Watch mode
    watch_poll_interval: float = 30.0

    # Plugin context cache file (unset = in-memory only)
    cache_path: Optional[str] = None

    # App
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("airtable_page_size")
    @classmethod
    def _check_page_size(cls, v: int) -> int:
        # Airtable caps pageSize at 100
        if not 1 <= v <= 100:
            raise ValueError("AIRTABLE_PAGE_SIZE must be between 1 and 100")
        return v

    @field_validator("fetch_max_attempts")
    @classmethod
    def _check_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("FETCH_MAX_ATTEMPTS must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return "INFO"
        return level


settings = Settings()


# ---------------------------------------------------------------------------
# Per-plugin options (host configuration file + env + runtime flags)
# ---------------------------------------------------------------------------


# Where each plugin option may come from; read by resolve_options and by hosts
OPTIONS: dict[str, dict[str, Any]] = {
    "apiKey": {"env": API_KEY_ENV, "private": True, "required": True},
    "baseId": {"required": True},
    "tables": {"required": True},
    "watch": {"default": False, "runtimeParameter": "watch"},
    "view": {"default": DEFAULT_VIEW},
    "reuseCache": {"default": False},
    "fieldNames": {"default": "first_record"},
    "idPolicy": {"default": "record"},
    "pollInterval": {},
}


class PluginOptions(BaseModel):
    """Resolved options for one plugin instance.

    Field aliases match the camelCase keys used in the host configuration file.
    ``tables`` is either an ordered list of table names or a mapping of table
    name to the field names to request.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    api_key: str = Field(alias="apiKey", repr=False)
    base_id: str = Field(alias="baseId")
    tables: Union[list[str], dict[str, list[str]]]
    watch: bool = OPTIONS["watch"]["default"]
    view: str = OPTIONS["view"]["default"]
    reuse_cache: bool = Field(OPTIONS["reuseCache"]["default"], alias="reuseCache")
    field_names_mode: FieldNamesMode = Field(OPTIONS["fieldNames"]["default"], alias="fieldNames")
    id_policy: IdPolicy = Field(OPTIONS["idPolicy"]["default"], alias="idPolicy")
    poll_interval: float = Field(
        default_factory=lambda: settings.watch_poll_interval, alias="pollInterval"
    )

    @field_validator("base_id")
    @classmethod
    def _require_base_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("baseId is required")
        return v.strip()

    @field_validator("tables")
    @classmethod
    def _require_tables(cls, v):
        if not v:
            raise ValueError("tables must name at least one table")
        names = list(v)
        if any(not isinstance(n, str) or not n.strip() for n in names):
            raise ValueError("table names must be non-empty strings")
        if len(set(names)) != len(names):
            raise ValueError("table names must be unique")
        return v

    @field_validator("poll_interval")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("pollInterval must be positive")
        return v

    @property
    def table_names(self) -> list[str]:
        """Table names in configuration order."""
        return list(self.tables)

    def table_fields(self, table: str) -> Optional[list[str]]:
        """Fields requested for ``table``, or None to request every field."""
        if isinstance(self.tables, dict):
            return list(self.tables.get(table) or []) or None
        return None


def resolve_options(
    raw: dict[str, Any],
    runtime_params: Optional[dict[str, Any]] = None,
) -> PluginOptions:
    """Build validated plugin options from configuration, env and runtime flags.

    Each ``OPTIONS`` entry decides where its value may come from:
      - ``runtimeParameter``: a runtime flag of that name wins over the config
      - ``env``: fallback env var (also read from .env and ``settings``)
      - ``default``: used when neither supplies a value
      - ``required``: a missing value is a configuration error

    Raises:
        PluginConfigError: If a required option is missing or invalid.
    """
    values = dict(raw)
    runtime_params = runtime_params or {}

    for key, schema in OPTIONS.items():
        param = schema.get("runtimeParameter")
        if param and runtime_params.get(param) is not None:
            values[key] = runtime_params[param]

        env = schema.get("env")
        if env and not values.get(key):
            fallback = _env_or_dotenv(env) or getattr(settings, env.lower(), None)
            if fallback:
                values[key] = fallback

        if values.get(key) is None and "default" in schema:
            values[key] = schema["default"]

        if schema.get("required") and values.get(key) in (None, ""):
            hint = f" in the plugin options or {env}" if env else " in the plugin options"
            raise PluginConfigError(f"Missing required option '{key}'. Set it{hint}.")

    try:
        return PluginOptions.model_validate(values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'options'}: {err['msg']}"
            for err in exc.errors()
        )
        raise PluginConfigError(f"Invalid plugin options: {problems}") from exc
