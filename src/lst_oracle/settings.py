"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    APY_CONFIDENCE_BOUND,
    DEFAULT_STATE_PATH,
    MAX_ASSETS,
    MAX_ASSETS_HARD_LIMIT,
    MAX_FEED_DATA_AGE,
    PRICE_CHANGE_LIMIT,
    PRICE_CONFIDENCE_BOUND,
    SWITCHBOARD_PROGRAM_ID,
)
from .domain import AssetKind, RegistryStrategy

load_dotenv()


class OracleSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with LST_ORACLE_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- storage ---
    state_path: Path = Path(DEFAULT_STATE_PATH)

    # --- registry ---
    registry_strategy: RegistryStrategy = RegistryStrategy.STATIC
    max_assets: int = Field(default=MAX_ASSETS, ge=1, le=MAX_ASSETS_HARD_LIMIT)

    # --- feed validation ---
    feed_authority: str = SWITCHBOARD_PROGRAM_ID
    max_data_age: int = Field(
        default=MAX_FEED_DATA_AGE,
        gt=0,
        description="Maximum age of a feed reading in seconds.",
    )
    price_confidence_bound: float = Field(
        default=PRICE_CONFIDENCE_BOUND,
        ge=0,
        description="Maximum absolute confidence band for price feeds.",
    )
    apy_confidence_bound: float = Field(
        default=APY_CONFIDENCE_BOUND,
        ge=0,
        description="Maximum confidence band for APY feeds, relative to the APY.",
    )

    # --- ledger ---
    price_change_limit: float = Field(
        default=PRICE_CHANGE_LIMIT,
        gt=0,
        lt=1.0,
        description="Maximum relative price change accepted in one update.",
    )

    # --- feed source ---
    feed_timeout: float = Field(default=10.0, gt=0)
    feed_max_tries: int = Field(default=5, ge=1)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LST_ORACLE_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @model_validator(mode="after")
    def validate_static_capacity(self) -> "OracleSettings":
        """A static registry needs one slot per asset kind."""
        if (
            self.registry_strategy is RegistryStrategy.STATIC
            and self.max_assets < len(AssetKind)
        ):
            raise ValueError(
                f"max_assets ({self.max_assets}) must be at least {len(AssetKind)} "
                "with the static registry"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("LST_ORACLE_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    # Try default locations
                    local_config = Path("lst-oracle.toml")
                    user_config = Path.home() / ".config" / "lst-oracle" / "config.toml"
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [lst_oracle]
                body = data.get("lst_oracle", data)
                if not isinstance(body, dict):
                    return {}
                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-serialisable dict."""
        return self.model_dump(mode="json")
