"""
config.py

Purpose:
    Provide the mapper settings (MapperConfig.from_env) and a single function
    get_supabase_client() that creates a Supabase Python client using
    environment variables.

Usage:
    from meal_image_mapper.config import MapperConfig, get_supabase_client
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

# Supabase client setup where env vars are used for configuration. Connection details are not hardcoded.
from supabase import Client, create_client

from dotenv import load_dotenv      # Load environment variables from .env file

from meal_image_mapper.logging_utils import get_logger

load_dotenv()  # loads .env

logger = get_logger(__name__)


class StoreInitializationError(RuntimeError):
    """Raised when the Supabase client cannot be created."""


class CatalogMode(str, Enum):
    """Where the image catalog is read from. There is no fallback between modes."""

    REMOTE = "remote"   # Supabase Storage bucket only
    LOCAL = "local"     # files on disk only


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid float for %s=%r; using default %s",
            name,
            raw,
            default,
            extra={
                "invoking_func": "MapperConfig.from_env",
                "invoking_purpose": "Read mapper settings from environment",
                "next_step": "Continue with default value",
                "resolution": f"Set {name} to a number",
            },
        )
        return default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            "Invalid integer for %s=%r; using default %s",
            name,
            raw,
            default,
            extra={
                "invoking_func": "MapperConfig.from_env",
                "invoking_purpose": "Read mapper settings from environment",
                "next_step": "Continue with default value",
                "resolution": f"Set {name} to an integer",
            },
        )
        return default


@dataclass(frozen=True)
class MapperConfig:
    # Similarity thresholds
    cosine_threshold: float = 0.2
    text_threshold: float = 0.2

    # Processing limits
    max_meals_per_batch: int = 50
    max_execution_seconds: float = 240.0    # 4 minutes of a 5 minute host timeout
    timeout_buffer_seconds: float = 30.0

    # Catalog location
    catalog_mode: CatalogMode = CatalogMode.REMOTE
    catalog_bucket: Optional[str] = None
    embeddings_key: str = "data/image-embeddings.json"
    cuisines_key: str = "data/cuisines.json"
    local_data_dir: str = "data"

    # Supabase tables
    meals_table: str = "meal_plans"
    mappings_table: str = "meal_image_mappings"
    failed_mappings_table: str = "failed_image_mappings"

    # Embeddings
    embedding_provider: str = "openai"
    openai_embedding_model: str = "text-embedding-3-small"

    def __post_init__(self) -> None:
        if self.max_meals_per_batch <= 0:
            raise ValueError(f"max_meals_per_batch must be positive, got {self.max_meals_per_batch}")
        if self.timeout_buffer_seconds < 0:
            raise ValueError("timeout_buffer_seconds must not be negative")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "MapperConfig":
        """Build a config from environment variables (or any mapping, for tests)."""
        env = os.environ if env is None else env

        local_flag = (env.get("LOCAL_MODE") or "").strip().lower() in {"true", "1"}
        mode_raw = (env.get("CATALOG_MODE") or "").strip().lower()
        if local_flag:
            catalog_mode = CatalogMode.LOCAL
        elif mode_raw:
            try:
                catalog_mode = CatalogMode(mode_raw)
            except ValueError as exc:
                raise ValueError(
                    f"Unknown CATALOG_MODE={mode_raw!r}; expected 'remote' or 'local'"
                ) from exc
        else:
            catalog_mode = CatalogMode.REMOTE

        return cls(
            cosine_threshold=_env_float(env, "COSINE_SIMILARITY_THRESHOLD", 0.2),
            text_threshold=_env_float(env, "TEXT_SIMILARITY_THRESHOLD", 0.2),
            max_meals_per_batch=_env_int(env, "MAX_MEALS_PER_BATCH", 50),
            max_execution_seconds=_env_float(env, "MAX_EXECUTION_TIME_SECONDS", 240.0),
            timeout_buffer_seconds=_env_float(env, "TIMEOUT_BUFFER_SECONDS", 30.0),
            catalog_mode=catalog_mode,
            catalog_bucket=env.get("CATALOG_BUCKET") or None,
            embeddings_key=env.get("CATALOG_EMBEDDINGS_KEY") or "data/image-embeddings.json",
            cuisines_key=env.get("CATALOG_CUISINES_KEY") or "data/cuisines.json",
            local_data_dir=env.get("CATALOG_LOCAL_DIR") or "data",
            meals_table=env.get("MEALS_TABLE") or "meal_plans",
            mappings_table=env.get("MAPPINGS_TABLE") or "meal_image_mappings",
            failed_mappings_table=env.get("FAILED_MAPPINGS_TABLE") or "failed_image_mappings",
            embedding_provider=(env.get("EMBEDDING_PROVIDER") or "openai").strip().lower(),
            openai_embedding_model=env.get("OPENAI_EMBEDDING_MODEL") or "text-embedding-3-small",
        )

    def summary(self) -> dict:
        """Loggable view of the settings (no secrets live here)."""
        return {
            "catalogMode": self.catalog_mode.value,
            "cosineThreshold": self.cosine_threshold,
            "textThreshold": self.text_threshold,
            "maxBatchSize": self.max_meals_per_batch,
            "maxExecutionSeconds": self.max_execution_seconds,
            "timeoutBufferSeconds": self.timeout_buffer_seconds,
            "catalogBucket": self.catalog_bucket or "Not configured",
            "embeddingProvider": self.embedding_provider,
        }


# Function to create and return a Supabase client. This is like building a database connection.
def get_supabase_client() -> Client:
    """Create a Supabase client using env vars."""
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")  # service role: the mapper writes mapping rows
    if not url or not key:
        raise StoreInitializationError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set to reach the meal store"
        )
    try:
        return create_client(url, key)
    except Exception as exc:  # noqa: BLE001
        raise StoreInitializationError(f"Failed to create Supabase client: {exc}") from exc
