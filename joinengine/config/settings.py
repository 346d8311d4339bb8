"""
Configuration management for the join inference engine.
Loads settings from environment variables and the project .env file.
"""

import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from loguru import logger

# This file is at joinengine/config/settings.py, so project root is 3 levels up
_project_root = Path(__file__).resolve().parent.parent.parent

PROJECT_ROOT = _project_root

_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file, override=True)
    logger.debug(f"Loaded .env from: {_env_file}")
else:
    load_dotenv(override=False)


@dataclass
class DatabaseConfig:
    """Target PostgreSQL database configuration"""
    host: str = field(default_factory=lambda: os.getenv("DB_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("DB_PORT", "5432")))
    user: str = field(default_factory=lambda: os.getenv("DB_USER", "postgres"))
    password: str = field(default_factory=lambda: os.getenv("DB_PWD", ""))
    database: str = field(default_factory=lambda: os.getenv("DB_NAME", "dataresearch"))
    url: Optional[str] = field(default_factory=lambda: os.getenv("DATABASE_URL") or None)

    def get_connection_string(self) -> str:
        """Build connection string for SQLAlchemy (DATABASE_URL wins when set)"""
        if self.url:
            return self.url
        return (
            f"postgresql+psycopg2://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Metadata side table written by ingestion (physical -> logical names)
    metadata_table: str = Field(default="dra_table_metadata")
    default_schema: str = Field(default="public")

    # Inference limits
    max_tables: int = Field(default=100)  # Max tables analysed per data source
    io_timeout_seconds: float = Field(default=30.0)  # Metadata / introspection I/O timeout

    # Confidence scoring weights (heuristic defaults, tune against real schemas)
    score_partial_match: float = Field(default=0.50)
    score_exact_match: float = Field(default=0.80)
    score_shared_column: float = Field(default=0.60)  # Same identifier column in two tables
    score_variant_match: float = Field(default=0.70)  # Singular/plural variant of the target name
    score_type_match_bonus: float = Field(default=0.10)
    score_primary_key_bonus: float = Field(default=0.05)
    score_indexed_bonus: float = Field(default=0.05)
    score_id_suffix_bonus: float = Field(default=0.05)
    score_logical_name_bonus: float = Field(default=0.10)
    score_ambiguity_penalty: float = Field(default=0.15)  # Subtracted from tied candidates
    score_declared_fk: float = Field(default=1.0)
    low_confidence_floor: float = Field(default=0.40)  # Below this: kept, flagged low_confidence
    high_confidence_threshold: float = Field(default=0.70)  # "high" confidence level boundary

    # Suggestion cache
    suggestion_cache_ttl_seconds: int = Field(default=86400)  # 24 hours

    # Model validation
    allow_user_authored_joins: bool = Field(default=True)

    # Auto-join path search
    auto_join_max_hops: int = Field(default=4)

    # API server (run_api.py)
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_reload: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_to_file: bool = Field(default=False)
    log_dir: str = Field(default="data/logs")

    model_config = {
        "env_file": str(_project_root / ".env"),
        "env_file_encoding": "utf-8",
        "env_prefix": "JOINENGINE_",
        "extra": "ignore",
    }


# Create global settings instance
settings = Settings()
