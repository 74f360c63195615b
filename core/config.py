"""
Pydantic-based configuration for the scanner.

All knobs are exposed via environment variables prefixed with BADMAP_
(or a local .env file). CLI and API arguments override them per run.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BADMAP_", case_sensitive=False, env_file=".env")

    # Concurrency and timeouts
    concurrency: int = Field(100, ge=1, description="max in-flight probes")
    connect_timeout_s: float = Field(1.0, gt=0, description="per-attempt connect timeout")
    scan_deadline_s: Optional[float] = Field(None, gt=0, description="overall scan deadline")

    # Default port range
    port_start: int = Field(1, ge=1, le=65535)
    port_end: int = Field(65535, ge=1, le=65535)

    # Resolution
    prefer_ipv4: bool = True

    # Output
    output_path: str = "output.txt"
    output_format: str = "text"
    log_level: str = "INFO"

    # Local state/cache
    json_cache_path: Optional[str] = None

    # Elasticsearch
    elasticsearch_url: Optional[str] = None
    elasticsearch_user: Optional[str] = None
    elasticsearch_pass: Optional[str] = None
    elasticsearch_api_key: Optional[str] = None
    elasticsearch_verify_certs: bool = True
    elasticsearch_ca_cert: Optional[str] = None
    elasticsearch_index: str = "badmap-ports"
    bulk_batch_size: int = Field(500, ge=1)

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"text", "json"}:
            raise ValueError("output_format must be text or json")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
