"""Configuration management for the Eventify ticketing service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="Eventify Ticketing")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://eventify:eventify@db:5432/eventify")

    aws_region: str = Field(default="us-east-1")
    s3_endpoint_url: str | None = Field(default=None)
    payment_proof_bucket: str = Field(default="eventify-payment-proofs")
    payment_proof_prefix: str = Field(default="proofs/transactions")
    payment_proof_max_bytes: int = Field(default=5 * 1024 * 1024)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    payment_window_minutes: int = Field(default=120, gt=0)
    decision_window_hours: int = Field(default=72, gt=0)
    max_tickets_per_checkout: int = Field(default=10, gt=0)

    expiry_sweep_interval_seconds: int = Field(default=300)
    expiry_sweep_batch_size: int = Field(default=500, gt=0)

    jwt_algorithm: str = Field(default="HS256")
    jwt_secret_key: str = Field(default="change-me-in-production")
    access_token_expire_minutes: int = Field(default=60)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
