"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "WELDPAY_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration for catalog lookups."""

    model_config = {"env_prefix": "WELDPAY_REDIS_"}

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    cache_ttl: int = 300


class PayrollConfig(BaseSettings):
    """Payroll lifecycle policy."""

    model_config = {"env_prefix": "WELDPAY_PAYROLL_"}

    allow_paid_recalculation: bool = False
    max_write_retries: int = 3


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "WELDPAY_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    storage_backend: Literal["memory", "dynamodb"] = "memory"

    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    payroll: PayrollConfig = PayrollConfig()
