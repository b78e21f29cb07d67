"""
Configuration management for idp_store.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Transaction limits default to the DynamoDB service limits
    - Credentials are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Never raise transaction limits above what the store accepts
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

# DynamoDB TransactWriteItems limits
MAX_TRANSACTION_ITEMS = 100
MAX_TRANSACTION_REQUEST_BYTES = 4 * 1024 * 1024  # 4MB


class DatabaseProvider(Enum):
    """Supported persistence backends."""

    SQLITE = "sqlite"
    DYNAMODB = "dynamodb"


@dataclass(frozen=True)
class DynamoDbConfig:
    """DynamoDB backend configuration.

    Attributes:
        region: AWS region
        endpoint_url: Custom endpoint URL (for DynamoDB Local)
        table_prefix: Prefix prepended to every entity table name
        consistent_reads: Use strongly consistent reads for get/batch-get
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    region: str = "us-east-1"
    endpoint_url: str | None = None
    table_prefix: str = "idp"
    consistent_reads: bool = True
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> DynamoDbConfig:
        """Load configuration from environment variables."""
        return cls(
            region=os.getenv("IDP_DYNAMODB_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("IDP_DYNAMODB_ENDPOINT"),
            table_prefix=os.getenv("IDP_DYNAMODB_TABLE_PREFIX", "idp"),
            consistent_reads=os.getenv("IDP_DYNAMODB_CONSISTENT_READS", "true").lower() == "true",
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    def table_name(self, base_name: str) -> str:
        """Physical table name for an entity table."""
        if not self.table_prefix:
            return base_name
        return f"{self.table_prefix}_{base_name}"


@dataclass(frozen=True)
class SqliteConfig:
    """SQLite backend configuration.

    Attributes:
        path: Database file path
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    path: str = "idp.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> SqliteConfig:
        """Load configuration from environment variables."""
        return cls(
            path=os.getenv("IDP_SQLITE_PATH", "idp.db"),
            wal_mode=os.getenv("IDP_SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("IDP_SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class TransactionConfig:
    """Transaction coordinator limits.

    Attributes:
        max_items: Maximum writes per atomic batch
        max_request_bytes: Maximum serialized request size in bytes
    """

    max_items: int = MAX_TRANSACTION_ITEMS
    max_request_bytes: int = MAX_TRANSACTION_REQUEST_BYTES

    @classmethod
    def from_env(cls) -> TransactionConfig:
        """Load configuration from environment variables."""
        return cls(
            max_items=int(os.getenv("IDP_TX_MAX_ITEMS", str(MAX_TRANSACTION_ITEMS))),
            max_request_bytes=int(
                os.getenv("IDP_TX_MAX_REQUEST_BYTES", str(MAX_TRANSACTION_REQUEST_BYTES))
            ),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class StoreConfig:
    """Complete persistence configuration.

    Attributes:
        provider: Which backend repositories are created for
        dynamodb: DynamoDB configuration (if provider is DYNAMODB)
        sqlite: SQLite configuration (if provider is SQLITE)
        transactions: Transaction coordinator limits
        observability: Logging configuration
    """

    provider: DatabaseProvider = DatabaseProvider.SQLITE
    dynamodb: DynamoDbConfig = field(default_factory=DynamoDbConfig)
    sqlite: SqliteConfig = field(default_factory=SqliteConfig)
    transactions: TransactionConfig = field(default_factory=TransactionConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load complete configuration from environment variables.

        Returns:
            StoreConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        provider_str = os.getenv("IDP_DATABASE_PROVIDER", "sqlite").lower()
        try:
            provider = DatabaseProvider(provider_str)
        except ValueError:
            valid = ", ".join(p.value for p in DatabaseProvider)
            raise ValueError(
                f"Invalid IDP_DATABASE_PROVIDER '{provider_str}'. Must be one of: {valid}"
            )

        config = cls(
            provider=provider,
            dynamodb=DynamoDbConfig.from_env(),
            sqlite=SqliteConfig.from_env(),
            transactions=TransactionConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.provider == DatabaseProvider.DYNAMODB:
            if not self.dynamodb.region:
                raise ValueError("IDP_DYNAMODB_REGION is required when provider is dynamodb")
        elif self.provider == DatabaseProvider.SQLITE:
            if not self.sqlite.path:
                raise ValueError("IDP_SQLITE_PATH is required when provider is sqlite")

        if not 0 < self.transactions.max_items <= MAX_TRANSACTION_ITEMS:
            raise ValueError(
                f"IDP_TX_MAX_ITEMS must be between 1 and {MAX_TRANSACTION_ITEMS}, "
                f"got {self.transactions.max_items}"
            )
        if not 0 < self.transactions.max_request_bytes <= MAX_TRANSACTION_REQUEST_BYTES:
            raise ValueError(
                f"IDP_TX_MAX_REQUEST_BYTES must be between 1 and "
                f"{MAX_TRANSACTION_REQUEST_BYTES}, got {self.transactions.max_request_bytes}"
            )

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"LOG_FORMAT must be 'json' or 'text', got '{self.observability.log_format}'"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        is_dynamo = self.provider == DatabaseProvider.DYNAMODB
        logger.info(
            "Store configuration loaded",
            extra={
                "provider": self.provider.value,
                "dynamodb_region": self.dynamodb.region if is_dynamo else None,
                "dynamodb_endpoint": self.dynamodb.endpoint_url if is_dynamo else None,
                "dynamodb_table_prefix": self.dynamodb.table_prefix if is_dynamo else None,
                "dynamodb_credentials": (
                    "explicit" if self.dynamodb.access_key_id else "default-chain"
                )
                if is_dynamo
                else None,
                "sqlite_path": self.sqlite.path if not is_dynamo else None,
                "tx_max_items": self.transactions.max_items,
                "tx_max_request_bytes": self.transactions.max_request_bytes,
                "log_level": self.observability.log_level,
            },
        )
