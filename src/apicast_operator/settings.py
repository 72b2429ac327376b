"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_APICAST_IMAGE


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    operator_name: str = Field(
        default="apicast-operator",
        description="Name of the operator deployment, used as kopf peering name",
        validation_alias="OPERATOR_NAME",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Log requests to health and metrics endpoints",
    )

    # Namespace watching
    namespaces: str = Field(
        default="",
        validation_alias="APICAST_OPERATOR_NAMESPACES",
        description="Comma-separated list of namespaces to watch (empty = all namespaces)",
    )

    # Gateway defaults
    default_apicast_image: str = Field(
        default=DEFAULT_APICAST_IMAGE,
        validation_alias="APICAST_IMAGE",
        description="Gateway image used when the resource does not set spec.image",
    )

    # Reconciliation behavior
    reconcile_replicas: bool = Field(
        default=True,
        validation_alias="RECONCILE_REPLICAS",
        description="Converge Deployment replicas to spec.replicas "
        "(disable when an autoscaler owns the replica count)",
    )
    requeue_delay_seconds: float = Field(
        default=1.0,
        validation_alias="REQUEUE_DELAY_SECONDS",
        description="Delay before the pass that follows an operator-initiated write",
    )
    conflict_retry_delay_seconds: int = Field(
        default=5,
        validation_alias="CONFLICT_RETRY_DELAY_SECONDS",
        description="Retry delay after an optimistic concurrency conflict",
    )
    resync_interval_seconds: float = Field(
        default=300.0,
        validation_alias="RESYNC_INTERVAL_SECONDS",
        description="Interval of the periodic resync that corrects drift",
    )
    max_workers: int = Field(
        default=20,
        validation_alias="MAX_WORKERS",
        description="Maximum number of concurrently processed resources",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    @property
    def watched_namespaces(self) -> list[str] | None:
        """Parse watched namespaces from comma-separated string.

        Returns:
            List of namespace names, or None to watch all namespaces
        """
        if self.namespaces:
            return [ns.strip() for ns in self.namespaces.split(",") if ns.strip()]
        return None


# Global settings instance - initialized once at module import
settings = Settings()
