#!/usr/bin/env python3
"""
APIcast Operator - Main entry point for the kopf-based APIcast operator.

This operator keeps APIcast gateways converged with their APIcast
resources:
- Multi-namespace operation (watches all namespaces by default)
- Deployment, Service and Ingress per gateway
- Gateway restarts when referenced secrets change

Usage:
    python -m apicast_operator.operator
    # Or with kopf directly:
    kopf run -m apicast_operator.operator --all-namespaces

Environment Variables:
    APICAST_OPERATOR_NAMESPACES: Comma-separated list of namespaces to watch
    APICAST_IMAGE: Default gateway image
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

import logging
import random
import sys

import kopf

# Importing the handler module registers its decorators with kopf
from apicast_operator.handlers import apicast  # noqa: F401
from apicast_operator.handlers.apicast import STORE_MEMO_KEY
from apicast_operator.observability.logging import setup_structured_logging
from apicast_operator.observability.metrics import MetricsServer
from apicast_operator.settings import settings as operator_settings
from apicast_operator.utils.kubernetes import KubernetesObjectStore, get_kubernetes_client

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
        log_health_probes=operator_settings.log_health_probes,
    )


def get_watched_namespaces() -> list[str] | None:
    """List of namespaces to watch, or None to watch all namespaces."""
    return operator_settings.watched_namespaces


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    Configures kopf behaviour, connects to the cluster and starts the
    metrics endpoint. The object store is placed in the operator memo so
    every resource handler shares one API client.
    """
    logging.info("Starting APIcast Operator...")
    settings.watching.reconnect_backoff = 1.0

    # Random priority per pod so that exactly one replica is active
    settings.peering.name = operator_settings.operator_name
    settings.peering.priority = random.randint(0, 32767)
    logging.info(f"Peering priority set to {settings.peering.priority}")

    settings.execution.max_workers = operator_settings.max_workers

    watched_namespaces = get_watched_namespaces()
    if watched_namespaces:
        logging.info(f"Watching namespaces: {', '.join(watched_namespaces)}")
    else:
        logging.info("Watching all namespaces (cluster-wide mode)")

    memo[STORE_MEMO_KEY] = KubernetesObjectStore(get_kubernetes_client())
    logging.info(
        f"Default gateway image: {operator_settings.default_apicast_image}"
    )

    try:
        metrics_server = MetricsServer(
            port=operator_settings.metrics_port, host=operator_settings.metrics_host
        )
        await metrics_server.start()

        global _global_metrics_server
        _global_metrics_server = metrics_server
    except Exception as e:
        logging.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logging.warning("Continuing without metrics server")


@kopf.on.cleanup()
async def cleanup_handler(**_) -> None:
    """Operator cleanup handler; stops the metrics server."""
    logging.info("Shutting down APIcast Operator...")

    global _global_metrics_server
    if _global_metrics_server:
        await _global_metrics_server.stop()
        _global_metrics_server = None


@kopf.on.probe(id="healthz")
async def health_check(**_) -> dict[str, str]:
    """Liveness probe payload."""
    return {"status": "healthy", "operator": operator_settings.operator_name}


def main() -> None:
    """
    Main entry point for the operator.

    Configures logging, determines the namespace scope and runs kopf.
    """
    configure_logging()

    watched_namespaces = get_watched_namespaces()

    try:
        if watched_namespaces:
            kopf.run(
                namespaces=watched_namespaces,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
            )
        else:
            kopf.run(
                clusterwide=True,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
            )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
