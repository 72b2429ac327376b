"""
Service layer for the APIcast operator.

This module provides the reconciler services that handle the business
logic for APIcast gateways, separated from the kopf handler layer.
"""

from .apicast_reconciler import APIcastReconciler, ReconcileStage
from .base_reconciler import BaseReconciler, ReconcileResult
from .desired_state import DesiredGatewayState, build_desired_state
from .secret_resolver import ResolvedSecrets, SecretResolver

__all__ = [
    "APIcastReconciler",
    "BaseReconciler",
    "DesiredGatewayState",
    "ReconcileResult",
    "ReconcileStage",
    "ResolvedSecrets",
    "SecretResolver",
    "build_desired_state",
]
