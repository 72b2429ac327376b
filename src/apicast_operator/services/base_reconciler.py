"""
Base reconciler class providing common patterns for resource reconciliation.

This module defines the BaseReconciler class that implements standard
patterns for status management, error handling, metrics and logging around
a single reconcile pass.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from kubernetes.client.rest import ApiException

from ..constants import (
    CONDITION_AVAILABLE,
    CONDITION_DEGRADED,
    CONDITION_FALSE,
    CONDITION_PROGRESSING,
    CONDITION_READY,
    CONDITION_RECONCILING,
    CONDITION_TRUE,
    PHASE_FAILED,
    PHASE_READY,
    PHASE_RECONCILING,
)
from ..errors import KubernetesAPIError, OperatorError, TemporaryError
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector


class StatusProtocol(Protocol):
    """Protocol for kopf Status objects that allow dynamic attribute assignment."""

    def __setattr__(self, name: str, value: Any) -> None: ...
    def __getattr__(self, name: str) -> Any: ...


@dataclass(frozen=True)
class ReconcileResult:
    """
    Outcome of a reconcile pass.

    ``requeue`` is set when the pass wrote an object that it also watches
    and stopped early; the caller runs another pass after a short delay.
    """

    requeue: bool = False
    message: str = ""
    stage: str | None = None
    outcomes: dict[str, str] = field(default_factory=dict)


class BaseReconciler(ABC):
    """
    Base class for all resource reconcilers.

    Provides common patterns for:
    - Status management with conditions
    - Error translation into kopf retry semantics
    - Reconciliation metrics and structured logging
    """

    resource_type = "resource"

    def __init__(self):
        self.logger = OperatorLogger(self.__class__.__name__)

    async def reconcile(
        self,
        spec: dict[str, Any],
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> ReconcileResult:
        """
        Main reconciliation entry point with metrics tracking.

        Args:
            spec: Resource specification
            name: Resource name
            namespace: Resource namespace
            status: Resource status object
            **kwargs: Additional handler arguments (``meta``, ``body``)

        Returns:
            Result of the pass

        Raises:
            kopf.TemporaryError: For retryable failures
            kopf.PermanentError: For failures that need a resource edit
        """
        resource_type = self.resource_type
        start_time = time.time()

        self.logger.log_reconciliation_start(
            resource_type=resource_type, resource_name=name, namespace=namespace
        )

        generation = (kwargs.get("meta") or {}).get("generation") or 0

        async with metrics_collector.track_reconciliation(
            resource_type=resource_type,
            namespace=namespace,
            name=name,
            operation="reconcile",
        ):
            try:
                result = await self.do_reconcile(
                    spec, name, namespace, status, **kwargs
                )

            except OperatorError as e:
                self._record_failure(
                    status, e, resource_type, name, namespace, generation, start_time
                )
                raise e.as_kopf_error() from e

            except ApiException as e:
                http_status = getattr(e, "status", None)
                error = KubernetesAPIError(
                    message=str(e),
                    reason=getattr(e, "reason", None),
                    retryable=http_status is None
                    or http_status >= 500
                    or http_status == 429,
                    status_code=http_status,
                )
                self._record_failure(
                    status, error, resource_type, name, namespace, generation, start_time
                )
                raise error.as_kopf_error() from e

            except Exception as e:
                # Wrap unexpected errors as temporary to allow retry
                error = TemporaryError(
                    f"Unexpected error during reconciliation: {str(e)}"
                )
                self._record_failure(
                    status, error, resource_type, name, namespace, generation, start_time
                )
                raise error.as_kopf_error() from e

        duration = time.time() - start_time

        if result.requeue:
            self.update_status_reconciling(status, result.message, generation)
            metrics_collector.record_requeue(
                resource_type=resource_type,
                namespace=namespace,
                stage=result.stage or "unknown",
            )
            metrics_collector.update_resource_status(
                resource_type=resource_type,
                namespace=namespace,
                phase=PHASE_RECONCILING,
            )
            self.logger.log_reconciliation_requeue(
                resource_type=resource_type,
                resource_name=name,
                namespace=namespace,
                stage=result.stage or "unknown",
                message=result.message,
                duration=duration,
            )
            return result

        self.update_status_ready(
            status, result.message or "Reconciliation completed successfully", generation
        )
        metrics_collector.update_resource_status(
            resource_type=resource_type, namespace=namespace, phase=PHASE_READY
        )
        self.logger.log_reconciliation_success(
            resource_type=resource_type,
            resource_name=name,
            namespace=namespace,
            duration=duration,
        )
        return result

    def _record_failure(
        self,
        status: StatusProtocol,
        error: Exception,
        resource_type: str,
        name: str,
        namespace: str,
        generation: int,
        start_time: float,
    ) -> None:
        self.logger.log_reconciliation_error(
            resource_type=resource_type,
            resource_name=name,
            namespace=namespace,
            error=error,
            duration=time.time() - start_time,
        )
        message = getattr(error, "message", None) or str(error)
        self.update_status_failed(status, message, generation)
        metrics_collector.update_resource_status(
            resource_type=resource_type, namespace=namespace, phase=PHASE_FAILED
        )

    @abstractmethod
    async def do_reconcile(
        self,
        spec: dict[str, Any],
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> ReconcileResult:
        """
        Perform the actual reconciliation logic.

        This method must be implemented by subclasses to provide
        resource-specific reconciliation logic.
        """
        raise NotImplementedError("Subclasses must implement do_reconcile method")

    def update_status_reconciling(
        self, status: StatusProtocol, message: str, generation: int = 0
    ) -> None:
        """Update status to indicate reconciliation is in progress."""
        status.phase = PHASE_RECONCILING
        status.message = message
        status.observedGeneration = generation
        self._add_condition(
            status,
            CONDITION_RECONCILING,
            CONDITION_TRUE,
            "ReconciliationInProgress",
            message,
            generation,
        )
        self._add_condition(
            status,
            CONDITION_PROGRESSING,
            CONDITION_TRUE,
            "ReconciliationInProgress",
            f"Resource is progressing: {message}",
            generation,
        )
        self._remove_condition(status, CONDITION_READY)
        self._remove_condition(status, CONDITION_AVAILABLE)
        self._remove_condition(status, CONDITION_DEGRADED)

    def update_status_ready(
        self,
        status: StatusProtocol,
        message: str = "Resource is ready",
        generation: int = 0,
    ) -> None:
        """Update status to indicate resource is ready."""
        status.phase = PHASE_READY
        status.message = message
        status.observedGeneration = generation
        self._add_condition(
            status,
            CONDITION_READY,
            CONDITION_TRUE,
            "ReconciliationSucceeded",
            message,
            generation,
        )
        self._add_condition(
            status,
            CONDITION_AVAILABLE,
            CONDITION_TRUE,
            "ReconciliationSucceeded",
            f"Resource is available: {message}",
            generation,
        )
        self._remove_condition(status, CONDITION_RECONCILING)
        self._remove_condition(status, CONDITION_PROGRESSING)
        self._remove_condition(status, CONDITION_DEGRADED)

    def update_status_failed(
        self, status: StatusProtocol, message: str, generation: int = 0
    ) -> None:
        """Update status to indicate reconciliation failed."""
        status.phase = PHASE_FAILED
        status.message = message
        status.observedGeneration = generation
        self._add_condition(
            status,
            CONDITION_READY,
            CONDITION_FALSE,
            "ReconciliationFailed",
            message,
            generation,
        )
        self._add_condition(
            status,
            CONDITION_AVAILABLE,
            CONDITION_FALSE,
            "ReconciliationFailed",
            f"Resource unavailable: {message}",
            generation,
        )
        self._add_condition(
            status,
            CONDITION_DEGRADED,
            CONDITION_TRUE,
            "ReconciliationFailed",
            f"Resource degraded: {message}",
            generation,
        )
        self._remove_condition(status, CONDITION_RECONCILING)
        self._remove_condition(status, CONDITION_PROGRESSING)

    def _add_condition(
        self,
        status: StatusProtocol,
        condition_type: str,
        condition_status: str,
        reason: str,
        message: str,
        generation: int = 0,
    ) -> None:
        """
        Add or update a status condition with observedGeneration tracking.

        ``lastTransitionTime`` only moves when the condition's status value
        changes.
        """
        existing = getattr(status, "conditions", None)
        conditions = [c for c in (existing or []) if isinstance(c, dict)]

        previous = next((c for c in conditions if c.get("type") == condition_type), None)
        transition_time = datetime.now(UTC).isoformat()
        if previous is not None and previous.get("status") == condition_status:
            transition_time = previous.get("lastTransitionTime") or transition_time

        conditions = [c for c in conditions if c.get("type") != condition_type]
        conditions.append(
            {
                "type": condition_type,
                "status": condition_status,
                "reason": reason,
                "message": message,
                "lastTransitionTime": transition_time,
                "observedGeneration": generation,
            }
        )
        status.conditions = conditions

    def _remove_condition(self, status: StatusProtocol, condition_type: str) -> None:
        existing = getattr(status, "conditions", None)
        if not existing:
            return
        status.conditions = [
            c for c in existing if isinstance(c, dict) and c.get("type") != condition_type
        ]

    def get_condition(
        self, status: StatusProtocol, condition_type: str
    ) -> dict[str, Any] | None:
        """Get a specific status condition."""
        for condition in getattr(status, "conditions", None) or []:
            if condition.get("type") == condition_type:
                return condition
        return None

    def is_ready(self, status: StatusProtocol) -> bool:
        """Check if resource is in ready state."""
        ready_condition = self.get_condition(status, CONDITION_READY)
        return ready_condition is not None and ready_condition.get("status") == "True"

    def is_degraded(self, status: StatusProtocol) -> bool:
        degraded_condition = self.get_condition(status, CONDITION_DEGRADED)
        return (
            degraded_condition is not None
            and degraded_condition.get("status") == "True"
        )
