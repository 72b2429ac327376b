"""
Unit tests for status condition state transitions.

Tests the transitions between the Reconciling, Ready and Failed states,
observedGeneration tracking and lastTransitionTime handling.
"""

import kopf
import pytest
from kubernetes.client.rest import ApiException

from apicast_operator.errors import KubernetesAPIError, TemporaryError
from apicast_operator.services.base_reconciler import BaseReconciler, ReconcileResult


class ConcreteReconciler(BaseReconciler):
    """Concrete implementation of BaseReconciler for testing."""

    def __init__(self, result=None, error=None):
        super().__init__()
        self.result = result or ReconcileResult()
        self.error = error

    async def do_reconcile(self, spec, name, namespace, status, **kwargs):
        if self.error is not None:
            raise self.error
        return self.result


def _condition(status, condition_type):
    return next((c for c in status.conditions if c["type"] == condition_type), None)


class TestStatusConditionTransitions:
    """Test status condition state transitions."""

    @pytest.fixture
    def reconciler(self):
        return ConcreteReconciler()

    def test_initial_reconciling_state(self, reconciler, status):
        """Test initial transition to reconciling state."""
        reconciler.update_status_reconciling(status, "Applied defaults", 42)

        assert status.phase == "Reconciling"
        assert status.message == "Applied defaults"
        assert status.observedGeneration == 42
        assert {c["type"] for c in status.conditions} == {"Reconciling", "Progressing"}

        reconciling = _condition(status, "Reconciling")
        assert reconciling["status"] == "True"
        assert reconciling["reason"] == "ReconciliationInProgress"
        assert reconciling["observedGeneration"] == 42
        assert "lastTransitionTime" in reconciling

    def test_reconciling_to_ready(self, reconciler, status):
        reconciler.update_status_reconciling(status, "Working", 1)
        reconciler.update_status_ready(status, "Done", 1)

        assert status.phase == "Ready"
        assert {c["type"] for c in status.conditions} == {"Ready", "Available"}
        assert reconciler.is_ready(status)
        assert not reconciler.is_degraded(status)

    def test_ready_to_failed(self, reconciler, status):
        reconciler.update_status_ready(status, "Done", 1)
        reconciler.update_status_failed(status, "Secret missing", 2)

        assert status.phase == "Failed"
        assert status.observedGeneration == 2
        assert _condition(status, "Ready")["status"] == "False"
        assert _condition(status, "Available")["status"] == "False"
        assert _condition(status, "Degraded")["status"] == "True"
        assert reconciler.is_degraded(status)
        assert not reconciler.is_ready(status)

    def test_failed_to_ready_clears_degraded(self, reconciler, status):
        reconciler.update_status_failed(status, "Secret missing", 1)
        reconciler.update_status_ready(status, "Done", 1)

        assert _condition(status, "Degraded") is None
        assert reconciler.is_ready(status)

    def test_transition_time_kept_while_status_unchanged(self, reconciler, status):
        status.conditions = [
            {
                "type": "Ready",
                "status": "True",
                "reason": "ReconciliationSucceeded",
                "message": "Done",
                "lastTransitionTime": "2024-01-01T00:00:00+00:00",
                "observedGeneration": 1,
            }
        ]

        reconciler.update_status_ready(status, "Done again", 2)

        ready = _condition(status, "Ready")
        assert ready["lastTransitionTime"] == "2024-01-01T00:00:00+00:00"
        assert ready["message"] == "Done again"
        assert ready["observedGeneration"] == 2

    def test_transition_time_moves_when_status_flips(self, reconciler, status):
        status.conditions = [
            {
                "type": "Ready",
                "status": "True",
                "reason": "ReconciliationSucceeded",
                "message": "Done",
                "lastTransitionTime": "2024-01-01T00:00:00+00:00",
                "observedGeneration": 1,
            }
        ]

        reconciler.update_status_failed(status, "Broken", 2)

        ready = _condition(status, "Ready")
        assert ready["status"] == "False"
        assert ready["lastTransitionTime"] != "2024-01-01T00:00:00+00:00"

    def test_get_condition_missing(self, reconciler, status):
        assert reconciler.get_condition(status, "Ready") is None


class TestReconcileErrorMapping:
    """Test translation of reconcile failures into kopf errors."""

    @pytest.mark.asyncio
    async def test_requeue_result_marks_reconciling(self, status):
        reconciler = ConcreteReconciler(
            result=ReconcileResult(requeue=True, message="Wrote secret", stage="S")
        )

        result = await reconciler.reconcile({}, "example", "gateways", status)

        assert result.requeue is True
        assert status.phase == "Reconciling"
        assert status.message == "Wrote secret"

    @pytest.mark.asyncio
    async def test_generation_taken_from_meta(self, status):
        reconciler = ConcreteReconciler()

        await reconciler.reconcile(
            {}, "example", "gateways", status, meta={"generation": 7}
        )

        assert status.observedGeneration == 7

    @pytest.mark.asyncio
    async def test_operator_temporary_error(self, status):
        reconciler = ConcreteReconciler(error=TemporaryError("later", delay=12))

        with pytest.raises(kopf.TemporaryError) as exc_info:
            await reconciler.reconcile({}, "example", "gateways", status)

        assert exc_info.value.delay == 12
        assert status.phase == "Failed"

    @pytest.mark.asyncio
    async def test_forbidden_api_error_is_permanent(self, status):
        reconciler = ConcreteReconciler(
            error=KubernetesAPIError("Failed to read", reason="Forbidden", status_code=403)
        )

        with pytest.raises(kopf.PermanentError):
            await reconciler.reconcile({}, "example", "gateways", status)

    @pytest.mark.asyncio
    async def test_raw_api_exception_server_error_is_temporary(self, status):
        reconciler = ConcreteReconciler(error=ApiException(status=503, reason="Unavailable"))

        with pytest.raises(kopf.TemporaryError):
            await reconciler.reconcile({}, "example", "gateways", status)

    @pytest.mark.asyncio
    async def test_raw_api_exception_client_error_is_permanent(self, status):
        reconciler = ConcreteReconciler(error=ApiException(status=422, reason="Unprocessable"))

        with pytest.raises(kopf.PermanentError):
            await reconciler.reconcile({}, "example", "gateways", status)

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_temporary(self, status):
        reconciler = ConcreteReconciler(error=RuntimeError("boom"))

        with pytest.raises(kopf.TemporaryError) as exc_info:
            await reconciler.reconcile({}, "example", "gateways", status)

        assert "boom" in str(exc_info.value)
        assert "boom" in status.message
