"""
APIcast handlers - Manages the gateway Deployment, Service and Ingress.

Every handler runs the same idempotent reconcile pass. kopf delivers the
create, resume and update events; a periodic timer re-runs the pass so
that drift in the gateway objects and rotated secrets are picked up even
when the APIcast resource itself does not change.

Deletion needs no cleanup: every gateway object carries a controlling
owner reference and is removed by the garbage collector.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import MutableMapping
from typing import Any, Protocol, cast

import kopf

from apicast_operator.constants import APICAST_GROUP, APICAST_PLURAL, APICAST_VERSION
from apicast_operator.services import APIcastReconciler
from apicast_operator.services.base_reconciler import ReconcileResult
from apicast_operator.settings import settings as operator_settings

logger = logging.getLogger(__name__)

LOCK_MEMO_KEY = "reconcile_lock"
STORE_MEMO_KEY = "object_store"


class StatusProtocol(Protocol):
    """Protocol for kopf Status objects that allow dynamic attribute assignment."""

    def __setattr__(self, name: str, value: Any) -> None: ...  # pragma: no cover
    def __getattr__(self, name: str) -> Any: ...  # pragma: no cover
    def get(self, key: str, default: Any = None) -> Any: ...  # pragma: no cover


class StatusWrapper(MutableMapping[str, Any]):
    """Safe mutable wrapper around kopf patch.status for both item & attribute access."""

    def __init__(self, patch_status: Any):
        object.__setattr__(self, "_patch_status", patch_status)

    def __getitem__(self, key: str) -> Any:
        return self._patch_status[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._patch_status[key] = value

    def __delitem__(self, key: str) -> None:
        if key in self._patch_status:
            del self._patch_status[key]

    def __iter__(self):  # pragma: no cover - trivial
        return iter(self._patch_status)

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._patch_status)

    def __getattr__(self, item: str) -> Any:
        try:
            return self._patch_status[item]
        except KeyError as e:
            raise AttributeError(item) from e

    def __setattr__(self, key: str, value: Any) -> None:
        if key.startswith("_"):
            object.__setattr__(self, key, value)
        else:
            self._patch_status[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._patch_status.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._patch_status)


def _object_lock(memo: Any) -> asyncio.Lock:
    """Per-resource lock; kopf hands every resource its own memo copy."""
    lock = memo.get(LOCK_MEMO_KEY)
    if lock is None:
        lock = asyncio.Lock()
        memo[LOCK_MEMO_KEY] = lock
    return lock


async def run_reconcile_pass(
    spec: Any,
    name: str,
    namespace: str,
    status: Any,
    patch: kopf.Patch,
    memo: Any,
    **kwargs: Any,
) -> ReconcileResult:
    """
    Run one reconcile pass under the per-resource lock.

    Raises:
        kopf.TemporaryError: When the pass asks to be run again, or failed
            with a retryable error
        kopf.PermanentError: When the resource must be edited first
    """
    status_wrapper = StatusWrapper(patch.status)
    # Seed with live conditions so transition times survive the patch
    if status is not None and status.get("conditions"):
        status_wrapper.conditions = [dict(c) for c in status.get("conditions")]

    reconciler = APIcastReconciler(store=memo.get(STORE_MEMO_KEY))

    async with _object_lock(memo):
        result = await reconciler.reconcile(
            spec=dict(spec or {}),
            name=name,
            namespace=namespace,
            status=cast(StatusProtocol, status_wrapper),
            **kwargs,
        )

    if result.requeue:
        raise kopf.TemporaryError(
            f"Requeue after {result.stage}: {result.message}",
            delay=operator_settings.requeue_delay_seconds,
        )
    return result


@kopf.on.create(APICAST_PLURAL, group=APICAST_GROUP, version=APICAST_VERSION)
@kopf.on.resume(APICAST_PLURAL, group=APICAST_GROUP, version=APICAST_VERSION)
async def reconcile_apicast(
    spec: Any,
    name: str,
    namespace: str,
    status: Any,
    patch: kopf.Patch,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """
    Ensure the gateway objects of an APIcast resource match its spec.

    Handles creation and operator restarts (resume). Returns None to avoid kopf creating status subpaths.
    """
    logger.info(f"Reconciling APIcast {name} in namespace {namespace}")
    await run_reconcile_pass(spec, name, namespace, status, patch, memo, **kwargs)
    return None


@kopf.on.update(APICAST_PLURAL, group=APICAST_GROUP, version=APICAST_VERSION)
async def update_apicast(
    spec: Any,
    name: str,
    namespace: str,
    status: Any,
    patch: kopf.Patch,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Handle spec changes of an APIcast resource."""
    logger.info(f"Updating APIcast {name} in namespace {namespace}")
    await run_reconcile_pass(spec, name, namespace, status, patch, memo, **kwargs)
    return None


@kopf.timer(
    APICAST_PLURAL,
    group=APICAST_GROUP,
    version=APICAST_VERSION,
    interval=operator_settings.resync_interval_seconds,
    initial_delay=operator_settings.resync_interval_seconds,
)
async def resync_apicast(
    spec: Any,
    name: str,
    namespace: str,
    status: Any,
    patch: kopf.Patch,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Periodic pass that corrects drift of gateway objects and secret rotation."""
    logger.debug(f"Periodic resync of APIcast {name} in namespace {namespace}")
    await run_reconcile_pass(spec, name, namespace, status, patch, memo, **kwargs)


@kopf.on.delete(
    APICAST_PLURAL, group=APICAST_GROUP, version=APICAST_VERSION, optional=True
)
async def delete_apicast(name: str, namespace: str, **kwargs: Any) -> None:
    """Log deletion; owned objects are garbage collected through owner references."""
    logger.info(
        f"APIcast {name} in namespace {namespace} deleted, "
        "gateway objects are removed by garbage collection"
    )
