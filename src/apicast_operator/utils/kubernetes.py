"""
Kubernetes utilities for the APIcast operator.

This module provides the object store the reconciler reads and writes
through, plus helpers for owner references and secret contents.
"""

import base64
import logging
from typing import Any, Protocol

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..constants import (
    APICAST_API_VERSION,
    APICAST_GROUP,
    APICAST_KIND,
    APICAST_PLURAL,
    APICAST_VERSION,
    KIND_DEPLOYMENT,
    KIND_INGRESS,
    KIND_SECRET,
    KIND_SERVICE,
)
from ..errors import (
    AlreadyExistsError,
    ConflictError,
    KubernetesAPIError,
    OwnershipConflictError,
)

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Tries the in-cluster configuration first and falls back to the local
    kubeconfig for development.

    Returns:
        Configured Kubernetes API client
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def object_meta(obj: Any) -> tuple[str | None, str | None]:
    """Return ``(namespace, name)`` of a typed API object or a plain dict."""
    if isinstance(obj, dict):
        metadata = obj.get("metadata") or {}
        return metadata.get("namespace"), metadata.get("name")
    return obj.metadata.namespace, obj.metadata.name


def secret_value(secret: client.V1Secret, key: str) -> str | None:
    """
    Decoded value of one secret key, or None when the key is absent.

    ``stringData`` entries are plain text and take precedence over the
    base64 encoded ``data``, matching API server semantics. Other keys are
    left untouched, so binary entries next to the requested key are fine.
    """
    string_data = secret.string_data or {}
    if key in string_data:
        return string_data[key]

    data = secret.data or {}
    if key not in data:
        return None
    return base64.b64decode(data[key]).decode("utf-8", errors="replace")


def owner_reference_for(resource: Any) -> client.V1OwnerReference:
    """Controlling owner reference pointing at an APIcast resource."""
    return client.V1OwnerReference(
        api_version=APICAST_API_VERSION,
        kind=APICAST_KIND,
        name=resource.name,
        uid=resource.uid,
        controller=True,
        block_owner_deletion=True,
    )


def set_controller_reference(
    obj: Any, owner_ref: client.V1OwnerReference, kind: str
) -> bool:
    """
    Make ``owner_ref`` the controller of ``obj``.

    Args:
        obj: Typed Kubernetes object whose metadata is modified in place
        owner_ref: Controlling owner reference to attach
        kind: Kind of ``obj``, used in error messages

    Returns:
        True if the object metadata changed

    Raises:
        OwnershipConflictError: If a different owner already controls the object
    """
    references = obj.metadata.owner_references or []

    for ref in references:
        if ref.controller and ref.uid != owner_ref.uid:
            raise OwnershipConflictError(
                kind=kind,
                namespace=obj.metadata.namespace,
                name=obj.metadata.name,
                current_owner=f"{ref.kind}/{ref.name}",
            )

    for ref in references:
        if ref.uid == owner_ref.uid:
            if ref.controller and ref.block_owner_deletion:
                return False
            ref.controller = True
            ref.block_owner_deletion = True
            return True

    obj.metadata.owner_references = [*references, owner_ref]
    return True


class ObjectStore(Protocol):
    """
    Read and write access to cluster objects.

    ``get`` returns None when the object does not exist. ``update`` must be
    an optimistic-concurrency write: the resourceVersion carried by the
    object is checked, and a stale version raises ConflictError.
    """

    def get(self, kind: str, namespace: str, name: str) -> Any | None: ...

    def create(self, kind: str, obj: Any) -> Any: ...

    def update(self, kind: str, obj: Any) -> Any: ...


# kind -> (api attribute, read method, create method, replace method)
_TYPED_OPERATIONS: dict[str, tuple[str, str, str, str]] = {
    KIND_DEPLOYMENT: (
        "apps_api",
        "read_namespaced_deployment",
        "create_namespaced_deployment",
        "replace_namespaced_deployment",
    ),
    KIND_SERVICE: (
        "core_api",
        "read_namespaced_service",
        "create_namespaced_service",
        "replace_namespaced_service",
    ),
    KIND_INGRESS: (
        "networking_api",
        "read_namespaced_ingress",
        "create_namespaced_ingress",
        "replace_namespaced_ingress",
    ),
    KIND_SECRET: (
        "core_api",
        "read_namespaced_secret",
        "create_namespaced_secret",
        "replace_namespaced_secret",
    ),
}


class KubernetesObjectStore:
    """ObjectStore backed by the official Kubernetes client."""

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        conflict_delay: int | None = None,
    ):
        if conflict_delay is None:
            from ..settings import settings

            conflict_delay = settings.conflict_retry_delay_seconds

        self.k8s_client = k8s_client or get_kubernetes_client()
        self.conflict_delay = conflict_delay
        self.apps_api = client.AppsV1Api(self.k8s_client)
        self.core_api = client.CoreV1Api(self.k8s_client)
        self.networking_api = client.NetworkingV1Api(self.k8s_client)
        self.custom_api = client.CustomObjectsApi(self.k8s_client)

    def get(self, kind: str, namespace: str, name: str) -> Any | None:
        try:
            if kind == APICAST_KIND:
                return self.custom_api.get_namespaced_custom_object(
                    group=APICAST_GROUP,
                    version=APICAST_VERSION,
                    namespace=namespace,
                    plural=APICAST_PLURAL,
                    name=name,
                )
            api, read, _, _ = self._operations(kind)
            return getattr(api, read)(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._api_error(e, "read", kind, namespace, name) from e

    def create(self, kind: str, obj: Any) -> Any:
        namespace, name = object_meta(obj)
        try:
            if kind == APICAST_KIND:
                return self.custom_api.create_namespaced_custom_object(
                    group=APICAST_GROUP,
                    version=APICAST_VERSION,
                    namespace=namespace,
                    plural=APICAST_PLURAL,
                    body=obj,
                )
            api, _, create, _ = self._operations(kind)
            return getattr(api, create)(namespace=namespace, body=obj)
        except ApiException as e:
            if e.status == 409:
                raise AlreadyExistsError(
                    kind, namespace, name, delay=self.conflict_delay
                ) from e
            raise self._api_error(e, "create", kind, namespace, name) from e

    def update(self, kind: str, obj: Any) -> Any:
        namespace, name = object_meta(obj)
        try:
            if kind == APICAST_KIND:
                return self.custom_api.replace_namespaced_custom_object(
                    group=APICAST_GROUP,
                    version=APICAST_VERSION,
                    namespace=namespace,
                    plural=APICAST_PLURAL,
                    name=name,
                    body=obj,
                )
            api, _, _, replace = self._operations(kind)
            return getattr(api, replace)(name=name, namespace=namespace, body=obj)
        except ApiException as e:
            if e.status == 409:
                raise ConflictError(
                    kind, namespace, name, delay=self.conflict_delay
                ) from e
            raise self._api_error(e, "update", kind, namespace, name) from e

    def _operations(self, kind: str) -> tuple[Any, str, str, str]:
        try:
            api_attr, read, create, replace = _TYPED_OPERATIONS[kind]
        except KeyError:
            raise ValueError(f"Unsupported kind: {kind}") from None
        return getattr(self, api_attr), read, create, replace

    @staticmethod
    def _api_error(
        e: ApiException, operation: str, kind: str, namespace: str, name: str
    ) -> KubernetesAPIError:
        status = getattr(e, "status", None)
        return KubernetesAPIError(
            message=f"Failed to {operation} {kind} {namespace}/{name}",
            reason=getattr(e, "reason", None),
            retryable=status is None or status >= 500 or status == 429,
            status_code=status,
        )
