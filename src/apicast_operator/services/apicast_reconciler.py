"""
APIcast reconciler - converges a gateway to its APIcast resource.

A pass runs these stages in order:

1. Initialization: fill missing defaults and persist them. A change ends
   the pass, since the write triggers a new event.
2. Admin portal secret: validate it and make the resource its controller.
3. Embedded configuration secret: same as above.
4. Build the desired Deployment, Service and Ingress.
5. Reconcile the Deployment, then the Service, then the Ingress (only
   when an exposed host is set).

Errors end the pass immediately and propagate unchanged. Every stage is
idempotent, so a pass that was interrupted is simply run again.
"""

import enum
from typing import Any

from pydantic import ValidationError as ModelValidationError

from ..constants import (
    APICAST_KIND,
    DEFAULT_REPLICAS,
    KIND_DEPLOYMENT,
    KIND_INGRESS,
    KIND_SERVICE,
)
from ..errors import ValidationError
from ..models import APIcast
from ..observability.metrics import metrics_collector
from ..utils.kubernetes import KubernetesObjectStore, ObjectStore
from .base_reconciler import BaseReconciler, ReconcileResult, StatusProtocol
from .desired_state import DesiredGatewayState, build_desired_state
from .drivers import DeploymentDriver, IngressDriver, ServiceDriver
from .secret_resolver import ResolvedSecrets, SecretResolver


class ReconcileStage(str, enum.Enum):
    INITIALIZING = "Initializing"
    RESOLVING_ADMIN_SECRET = "ResolvingAdminSecret"
    RESOLVING_CONFIG_SECRET = "ResolvingConfigSecret"
    BUILDING_DESIRED_STATE = "BuildingDesiredState"
    RECONCILING_DEPLOYMENT = "ReconcilingDeployment"
    RECONCILING_SERVICE = "ReconcilingService"
    RECONCILING_INGRESS = "ReconcilingIngress"
    DONE = "Done"


def apply_initialization(resource: APIcast) -> bool:
    """Fill defaults that must be persisted on the resource. Returns True if anything changed."""
    changed = False
    if resource.spec.replicas is None:
        resource.spec.replicas = DEFAULT_REPLICAS
        changed = True
    return changed


class APIcastReconciler(BaseReconciler):
    """
    Reconciler for APIcast gateways.

    The object store is injected so the same pass runs against the cluster
    or an in-memory store.
    """

    resource_type = "apicast"

    def __init__(
        self,
        store: ObjectStore | None = None,
        default_image: str | None = None,
        reconcile_replicas: bool | None = None,
    ):
        super().__init__()
        if default_image is None or reconcile_replicas is None:
            from ..settings import settings

            if default_image is None:
                default_image = settings.default_apicast_image
            if reconcile_replicas is None:
                reconcile_replicas = settings.reconcile_replicas

        self._store = store
        self.default_image = default_image
        self.reconcile_replicas = reconcile_replicas

    @property
    def store(self) -> ObjectStore:
        """Object store, connecting to the cluster on first use."""
        if self._store is None:
            self._store = KubernetesObjectStore()
        return self._store

    async def do_reconcile(
        self,
        spec: dict[str, Any],
        name: str,
        namespace: str,
        status: StatusProtocol,
        **kwargs,
    ) -> ReconcileResult:
        resource = self._resource_from_handler(spec, name, namespace, **kwargs)
        return self.reconcile_resource(resource)

    def reconcile_resource(self, resource: APIcast) -> ReconcileResult:
        """Run one pass over ``resource``."""
        if self.initialize(resource):
            return ReconcileResult(
                requeue=True,
                message="Applied default values to the APIcast resource",
                stage=ReconcileStage.INITIALIZING.value,
            )

        resolver = SecretResolver(self.store)

        admin_portal, changed = resolver.reconcile_admin_portal_credentials(resource)
        if changed:
            return ReconcileResult(
                requeue=True,
                message="Took ownership of the admin portal credentials secret",
                stage=ReconcileStage.RESOLVING_ADMIN_SECRET.value,
            )

        embedded_configuration, changed = resolver.reconcile_embedded_configuration(
            resource
        )
        if changed:
            return ReconcileResult(
                requeue=True,
                message="Took ownership of the embedded configuration secret",
                stage=ReconcileStage.RESOLVING_CONFIG_SECRET.value,
            )

        desired = build_desired_state(
            resource,
            ResolvedSecrets(
                admin_portal=admin_portal,
                embedded_configuration=embedded_configuration,
            ),
            self.default_image,
        )

        outcomes: dict[str, str] = {}
        outcomes[KIND_DEPLOYMENT] = (
            DeploymentDriver(self.store, reconcile_replicas=self.reconcile_replicas)
            .reconcile(desired.deployment)
            .value
        )
        outcomes[KIND_SERVICE] = ServiceDriver(self.store).reconcile(desired.service).value
        if desired.ingress is not None:
            outcomes[KIND_INGRESS] = (
                IngressDriver(self.store).reconcile(desired.ingress).value
            )

        return ReconcileResult(
            requeue=False,
            message="Gateway objects are up to date",
            stage=ReconcileStage.DONE.value,
            outcomes=outcomes,
        )

    def initialize(self, resource: APIcast) -> bool:
        """
        Fill and persist missing defaults.

        Returns:
            True when the resource was updated and the pass must end
        """
        if not apply_initialization(resource):
            return False

        self.logger.log_object_write(
            "update", APICAST_KIND, resource.namespace, resource.name
        )
        self.store.update(APICAST_KIND, resource.to_body())
        metrics_collector.record_object_write(APICAST_KIND, resource.namespace, "update")
        self.logger.info(
            "APIcast resource missed optional fields, updated it to trigger a new pass",
            resource_name=resource.name,
            namespace=resource.namespace,
        )
        return True

    def desired_state_from_resource(self, resource: APIcast) -> DesiredGatewayState:
        """
        Desired gateway objects for ``resource`` without writing anything.

        Secrets are resolved and validated but not adopted, and defaults
        are not persisted.
        """
        secrets = SecretResolver(self.store).inspect(resource)
        return build_desired_state(resource, secrets, self.default_image)

    @staticmethod
    def _resource_from_handler(
        spec: dict[str, Any], name: str, namespace: str, **kwargs
    ) -> APIcast:
        body = kwargs.get("body")
        if body is None:
            metadata = dict(kwargs.get("meta") or {})
            metadata.setdefault("name", name)
            metadata.setdefault("namespace", namespace)
            body = {"metadata": metadata, "spec": dict(spec or {})}

        try:
            return APIcast.from_body(body)
        except ModelValidationError as e:
            raise ValidationError(str(e)) from e
