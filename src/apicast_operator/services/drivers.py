"""
Per-kind reconcile drivers for the objects of a gateway.

Every driver follows the same shape: read the live object, create it when
absent, otherwise copy the fields the operator owns from the desired object
onto the live one and write it back only when something changed.

Which fields are owned, and how each is compared, is declared in a field
table per kind. The live object is always the base of an update so that
fields defaulted by the API server, or set by other controllers, survive.
"""

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from kubernetes import client

from ..constants import KIND_DEPLOYMENT, KIND_INGRESS, KIND_SERVICE
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..utils.kubernetes import ObjectStore, object_meta


class FieldStrategy(enum.Enum):
    """How a desired field value is applied to a live object."""

    # Replace when not equal
    SCALAR = "scalar"
    # Replace when not equal; None and empty compare equal
    EXACT_SET = "exact_set"
    # Upsert items by key; live items with other keys are kept
    KEYED_MERGE = "keyed_merge"
    # Append desired items whose key is missing; existing items are untouched
    HOST_MERGE = "host_merge"


class DriverOutcome(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class FieldRule:
    """One owned field of a kind: how to read it, write it and compare it."""

    name: str
    get: Callable[[Any], Any]
    set: Callable[[Any, Any], None]
    strategy: FieldStrategy
    key: Callable[[Any], Any] | None = None


def _empty_as_none(value: Any) -> Any:
    return value if value else None


def _keyed_merge(live: list[Any] | None, desired: list[Any], key) -> list[Any] | None:
    """Upsert ``desired`` items into ``live``. Returns the merged list, or None if unchanged."""
    merged = list(live or [])
    changed = False
    for item in desired:
        for index, current in enumerate(merged):
            if key(current) == key(item):
                if current != item:
                    merged[index] = item
                    changed = True
                break
        else:
            merged.append(item)
            changed = True
    return merged if changed else None


def _append_missing(live: list[Any] | None, desired: list[Any], key) -> list[Any] | None:
    """Append ``desired`` items whose key is absent. Returns the new list, or None if unchanged."""
    merged = list(live or [])
    present = {key(item) for item in merged}
    missing = [item for item in desired if key(item) not in present]
    if not missing:
        return None
    return merged + missing


def apply_field_rules(
    rules: Sequence[FieldRule], desired: Any, existing: Any
) -> list[str]:
    """
    Apply ``rules`` from ``desired`` onto ``existing`` in place.

    Returns:
        Names of the fields that changed
    """
    changed: list[str] = []
    for rule in rules:
        desired_value = rule.get(desired)
        live_value = rule.get(existing)

        if rule.strategy is FieldStrategy.SCALAR:
            if desired_value != live_value:
                rule.set(existing, desired_value)
                changed.append(rule.name)

        elif rule.strategy is FieldStrategy.EXACT_SET:
            if _empty_as_none(desired_value) != _empty_as_none(live_value):
                rule.set(existing, desired_value)
                changed.append(rule.name)

        elif rule.strategy is FieldStrategy.KEYED_MERGE:
            merged = _keyed_merge(live_value, desired_value or [], rule.key)
            if merged is not None:
                rule.set(existing, merged)
                changed.append(rule.name)

        elif rule.strategy is FieldStrategy.HOST_MERGE:
            merged = _append_missing(live_value, desired_value or [], rule.key)
            if merged is not None:
                rule.set(existing, merged)
                changed.append(rule.name)

    return changed


# Deployment accessors

def _container(deployment: client.V1Deployment) -> client.V1Container:
    return deployment.spec.template.spec.containers[0]


def _set_replicas(deployment, value):
    deployment.spec.replicas = value


def _set_image(deployment, value):
    _container(deployment).image = value


def _set_service_account(deployment, value):
    deployment.spec.template.spec.service_account_name = value


def _set_env(deployment, value):
    _container(deployment).env = value


def _template_annotations(deployment):
    metadata = deployment.spec.template.metadata
    return metadata.annotations if metadata is not None else None


def _set_template_annotations(deployment, value):
    if deployment.spec.template.metadata is None:
        deployment.spec.template.metadata = client.V1ObjectMeta()
    deployment.spec.template.metadata.annotations = value


def _set_volumes(deployment, value):
    deployment.spec.template.spec.volumes = value


def _set_volume_mounts(deployment, value):
    _container(deployment).volume_mounts = value


REPLICAS_RULE = FieldRule(
    "replicas",
    lambda d: d.spec.replicas,
    _set_replicas,
    FieldStrategy.SCALAR,
)

DEPLOYMENT_FIELD_RULES: tuple[FieldRule, ...] = (
    REPLICAS_RULE,
    FieldRule(
        "image",
        lambda d: _container(d).image,
        _set_image,
        FieldStrategy.SCALAR,
    ),
    FieldRule(
        "serviceAccountName",
        lambda d: d.spec.template.spec.service_account_name,
        _set_service_account,
        FieldStrategy.SCALAR,
    ),
    FieldRule(
        "env",
        lambda d: _container(d).env,
        _set_env,
        FieldStrategy.KEYED_MERGE,
        key=lambda env_var: env_var.name,
    ),
    FieldRule(
        "annotations",
        _template_annotations,
        _set_template_annotations,
        FieldStrategy.EXACT_SET,
    ),
    FieldRule(
        "volumes",
        lambda d: d.spec.template.spec.volumes,
        _set_volumes,
        FieldStrategy.EXACT_SET,
    ),
    FieldRule(
        "volumeMounts",
        lambda d: _container(d).volume_mounts,
        _set_volume_mounts,
        FieldStrategy.EXACT_SET,
    ),
)

# Services are only created; live fields are never reconciled
SERVICE_FIELD_RULES: tuple[FieldRule, ...] = ()


def _set_ingress_rules(ingress, value):
    ingress.spec.rules = value


def _set_ingress_tls(ingress, value):
    ingress.spec.tls = value


INGRESS_FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        "rules",
        lambda i: i.spec.rules,
        _set_ingress_rules,
        FieldStrategy.HOST_MERGE,
        key=lambda rule: rule.host,
    ),
    FieldRule(
        "tls",
        lambda i: i.spec.tls,
        _set_ingress_tls,
        FieldStrategy.EXACT_SET,
    ),
)


class ObjectDriver:
    """Create-or-update driver for one kind, configured by its field table."""

    kind: str = ""
    field_rules: tuple[FieldRule, ...] = ()

    def __init__(self, store: ObjectStore):
        self.store = store
        self.logger = OperatorLogger(self.__class__.__name__)

    def rules(self) -> tuple[FieldRule, ...]:
        return self.field_rules

    def reconcile(self, desired: Any) -> DriverOutcome:
        namespace, name = object_meta(desired)
        existing = self.store.get(self.kind, namespace, name)

        if existing is None:
            self.logger.log_object_write("create", self.kind, namespace, name)
            self.store.create(self.kind, desired)
            metrics_collector.record_object_write(self.kind, namespace, "create")
            return DriverOutcome.CREATED

        changed = apply_field_rules(self.rules(), desired, existing)
        if not changed:
            return DriverOutcome.UNCHANGED

        self.logger.log_object_write("update", self.kind, namespace, name)
        self.logger.debug(
            f"{self.kind} {namespace}/{name} fields out of date: {', '.join(changed)}",
            kind=self.kind,
            namespace=namespace,
        )
        self.store.update(self.kind, existing)
        metrics_collector.record_object_write(self.kind, namespace, "update")
        return DriverOutcome.UPDATED


class DeploymentDriver(ObjectDriver):
    kind = KIND_DEPLOYMENT
    field_rules = DEPLOYMENT_FIELD_RULES

    def __init__(self, store: ObjectStore, reconcile_replicas: bool = True):
        super().__init__(store)
        self.reconcile_replicas = reconcile_replicas

    def rules(self) -> tuple[FieldRule, ...]:
        if self.reconcile_replicas:
            return self.field_rules
        return tuple(rule for rule in self.field_rules if rule is not REPLICAS_RULE)


class ServiceDriver(ObjectDriver):
    kind = KIND_SERVICE
    field_rules = SERVICE_FIELD_RULES


class IngressDriver(ObjectDriver):
    kind = KIND_INGRESS
    field_rules = INGRESS_FIELD_RULES
