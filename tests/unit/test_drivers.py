"""
Unit tests for the per-kind reconcile drivers and the field tables.
"""

from kubernetes import client

from apicast_operator.models import APIcast
from apicast_operator.services.desired_state import (
    build_deployment,
    build_ingress,
    build_service,
)
from apicast_operator.services.drivers import (
    DeploymentDriver,
    DriverOutcome,
    FieldRule,
    FieldStrategy,
    IngressDriver,
    ServiceDriver,
    apply_field_rules,
)
from apicast_operator.services.secret_resolver import ResolvedSecrets
from tests.fixtures.apicast_resources import (
    NAMESPACE,
    apicast_body,
    gateway_config_secret,
)

IMAGE = "quay.io/3scale/apicast:test"


def _resource(**spec):
    spec.setdefault("replicas", 1)
    return APIcast.from_body(apicast_body(**spec))


def _deployment(resource, secrets=None):
    return build_deployment(resource, secrets or ResolvedSecrets(), IMAGE)


def _env(deployment):
    container = deployment.spec.template.spec.containers[0]
    return [(var.name, var.value) for var in container.env or []]


class _Box:
    def __init__(self, items):
        self.items = items


def _items_rule(strategy, key=None):
    return FieldRule(
        "items",
        lambda box: box.items,
        lambda box, value: setattr(box, "items", value),
        strategy,
        key=key,
    )


class TestApplyFieldRules:
    """Test cases for the field strategies."""

    def test_scalar_replaces_different_value(self):
        live = _Box(1)

        changed = apply_field_rules([_items_rule(FieldStrategy.SCALAR)], _Box(2), live)

        assert changed == ["items"]
        assert live.items == 2

    def test_exact_set_treats_empty_and_none_alike(self):
        live = _Box([])

        changed = apply_field_rules(
            [_items_rule(FieldStrategy.EXACT_SET)], _Box(None), live
        )

        assert changed == []
        assert live.items == []

    def test_exact_set_replaces_whole_list(self):
        live = _Box(["v1", "v2"])

        changed = apply_field_rules(
            [_items_rule(FieldStrategy.EXACT_SET)], _Box(["v1"]), live
        )

        assert changed == ["items"]
        assert live.items == ["v1"]

    def test_keyed_merge_upserts_and_keeps_foreign_items(self):
        live = _Box([("a", 1), ("x", 9)])
        rule = _items_rule(FieldStrategy.KEYED_MERGE, key=lambda item: item[0])

        changed = apply_field_rules([rule], _Box([("a", 2), ("b", 3)]), live)

        assert changed == ["items"]
        assert live.items == [("a", 2), ("x", 9), ("b", 3)]

    def test_keyed_merge_without_difference(self):
        live = _Box([("a", 1), ("x", 9)])
        rule = _items_rule(FieldStrategy.KEYED_MERGE, key=lambda item: item[0])

        assert apply_field_rules([rule], _Box([("a", 1)]), live) == []

    def test_host_merge_only_appends_missing_keys(self):
        live = _Box([("old.example.com", "live")])
        rule = _items_rule(FieldStrategy.HOST_MERGE, key=lambda item: item[0])

        changed = apply_field_rules(
            [rule],
            _Box([("old.example.com", "desired"), ("new.example.com", "desired")]),
            live,
        )

        assert changed == ["items"]
        assert live.items == [
            ("old.example.com", "live"),
            ("new.example.com", "desired"),
        ]


class TestDeploymentDriver:
    """Test cases for Deployment reconciliation."""

    def test_creates_when_absent(self, store):
        desired = _deployment(_resource())

        outcome = DeploymentDriver(store).reconcile(desired)

        assert outcome is DriverOutcome.CREATED
        assert store.writes == [("create", "Deployment", NAMESPACE, "apicast-example")]

    def test_no_write_when_up_to_date(self, store):
        desired = _deployment(_resource())
        store.add("Deployment", desired)

        outcome = DeploymentDriver(store).reconcile(desired)

        assert outcome is DriverOutcome.UNCHANGED
        assert store.writes == []

    def test_env_is_merged_additively(self, store):
        live = _deployment(_resource(deploymentEnvironment="staging"))
        live.spec.template.spec.containers[0].env = [
            client.V1EnvVar(name="A", value="1")
        ]
        store.add("Deployment", live)
        desired = _deployment(_resource())
        desired.spec.template.spec.containers[0].env = [
            client.V1EnvVar(name="B", value="2")
        ]

        outcome = DeploymentDriver(store).reconcile(desired)

        assert outcome is DriverOutcome.UPDATED
        updated = store.get("Deployment", NAMESPACE, "apicast-example")
        assert _env(updated) == [("A", "1"), ("B", "2")]

    def test_env_value_is_updated_in_place(self, store):
        store.add("Deployment", _deployment(_resource(logLevel="info")))

        DeploymentDriver(store).reconcile(_deployment(_resource(logLevel="debug")))

        updated = store.get("Deployment", NAMESPACE, "apicast-example")
        assert _env(updated) == [("APICAST_LOG_LEVEL", "debug")]

    def test_volumes_are_replaced_exactly(self, store):
        live = _deployment(
            _resource(),
            ResolvedSecrets(embedded_configuration=gateway_config_secret()),
        )
        extra = client.V1Volume(
            name="v2", empty_dir=client.V1EmptyDirVolumeSource()
        )
        live.spec.template.spec.volumes.append(extra)
        store.add("Deployment", live)
        desired = _deployment(
            _resource(),
            ResolvedSecrets(embedded_configuration=gateway_config_secret()),
        )

        DeploymentDriver(store).reconcile(desired)

        updated = store.get("Deployment", NAMESPACE, "apicast-example")
        assert [v.name for v in updated.spec.template.spec.volumes] == [
            "gateway-configuration-volume"
        ]

    def test_replicas_restored(self, store):
        live = _deployment(_resource())
        live.spec.replicas = 5
        store.add("Deployment", live)

        outcome = DeploymentDriver(store).reconcile(_deployment(_resource()))

        assert outcome is DriverOutcome.UPDATED
        assert store.get("Deployment", NAMESPACE, "apicast-example").spec.replicas == 1

    def test_replicas_left_alone_when_disabled(self, store):
        live = _deployment(_resource())
        live.spec.replicas = 5
        store.add("Deployment", live)

        outcome = DeploymentDriver(store, reconcile_replicas=False).reconcile(
            _deployment(_resource())
        )

        assert outcome is DriverOutcome.UNCHANGED
        assert store.get("Deployment", NAMESPACE, "apicast-example").spec.replicas == 5

    def test_unowned_fields_survive_update(self, store):
        live = _deployment(_resource())
        live.spec.template.spec.node_selector = {"zone": "a"}
        store.add("Deployment", live)

        DeploymentDriver(store).reconcile(_deployment(_resource(image="custom:1")))

        updated = store.get("Deployment", NAMESPACE, "apicast-example")
        assert updated.spec.template.spec.containers[0].image == "custom:1"
        assert updated.spec.template.spec.node_selector == {"zone": "a"}


class TestServiceDriver:
    """Test cases for Service reconciliation."""

    def test_creates_when_absent(self, store):
        outcome = ServiceDriver(store).reconcile(build_service(_resource()))

        assert outcome is DriverOutcome.CREATED

    def test_existing_service_is_never_updated(self, store):
        live = build_service(_resource())
        live.spec.type = "NodePort"
        store.add("Service", live)

        outcome = ServiceDriver(store).reconcile(build_service(_resource()))

        assert outcome is DriverOutcome.UNCHANGED
        assert store.writes == []


class TestIngressDriver:
    """Test cases for Ingress reconciliation."""

    def test_host_change_keeps_old_rule(self, store):
        store.add(
            "Ingress", build_ingress(_resource(exposedHost={"host": "old.example.com"}))
        )

        outcome = IngressDriver(store).reconcile(
            build_ingress(_resource(exposedHost={"host": "new.example.com"}))
        )

        assert outcome is DriverOutcome.UPDATED
        updated = store.get("Ingress", NAMESPACE, "apicast-example")
        assert [rule.host for rule in updated.spec.rules] == [
            "old.example.com",
            "new.example.com",
        ]

    def test_tls_is_replaced_exactly(self, store):
        store.add(
            "Ingress",
            build_ingress(
                _resource(
                    exposedHost={
                        "host": "gw.example.com",
                        "tls": [{"hosts": ["gw.example.com"], "secretName": "old"}],
                    }
                )
            ),
        )

        IngressDriver(store).reconcile(
            build_ingress(_resource(exposedHost={"host": "gw.example.com"}))
        )

        updated = store.get("Ingress", NAMESPACE, "apicast-example")
        assert updated.spec.tls is None

    def test_same_host_no_write(self, store):
        desired = build_ingress(_resource(exposedHost={"host": "gw.example.com"}))
        store.add("Ingress", desired)

        assert IngressDriver(store).reconcile(desired) is DriverOutcome.UNCHANGED
        assert store.writes == []
