"""
Unit tests for the desired state builder.

The builder is a pure function, so these tests only construct inputs and
inspect the returned Kubernetes objects.
"""

from apicast_operator.models import APIcast
from apicast_operator.services.desired_state import (
    build_desired_state,
    build_environment,
    gateway_name,
)
from apicast_operator.services.secret_resolver import ResolvedSecrets
from tests.fixtures.apicast_resources import (
    COMPLETE_APICAST,
    admin_portal_secret,
    apicast_body,
    gateway_config_secret,
)

DEFAULT_IMAGE = "quay.io/3scale/apicast:nightly"


def _env_map(env):
    return {var.name: var for var in env}


def _complete_secrets():
    admin = admin_portal_secret()
    admin.metadata.resource_version = "10"
    config = gateway_config_secret()
    config.metadata.resource_version = "11"
    return ResolvedSecrets(admin_portal=admin, embedded_configuration=config)


class TestBuildDesiredState:
    """Test cases for build_desired_state."""

    def test_minimal_resource(self):
        resource = APIcast.from_body(apicast_body(replicas=1))

        state = build_desired_state(resource, ResolvedSecrets(), DEFAULT_IMAGE)

        deployment = state.deployment
        container = deployment.spec.template.spec.containers[0]
        assert deployment.metadata.name == "apicast-example"
        assert deployment.metadata.namespace == "gateways"
        assert deployment.spec.replicas == 1
        assert container.name == "apicast"
        assert container.image == DEFAULT_IMAGE
        assert container.env == []
        assert container.volume_mounts is None
        assert deployment.spec.template.spec.service_account_name == "default"
        assert deployment.spec.template.spec.volumes is None
        assert deployment.spec.template.metadata.annotations is None
        assert state.ingress is None

    def test_names_labels_and_selector(self):
        resource = APIcast.from_body(apicast_body(replicas=1))

        state = build_desired_state(resource, ResolvedSecrets(), DEFAULT_IMAGE)

        assert gateway_name("example") == "apicast-example"
        assert state.service.metadata.name == "apicast-example"
        selector = state.deployment.spec.selector.match_labels
        assert selector == {"app": "apicast", "deployment": "apicast-example"}
        assert state.service.spec.selector == selector
        labels = state.deployment.spec.template.metadata.labels
        assert labels["app.kubernetes.io/managed-by"] == "apicast-operator"
        assert labels["apps.3scale.net/instance"] == "example"

    def test_every_object_is_owned_by_the_resource(self):
        resource = APIcast.from_body(COMPLETE_APICAST)

        state = build_desired_state(resource, _complete_secrets(), DEFAULT_IMAGE)

        for obj in (state.deployment, state.service, state.ingress):
            (owner,) = obj.metadata.owner_references
            assert owner.kind == "APIcast"
            assert owner.api_version == "apps.3scale.net/v1alpha1"
            assert owner.name == "production"
            assert owner.uid == resource.uid
            assert owner.controller is True
            assert owner.block_owner_deletion is True

    def test_container_ports_and_probes(self):
        resource = APIcast.from_body(apicast_body(replicas=1))

        container = build_desired_state(
            resource, ResolvedSecrets(), DEFAULT_IMAGE
        ).deployment.spec.template.spec.containers[0]

        ports = {port.name: port.container_port for port in container.ports}
        assert ports == {"proxy": 8080, "management": 8090, "metrics": 9421}
        assert container.liveness_probe.http_get.path == "/status/live"
        assert container.readiness_probe.http_get.path == "/status/ready"
        assert container.readiness_probe.http_get.port == 8090

    def test_service_ports(self):
        resource = APIcast.from_body(apicast_body(replicas=1))

        service = build_desired_state(resource, ResolvedSecrets(), DEFAULT_IMAGE).service

        assert service.spec.type == "ClusterIP"
        assert [(p.name, p.port) for p in service.spec.ports] == [
            ("proxy", 8080),
            ("management", 8090),
        ]

    def test_spec_overrides_defaults(self):
        resource = APIcast.from_body(COMPLETE_APICAST)

        deployment = build_desired_state(
            resource, _complete_secrets(), DEFAULT_IMAGE
        ).deployment

        assert deployment.spec.replicas == 3
        assert deployment.spec.template.spec.containers[0].image == (
            "quay.io/3scale/apicast:3.9"
        )
        assert deployment.spec.template.spec.service_account_name == "apicast"

    def test_explicit_empty_strings_are_not_defaulted(self):
        resource = APIcast.from_body(apicast_body(image="", serviceAccount=""))

        deployment = build_desired_state(
            resource, ResolvedSecrets(), DEFAULT_IMAGE
        ).deployment

        assert deployment.spec.template.spec.containers[0].image == ""
        assert deployment.spec.template.spec.service_account_name == ""

    def test_secret_annotations_volume_and_mount(self):
        resource = APIcast.from_body(COMPLETE_APICAST)

        deployment = build_desired_state(
            resource, _complete_secrets(), DEFAULT_IMAGE
        ).deployment

        pod_spec = deployment.spec.template.spec
        assert deployment.spec.template.metadata.annotations == {
            "apicast.apps.3scale.net/admin-portal-secret-resource-version": "10",
            "apicast.apps.3scale.net/gateway-configuration-secret-resource-version": "11",
        }
        (volume,) = pod_spec.volumes
        assert volume.name == "gateway-configuration-volume"
        assert volume.secret.secret_name == "gateway-config"
        assert volume.secret.default_mode == 420
        (mount,) = pod_spec.containers[0].volume_mounts
        assert mount.mount_path == "/tmp/gateway-configuration-volume"
        assert mount.read_only is True

    def test_ingress_from_exposed_host(self):
        resource = APIcast.from_body(COMPLETE_APICAST)

        ingress = build_desired_state(resource, _complete_secrets(), DEFAULT_IMAGE).ingress

        (rule,) = ingress.spec.rules
        assert rule.host == "api.example.com"
        (path,) = rule.http.paths
        assert path.path == "/"
        assert path.path_type == "Prefix"
        assert path.backend.service.name == "apicast-production"
        assert path.backend.service.port.number == 8080
        (tls,) = ingress.spec.tls
        assert tls.hosts == ["api.example.com"]
        assert tls.secret_name == "api-tls"

    def test_ingress_without_tls(self):
        resource = APIcast.from_body(
            apicast_body(replicas=1, exposedHost={"host": "gw.example.com"})
        )

        ingress = build_desired_state(resource, ResolvedSecrets(), DEFAULT_IMAGE).ingress

        assert ingress.spec.tls is None
        assert ingress.spec.rules[0].host == "gw.example.com"

    def test_identical_inputs_give_identical_objects(self):
        resource = APIcast.from_body(COMPLETE_APICAST)
        secrets = _complete_secrets()

        first = build_desired_state(resource, secrets, DEFAULT_IMAGE)
        second = build_desired_state(resource, secrets, DEFAULT_IMAGE)

        assert first.deployment.to_dict() == second.deployment.to_dict()
        assert first.service.to_dict() == second.service.to_dict()
        assert first.ingress.to_dict() == second.ingress.to_dict()


class TestBuildEnvironment:
    """Test cases for the gateway environment mapping."""

    def test_unset_fields_produce_no_variables(self):
        resource = APIcast.from_body(apicast_body())

        assert build_environment(resource.spec, ResolvedSecrets()) == []

    def test_complete_mapping(self):
        resource = APIcast.from_body(COMPLETE_APICAST)

        env = _env_map(build_environment(resource.spec, _complete_secrets()))

        assert env["THREESCALE_DEPLOYMENT_ENV"].value == "production"
        assert env["RESOLVER"].value == "10.0.0.10"
        assert env["APICAST_SERVICES_LIST"].value == "101,102"
        assert env["APICAST_CONFIGURATION_LOADER"].value == "lazy"
        assert env["APICAST_LOG_LEVEL"].value == "notice"
        assert env["APICAST_PATH_ROUTING"].value == "true"
        assert env["APICAST_RESPONSE_CODES"].value == "false"
        assert env["APICAST_CONFIGURATION_CACHE"].value == "300"
        assert env["APICAST_MANAGEMENT_API"].value == "status"
        assert env["OPENSSL_VERIFY"].value == "true"
        assert env["THREESCALE_CONFIG_FILE"].value == (
            "/tmp/gateway-configuration-volume/config.json"
        )

    def test_portal_endpoint_comes_from_secret(self):
        resource = APIcast.from_body(COMPLETE_APICAST)

        env = _env_map(build_environment(resource.spec, _complete_secrets()))

        endpoint = env["THREESCALE_PORTAL_ENDPOINT"]
        assert endpoint.value is None
        assert endpoint.value_from.secret_key_ref.name == "admin-portal"
        assert endpoint.value_from.secret_key_ref.key == "AdminPortalURL"

    def test_only_set_fields_are_mapped(self):
        resource = APIcast.from_body(apicast_body(pathRoutingEnabled=False))

        env = build_environment(resource.spec, ResolvedSecrets())

        assert [(var.name, var.value) for var in env] == [
            ("APICAST_PATH_ROUTING", "false")
        ]
