"""
Desired state of the objects that make up an APIcast gateway.

``build_desired_state`` is a pure function of the APIcast resource, the
secrets resolved for the current pass and the default image. It reads no
clock, no environment and no cluster state, so identical inputs always
produce identical objects.
"""

from dataclasses import dataclass

from kubernetes import client

from ..constants import (
    ADMIN_PORTAL_URL_KEY,
    APP_LABEL_KEY,
    APP_LABEL_VALUE,
    CONFIGURATION_FILE_PATH,
    CONFIGURATION_MOUNT_PATH,
    CONFIGURATION_VOLUME_NAME,
    CONTAINER_NAME,
    DEFAULT_REPLICAS,
    DEFAULT_RESOURCE_LIMITS,
    DEFAULT_RESOURCE_REQUESTS,
    DEFAULT_SERVICE_ACCOUNT,
    DEPLOYMENT_LABEL_KEY,
    INSTANCE_LABEL_KEY,
    LIVENESS_PATH,
    MANAGEMENT_PORT,
    MANAGEMENT_PORT_NAME,
    METRICS_PORT,
    METRICS_PORT_NAME,
    OPERATOR_LABEL_KEY,
    OPERATOR_LABEL_VALUE,
    PROXY_PORT,
    PROXY_PORT_NAME,
    READINESS_PATH,
    RESOURCE_PREFIX,
    SECRET_VOLUME_DEFAULT_MODE,
)
from ..models import APIcast, APIcastSpec
from ..utils.kubernetes import owner_reference_for
from .secret_resolver import ResolvedSecrets


@dataclass(frozen=True)
class DesiredGatewayState:
    """Objects the gateway should consist of. ``ingress`` is None without an exposed host."""

    deployment: client.V1Deployment
    service: client.V1Service
    ingress: client.V1Ingress | None


def gateway_name(resource_name: str) -> str:
    """Name shared by the Deployment, Service and Ingress of a gateway."""
    return f"{RESOURCE_PREFIX}{resource_name}"


def selector_labels(resource: APIcast) -> dict[str, str]:
    return {
        APP_LABEL_KEY: APP_LABEL_VALUE,
        DEPLOYMENT_LABEL_KEY: gateway_name(resource.name),
    }


def common_labels(resource: APIcast) -> dict[str, str]:
    return {
        **selector_labels(resource),
        OPERATOR_LABEL_KEY: OPERATOR_LABEL_VALUE,
        INSTANCE_LABEL_KEY: resource.name,
    }


def _object_meta(resource: APIcast) -> client.V1ObjectMeta:
    return client.V1ObjectMeta(
        name=gateway_name(resource.name),
        namespace=resource.namespace,
        labels=common_labels(resource),
        owner_references=[owner_reference_for(resource)],
    )


def _bool_value(value: bool) -> str:
    return "true" if value else "false"


def build_environment(
    spec: APIcastSpec, secrets: ResolvedSecrets
) -> list[client.V1EnvVar]:
    """
    Environment of the gateway container.

    Unset tuning fields contribute no variable at all, so the gateway's own
    defaults apply.
    """
    env: list[client.V1EnvVar] = []

    if secrets.admin_portal is not None:
        env.append(
            client.V1EnvVar(
                name="THREESCALE_PORTAL_ENDPOINT",
                value_from=client.V1EnvVarSource(
                    secret_key_ref=client.V1SecretKeySelector(
                        name=secrets.admin_portal.metadata.name,
                        key=ADMIN_PORTAL_URL_KEY,
                    )
                ),
            )
        )

    values: list[tuple[str, str | None]] = [
        ("THREESCALE_DEPLOYMENT_ENV", spec.deployment_environment),
        ("RESOLVER", spec.dns_resolver_address),
        (
            "APICAST_SERVICES_LIST",
            ",".join(spec.enabled_services)
            if spec.enabled_services is not None
            else None,
        ),
        ("APICAST_CONFIGURATION_LOADER", spec.configuration_load_mode),
        ("APICAST_LOG_LEVEL", spec.log_level),
        (
            "APICAST_PATH_ROUTING",
            _bool_value(spec.path_routing_enabled)
            if spec.path_routing_enabled is not None
            else None,
        ),
        (
            "APICAST_RESPONSE_CODES",
            _bool_value(spec.response_codes_included)
            if spec.response_codes_included is not None
            else None,
        ),
        (
            "APICAST_CONFIGURATION_CACHE",
            str(spec.cache_configuration_seconds)
            if spec.cache_configuration_seconds is not None
            else None,
        ),
        ("APICAST_MANAGEMENT_API", spec.management_api_scope),
        (
            "OPENSSL_VERIFY",
            _bool_value(spec.open_ssl_peer_verification_enabled)
            if spec.open_ssl_peer_verification_enabled is not None
            else None,
        ),
    ]
    env.extend(
        client.V1EnvVar(name=name, value=value)
        for name, value in values
        if value is not None
    )

    if secrets.embedded_configuration is not None:
        env.append(
            client.V1EnvVar(name="THREESCALE_CONFIG_FILE", value=CONFIGURATION_FILE_PATH)
        )

    return env


def _http_probe(path: str, initial_delay: int) -> client.V1Probe:
    return client.V1Probe(
        http_get=client.V1HTTPGetAction(path=path, port=MANAGEMENT_PORT),
        initial_delay_seconds=initial_delay,
        timeout_seconds=5,
        period_seconds=10,
    )


def build_deployment(
    resource: APIcast, secrets: ResolvedSecrets, default_image: str
) -> client.V1Deployment:
    spec = resource.spec

    volumes: list[client.V1Volume] | None = None
    volume_mounts: list[client.V1VolumeMount] | None = None
    if secrets.embedded_configuration is not None:
        volumes = [
            client.V1Volume(
                name=CONFIGURATION_VOLUME_NAME,
                secret=client.V1SecretVolumeSource(
                    secret_name=secrets.embedded_configuration.metadata.name,
                    default_mode=SECRET_VOLUME_DEFAULT_MODE,
                ),
            )
        ]
        volume_mounts = [
            client.V1VolumeMount(
                name=CONFIGURATION_VOLUME_NAME,
                mount_path=CONFIGURATION_MOUNT_PATH,
                read_only=True,
            )
        ]

    container = client.V1Container(
        name=CONTAINER_NAME,
        image=spec.image if spec.image is not None else default_image,
        ports=[
            client.V1ContainerPort(
                name=PROXY_PORT_NAME, container_port=PROXY_PORT, protocol="TCP"
            ),
            client.V1ContainerPort(
                name=MANAGEMENT_PORT_NAME, container_port=MANAGEMENT_PORT, protocol="TCP"
            ),
            client.V1ContainerPort(
                name=METRICS_PORT_NAME, container_port=METRICS_PORT, protocol="TCP"
            ),
        ],
        env=build_environment(spec, secrets),
        resources=client.V1ResourceRequirements(
            requests=dict(DEFAULT_RESOURCE_REQUESTS),
            limits=dict(DEFAULT_RESOURCE_LIMITS),
        ),
        liveness_probe=_http_probe(LIVENESS_PATH, initial_delay=10),
        readiness_probe=_http_probe(READINESS_PATH, initial_delay=15),
        volume_mounts=volume_mounts,
    )

    annotations = secrets.resource_version_annotations() or None

    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=_object_meta(resource),
        spec=client.V1DeploymentSpec(
            replicas=spec.replicas if spec.replicas is not None else DEFAULT_REPLICAS,
            selector=client.V1LabelSelector(match_labels=selector_labels(resource)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(
                    labels=common_labels(resource), annotations=annotations
                ),
                spec=client.V1PodSpec(
                    service_account_name=(
                        spec.service_account
                        if spec.service_account is not None
                        else DEFAULT_SERVICE_ACCOUNT
                    ),
                    containers=[container],
                    volumes=volumes,
                ),
            ),
        ),
    )


def build_service(resource: APIcast) -> client.V1Service:
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=_object_meta(resource),
        spec=client.V1ServiceSpec(
            type="ClusterIP",
            selector=selector_labels(resource),
            ports=[
                client.V1ServicePort(
                    name=PROXY_PORT_NAME,
                    port=PROXY_PORT,
                    target_port=PROXY_PORT,
                    protocol="TCP",
                ),
                client.V1ServicePort(
                    name=MANAGEMENT_PORT_NAME,
                    port=MANAGEMENT_PORT,
                    target_port=MANAGEMENT_PORT,
                    protocol="TCP",
                ),
            ],
        ),
    )


def build_ingress(resource: APIcast) -> client.V1Ingress | None:
    exposed_host = resource.spec.exposed_host
    if exposed_host is None:
        return None

    rule = client.V1IngressRule(
        host=exposed_host.host,
        http=client.V1HTTPIngressRuleValue(
            paths=[
                client.V1HTTPIngressPath(
                    path="/",
                    path_type="Prefix",
                    backend=client.V1IngressBackend(
                        service=client.V1IngressServiceBackend(
                            name=gateway_name(resource.name),
                            port=client.V1ServiceBackendPort(number=PROXY_PORT),
                        )
                    ),
                )
            ]
        ),
    )

    tls = None
    if exposed_host.tls:
        tls = [
            client.V1IngressTLS(hosts=entry.hosts, secret_name=entry.secret_name)
            for entry in exposed_host.tls
        ]

    return client.V1Ingress(
        api_version="networking.k8s.io/v1",
        kind="Ingress",
        metadata=_object_meta(resource),
        spec=client.V1IngressSpec(rules=[rule], tls=tls),
    )


def build_desired_state(
    resource: APIcast, secrets: ResolvedSecrets, default_image: str
) -> DesiredGatewayState:
    """
    Compute the canonical objects for a gateway.

    Args:
        resource: The APIcast resource, after default filling
        secrets: Secrets resolved for this pass
        default_image: Image used when ``spec.image`` is unset

    Returns:
        Deployment, Service and, when ``spec.exposedHost`` is set, Ingress
    """
    return DesiredGatewayState(
        deployment=build_deployment(resource, secrets, default_image),
        service=build_service(resource),
        ingress=build_ingress(resource),
    )
