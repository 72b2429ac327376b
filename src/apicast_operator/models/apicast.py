"""
Pydantic models for APIcast gateway resources.

This module defines type-safe data models for the APIcast custom resource.
Every spec field is optional: ``None`` means the user left the field unset,
which is distinct from any explicit value. Serialization drops unset fields
so a resource written back by the operator keeps them absent.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import (
    APICAST_API_VERSION,
    APICAST_KIND,
    CONDITION_FALSE,
    CONDITION_TRUE,
    CONDITION_UNKNOWN,
)

ConfigurationLoadMode = Literal["boot", "lazy"]
GatewayLogLevel = Literal[
    "debug", "info", "notice", "warn", "error", "crit", "alert", "emerg"
]
ManagementAPIScope = Literal["disabled", "status", "policies", "debug"]


class SecretReference(BaseModel):
    """
    Reference to a secret in the namespace of the APIcast resource.

    ``name`` is optional at the schema level so that an incomplete reference
    is reported by the reconciler instead of being rejected while parsing.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, description="Name of the secret")


class IngressTLS(BaseModel):
    """TLS entry copied verbatim into the gateway Ingress."""

    model_config = ConfigDict(populate_by_name=True)

    hosts: list[str] | None = Field(None, description="Hosts covered by the certificate")
    secret_name: str | None = Field(
        None,
        alias="secretName",
        description="Name of secret containing TLS certificate and key",
    )


class ExposedHost(BaseModel):
    """External exposure of the gateway through an Ingress."""

    model_config = ConfigDict(populate_by_name=True)

    host: str = Field(..., description="Hostname routed to the gateway")
    tls: list[IngressTLS] | None = Field(None, description="Ingress TLS configuration")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        if not v or not v.strip():
            raise ValueError("exposedHost.host must not be empty")
        return v


class APIcastSpec(BaseModel):
    """
    Specification of an APIcast gateway.

    Fields left as ``None`` are unset. Defaults for replicas, image and
    service account are applied by the operator, not by the model.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    replicas: int | None = Field(None, ge=0, description="Number of gateway pods")
    image: str | None = Field(None, description="Gateway container image")
    service_account: str | None = Field(
        None, alias="serviceAccount", description="Service account of gateway pods"
    )
    exposed_host: ExposedHost | None = Field(
        None, alias="exposedHost", description="Expose the gateway through an Ingress"
    )
    admin_portal_credentials_ref: SecretReference | None = Field(
        None,
        alias="adminPortalCredentialsRef",
        description="Secret holding the AdminPortalURL key",
    )
    embedded_configuration_secret_ref: SecretReference | None = Field(
        None,
        alias="embeddedConfigurationSecretRef",
        description="Secret holding the config.json key",
    )
    deployment_environment: str | None = Field(
        None, alias="deploymentEnvironment", description="3scale deployment environment"
    )
    dns_resolver_address: str | None = Field(
        None, alias="dnsResolverAddress", description="DNS resolver used by the gateway"
    )
    enabled_services: list[str] | None = Field(
        None, alias="enabledServices", description="Service IDs the gateway loads"
    )
    configuration_load_mode: ConfigurationLoadMode | None = Field(
        None, alias="configurationLoadMode", description="When configuration is loaded"
    )
    log_level: GatewayLogLevel | None = Field(
        None, alias="logLevel", description="Gateway log level"
    )
    path_routing_enabled: bool | None = Field(
        None, alias="pathRoutingEnabled", description="Route requests by path"
    )
    response_codes_included: bool | None = Field(
        None,
        alias="responseCodesIncluded",
        description="Report response codes to the analytics backend",
    )
    cache_configuration_seconds: int | None = Field(
        None,
        alias="cacheConfigurationSeconds",
        description="Configuration cache TTL in seconds",
    )
    management_api_scope: ManagementAPIScope | None = Field(
        None, alias="managementAPIScope", description="Scope of the management API"
    )
    open_ssl_peer_verification_enabled: bool | None = Field(
        None,
        alias="openSSLPeerVerificationEnabled",
        description="Verify upstream TLS peers",
    )


class APIcastCondition(BaseModel):
    """Status condition for an APIcast gateway."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="Condition type")
    status: str = Field(..., description="Condition status (True/False/Unknown)")
    reason: str | None = Field(None, description="Reason for the condition")
    message: str | None = Field(None, description="Human-readable message")
    last_transition_time: str | None = Field(
        None,
        alias="lastTransitionTime",
        description="Last time the condition transitioned",
    )
    observed_generation: int | None = Field(
        None,
        alias="observedGeneration",
        description="Generation the condition was computed for",
    )

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in (CONDITION_TRUE, CONDITION_FALSE, CONDITION_UNKNOWN):
            raise ValueError("Condition status must be True, False or Unknown")
        return v


class APIcastStatus(BaseModel):
    """Status of an APIcast gateway as observed by the operator."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    phase: str | None = Field(None, description="Current phase")
    message: str | None = Field(None, description="Human-readable status message")
    observed_generation: int | None = Field(
        None,
        alias="observedGeneration",
        description="Generation of the spec that was last processed",
    )
    conditions: list[APIcastCondition] = Field(
        default_factory=list, description="Detailed status conditions"
    )


class APIcast(BaseModel):
    """
    Complete APIcast custom resource model.

    This represents the full Kubernetes custom resource including
    metadata, spec, and status sections.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field(APICAST_API_VERSION, alias="apiVersion")
    kind: str = Field(APICAST_KIND)
    metadata: dict[str, Any] = Field(..., description="Kubernetes metadata")
    spec: APIcastSpec = Field(default_factory=APIcastSpec)
    status: APIcastStatus | None = Field(
        None, description="APIcast status (managed by operator)"
    )

    @classmethod
    def from_body(cls, body: Any) -> "APIcast":
        """Build the model from a kopf body or a plain resource dict."""
        data = dict(body)
        data["metadata"] = dict(data.get("metadata") or {})
        data["spec"] = dict(data.get("spec") or {})
        if data.get("status") is not None:
            data["status"] = dict(data["status"])
        return cls.model_validate(data)

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "default")

    @property
    def uid(self) -> str | None:
        return self.metadata.get("uid")

    @property
    def resource_version(self) -> str | None:
        return self.metadata.get("resourceVersion")

    @property
    def generation(self) -> int:
        return self.metadata.get("generation") or 0

    def to_body(self) -> dict[str, Any]:
        """Serialize for a write through the API, leaving unset fields absent."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"status"})
