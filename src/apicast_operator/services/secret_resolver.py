"""
Resolution of the user provided secrets an APIcast resource references.

Two secrets are optional inputs to a gateway:
- the admin portal credentials secret, whose ``AdminPortalURL`` key carries
  the portal endpoint with an access token in the user-info section
- the embedded configuration secret, whose ``config.json`` key is mounted
  into the gateway pod

The read-only getters validate a secret without modifying it. The
``reconcile_*`` variants also make the APIcast resource the controller of
the secret so the gateway is restarted when the secret changes.
"""

from dataclasses import dataclass
from urllib.parse import urlparse

from kubernetes import client

from ..constants import (
    ADMIN_PORTAL_SECRET_RESOURCE_VERSION_ANNOTATION,
    ADMIN_PORTAL_URL_KEY,
    EMBEDDED_CONFIGURATION_KEY,
    GATEWAY_CONFIGURATION_SECRET_RESOURCE_VERSION_ANNOTATION,
    KIND_SECRET,
)
from ..errors import (
    CredentialMissingError,
    SecretKeyMissingError,
    SecretNotFoundError,
    SecretReferenceIncompleteError,
)
from ..models import APIcast, SecretReference
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..utils.kubernetes import (
    ObjectStore,
    owner_reference_for,
    secret_value,
    set_controller_reference,
)

ADMIN_PORTAL_REFERENCE_FIELD = "adminPortalCredentialsRef"
EMBEDDED_CONFIGURATION_REFERENCE_FIELD = "embeddedConfigurationSecretRef"


@dataclass(frozen=True)
class ResolvedSecrets:
    """Secrets resolved for one reconcile pass. Never cached across passes."""

    admin_portal: client.V1Secret | None = None
    embedded_configuration: client.V1Secret | None = None

    def resource_version_annotations(self) -> dict[str, str]:
        """Pod template annotations that roll the gateway when a secret changes."""
        annotations: dict[str, str] = {}
        if self.admin_portal is not None:
            annotations[ADMIN_PORTAL_SECRET_RESOURCE_VERSION_ANNOTATION] = (
                self.admin_portal.metadata.resource_version or ""
            )
        if self.embedded_configuration is not None:
            annotations[GATEWAY_CONFIGURATION_SECRET_RESOURCE_VERSION_ANNOTATION] = (
                self.embedded_configuration.metadata.resource_version or ""
            )
        return annotations


class SecretResolver:
    """Fetches, validates and adopts the secrets referenced by an APIcast."""

    def __init__(self, store: ObjectStore):
        self.store = store
        self.logger = OperatorLogger(self.__class__.__name__)

    def get_admin_portal_credentials(self, resource: APIcast) -> client.V1Secret:
        """
        Fetch and validate the admin portal credentials secret.

        Raises:
            SecretReferenceIncompleteError: The reference has no name
            SecretNotFoundError: The secret does not exist
            SecretKeyMissingError: ``AdminPortalURL`` is absent
            CredentialMissingError: The URL carries no access token
        """
        secret = self._get_secret(
            resource,
            resource.spec.admin_portal_credentials_ref,
            ADMIN_PORTAL_REFERENCE_FIELD,
        )
        portal_url = self._required_value(secret, ADMIN_PORTAL_URL_KEY)

        try:
            parsed = urlparse(portal_url)
            username = parsed.username
        except ValueError as e:
            raise CredentialMissingError(
                ADMIN_PORTAL_URL_KEY, secret.metadata.name, detail=str(e)
            ) from e

        if not username:
            raise CredentialMissingError(ADMIN_PORTAL_URL_KEY, secret.metadata.name)

        return secret

    def get_embedded_configuration(self, resource: APIcast) -> client.V1Secret:
        """Fetch the embedded configuration secret and check it has ``config.json``."""
        secret = self._get_secret(
            resource,
            resource.spec.embedded_configuration_secret_ref,
            EMBEDDED_CONFIGURATION_REFERENCE_FIELD,
        )
        self._required_value(secret, EMBEDDED_CONFIGURATION_KEY)
        return secret

    def reconcile_admin_portal_credentials(
        self, resource: APIcast
    ) -> tuple[client.V1Secret | None, bool]:
        """
        Resolve the admin portal secret and make the resource its controller.

        Returns:
            The secret (None when no reference is set) and whether the
            secret was updated
        """
        if resource.spec.admin_portal_credentials_ref is None:
            return None, False
        secret = self.get_admin_portal_credentials(resource)
        return secret, self._ensure_owned(resource, secret)

    def reconcile_embedded_configuration(
        self, resource: APIcast
    ) -> tuple[client.V1Secret | None, bool]:
        """Resolve the embedded configuration secret and make the resource its controller."""
        if resource.spec.embedded_configuration_secret_ref is None:
            return None, False
        secret = self.get_embedded_configuration(resource)
        return secret, self._ensure_owned(resource, secret)

    def inspect(self, resource: APIcast) -> ResolvedSecrets:
        """Resolve both secrets without writing anything."""
        admin_portal = None
        embedded_configuration = None
        if resource.spec.admin_portal_credentials_ref is not None:
            admin_portal = self.get_admin_portal_credentials(resource)
        if resource.spec.embedded_configuration_secret_ref is not None:
            embedded_configuration = self.get_embedded_configuration(resource)
        return ResolvedSecrets(
            admin_portal=admin_portal, embedded_configuration=embedded_configuration
        )

    def _get_secret(
        self,
        resource: APIcast,
        reference: SecretReference | None,
        reference_field: str,
    ) -> client.V1Secret:
        if reference is None or not reference.name:
            raise SecretReferenceIncompleteError(reference_field)

        secret = self.store.get(KIND_SECRET, resource.namespace, reference.name)
        if secret is None:
            raise SecretNotFoundError(reference.name, resource.namespace)
        return secret

    @staticmethod
    def _required_value(secret: client.V1Secret, key: str) -> str:
        value = secret_value(secret, key)
        if value is None:
            raise SecretKeyMissingError(key, secret.metadata.name)
        return value

    def _ensure_owned(self, resource: APIcast, secret: client.V1Secret) -> bool:
        changed = set_controller_reference(
            secret, owner_reference_for(resource), KIND_SECRET
        )
        if not changed:
            return False

        namespace, name = secret.metadata.namespace, secret.metadata.name
        self.logger.log_object_write("update", KIND_SECRET, namespace, name)
        self.store.update(KIND_SECRET, secret)
        metrics_collector.record_object_write(KIND_SECRET, namespace, "update")
        return True
