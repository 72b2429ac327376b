"""
Operator error hierarchy with categorization and retry logic.

This module defines the error types used throughout the APIcast operator,
providing clear categorization and integration with kopf's retry mechanisms.
"""

import kopf


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 30,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (validation, api, configuration, external)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.retryable = retryable
        self.delay = delay
        self.user_action = user_action
        self.cause = cause

    def as_kopf_error(self):
        """Convert to appropriate kopf exception type."""
        if self.retryable:
            return kopf.TemporaryError(str(self), delay=self.delay)
        else:
            return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ValidationError(OperatorError):
    """Error in resource specification validation."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        action = user_action or "Check resource specification and fix validation errors"
        if field:
            message = f"Validation error in field '{field}': {message}"
        super().__init__(
            message=message, category="validation", retryable=False, user_action=action
        )
        self.field = field


class TemporaryError(OperatorError):
    """Temporary error that should be retried."""

    def __init__(self, message: str, delay: int = 30, user_action: str | None = None):
        super().__init__(
            message=message,
            category="temporary",
            retryable=True,
            delay=delay,
            user_action=user_action
            or "Wait for automatic retry or check system status",
        )


class ExternalServiceError(OperatorError):
    """Error communicating with external services."""

    def __init__(
        self,
        service: str,
        message: str,
        retryable: bool = True,
        delay: int = 60,
        user_action: str | None = None,
    ):
        action = user_action or f"Check {service} connectivity and credentials"
        super().__init__(
            message=f"{service} error: {message}",
            category="external",
            retryable=retryable,
            delay=delay,
            user_action=action,
        )


class KubernetesAPIError(ExternalServiceError):
    """Error communicating with Kubernetes API."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        retryable: bool = True,
        status_code: int | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"

        # Some K8s errors are not retryable
        non_retryable_reasons = {"Forbidden", "Unauthorized", "Invalid"}
        if reason in non_retryable_reasons:
            retryable = False

        super().__init__(
            service="Kubernetes API",
            message=message,
            retryable=retryable,
            user_action="Check RBAC permissions and cluster connectivity",
        )
        self.reason = reason
        self.status_code = status_code


class ConflictError(TemporaryError):
    """Write rejected because the object changed since it was read (HTTP 409)."""

    def __init__(self, kind: str, namespace: str, name: str, delay: int = 5):
        super().__init__(
            message=f"Conflict writing {kind} {namespace}/{name}: object was modified",
            delay=delay,
            user_action="No action required, the object is re-read on the next pass",
        )
        self.kind = kind


class AlreadyExistsError(TemporaryError):
    """Create rejected because an object with the same name exists (HTTP 409)."""

    def __init__(self, kind: str, namespace: str, name: str, delay: int = 5):
        super().__init__(
            message=f"{kind} {namespace}/{name} already exists",
            delay=delay,
            user_action="No action required, the existing object is reconciled on the next pass",
        )
        self.kind = kind


class SecretReferenceIncompleteError(ValidationError):
    """A secret reference is present on the resource but carries no name."""

    def __init__(self, reference_field: str):
        super().__init__(
            message=f"Field 'name' not specified for {reference_field} Secret Reference",
            field=f"spec.{reference_field}.name",
            user_action=f"Set spec.{reference_field}.name or remove the reference",
        )


class SecretNotFoundError(TemporaryError):
    """A referenced secret does not exist (yet)."""

    def __init__(self, secret_name: str, namespace: str):
        super().__init__(
            message=f"Secret '{secret_name}' not found in namespace '{namespace}'",
            delay=30,
            user_action=f"Create secret '{secret_name}' in namespace '{namespace}'",
        )
        self.secret_name = secret_name


class SecretValidationError(OperatorError):
    """A referenced secret exists but its content is unusable.

    Retried with a long delay: the secret can be corrected without an edit
    to the APIcast resource, so no new resource event would trigger a pass.
    """

    def __init__(self, message: str, secret_name: str, user_action: str):
        super().__init__(
            message=message,
            category="secret",
            retryable=True,
            delay=60,
            user_action=user_action,
        )
        self.secret_name = secret_name


class SecretKeyMissingError(SecretValidationError):
    """A required key is absent from a referenced secret."""

    def __init__(self, key: str, secret_name: str):
        super().__init__(
            message=f"Required key '{key}' not found in secret '{secret_name}'",
            secret_name=secret_name,
            user_action=f"Add key '{key}' to secret '{secret_name}'",
        )
        self.key = key


class CredentialMissingError(SecretValidationError):
    """The admin portal URL has no access token in its user-info section."""

    def __init__(self, key: str, secret_name: str, detail: str | None = None):
        message = f"Access Token required in {key} URL of secret '{secret_name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message=message,
            secret_name=secret_name,
            user_action=f"Set {key} to https://<access-token>@<admin-portal-host>",
        )
        self.key = key


class OwnershipConflictError(OperatorError):
    """An object is already controlled by a different owner."""

    def __init__(self, kind: str, namespace: str, name: str, current_owner: str):
        super().__init__(
            message=(
                f"{kind} {namespace}/{name} is already controlled by {current_owner}"
            ),
            category="ownership",
            retryable=True,
            delay=60,
            user_action=(
                f"Reference a {kind} that is not used by another controller, "
                "or remove the existing controller reference"
            ),
        )
        self.kind = kind
        self.current_owner = current_owner
