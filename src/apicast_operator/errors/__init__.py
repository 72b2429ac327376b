"""
Error handling module for the APIcast operator.

Provides a structured error hierarchy with retry semantics that map onto
kopf's TemporaryError and PermanentError.
"""

from .operator_errors import (
    AlreadyExistsError,
    ConflictError,
    CredentialMissingError,
    ExternalServiceError,
    KubernetesAPIError,
    OperatorError,
    OwnershipConflictError,
    SecretKeyMissingError,
    SecretNotFoundError,
    SecretReferenceIncompleteError,
    SecretValidationError,
    TemporaryError,
    ValidationError,
)

__all__ = [
    "AlreadyExistsError",
    "ConflictError",
    "CredentialMissingError",
    "ExternalServiceError",
    "KubernetesAPIError",
    "OperatorError",
    "OwnershipConflictError",
    "SecretKeyMissingError",
    "SecretNotFoundError",
    "SecretReferenceIncompleteError",
    "SecretValidationError",
    "TemporaryError",
    "ValidationError",
]
