"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for the APIcast custom resource: spec, status and
the secret and ingress references it carries.
"""

from .apicast import (
    APIcast,
    APIcastCondition,
    APIcastSpec,
    APIcastStatus,
    ExposedHost,
    IngressTLS,
    SecretReference,
)

__all__ = [
    "APIcast",
    "APIcastCondition",
    "APIcastSpec",
    "APIcastStatus",
    "ExposedHost",
    "IngressTLS",
    "SecretReference",
]
