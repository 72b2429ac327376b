"""Shared pytest fixtures for APIcast operator unit tests."""

import copy
from typing import Any

import pytest

from apicast_operator.errors import AlreadyExistsError, ConflictError, KubernetesAPIError
from apicast_operator.models import APIcast
from apicast_operator.utils.kubernetes import object_meta


def _resource_version(obj: Any) -> str | None:
    if isinstance(obj, dict):
        return obj.get("metadata", {}).get("resourceVersion")
    return obj.metadata.resource_version


def _set_resource_version(obj: Any, version: str) -> None:
    if isinstance(obj, dict):
        obj.setdefault("metadata", {})["resourceVersion"] = version
    else:
        obj.metadata.resource_version = version


class FakeObjectStore:
    """
    In-memory ObjectStore.

    Objects are copied on the way in and out, resourceVersions are bumped on
    every write and stale updates raise ConflictError like the API server.
    Every create and update is recorded in ``writes``.
    """

    def __init__(self):
        self.objects: dict[tuple[str, str, str], Any] = {}
        self.writes: list[tuple[str, str, str, str]] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add(self, kind: str, obj: Any) -> Any:
        """Seed an object without recording a write."""
        namespace, name = object_meta(obj)
        stored = copy.deepcopy(obj)
        _set_resource_version(stored, self._next_version())
        self.objects[(kind, namespace, name)] = stored
        return copy.deepcopy(stored)

    def get(self, kind: str, namespace: str, name: str) -> Any | None:
        obj = self.objects.get((kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def create(self, kind: str, obj: Any) -> Any:
        namespace, name = object_meta(obj)
        if (kind, namespace, name) in self.objects:
            raise AlreadyExistsError(kind, namespace, name)
        self.writes.append(("create", kind, namespace, name))
        return self.add(kind, obj)

    def update(self, kind: str, obj: Any) -> Any:
        namespace, name = object_meta(obj)
        current = self.objects.get((kind, namespace, name))
        if current is None:
            raise KubernetesAPIError(
                f"Failed to update {kind} {namespace}/{name}",
                reason="NotFound",
                retryable=False,
                status_code=404,
            )
        if _resource_version(obj) != _resource_version(current):
            raise ConflictError(kind, namespace, name)
        self.writes.append(("update", kind, namespace, name))
        return self.add(kind, obj)

    def writes_of(self, kind: str) -> list[tuple[str, str, str, str]]:
        return [write for write in self.writes if write[1] == kind]

    def load_apicast(self, namespace: str, name: str) -> APIcast:
        """Current APIcast resource, as the next event would deliver it."""
        return APIcast.from_body(self.get("APIcast", namespace, name))


class MockStatus:
    """Mock status object that allows dynamic attribute assignment."""

    def __init__(self):
        self.phase = None
        self.message = None
        self.observedGeneration = None
        self.conditions = []

    def __setattr__(self, name: str, value) -> None:
        self.__dict__[name] = value

    def __getattr__(self, name: str):
        return self.__dict__.get(name)


@pytest.fixture
def store():
    """Empty in-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def status():
    """Mock status object."""
    return MockStatus()
