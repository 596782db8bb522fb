"""Load failure taxonomy.

Every failure a caller of ``ensure_loaded`` can observe derives from
``CapabilityLoadError``; ``code`` is the stable identifier surfaced by the API.
"""
from __future__ import annotations
from typing import Sequence


class CapabilityLoadError(Exception):
    code = 'LOAD_FAILED'

    def __init__(self, capability: str, message: str):
        self.capability = capability
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class DescriptorNotFound(CapabilityLoadError, KeyError):
    code = 'CAPABILITY_NOT_FOUND'

    def __init__(self, capability: str):
        super().__init__(capability, f"capability {capability!r} is not registered")


class DependencyFailed(CapabilityLoadError):
    code = 'DEPENDENCY_FAILED'

    def __init__(self, capability: str, dependency: str, cause: BaseException):
        self.dependency = dependency
        self.cause = cause
        super().__init__(capability, f"dependency {dependency!r} failed: {cause}")


class FetchError(CapabilityLoadError):
    code = 'FETCH_FAILED'

    def __init__(self, capability: str, source_location: str, cause: str):
        self.source_location = source_location
        self.cause = cause
        super().__init__(capability, f"failed to load {source_location}: {cause}")


class NotAvailableAfterLoad(CapabilityLoadError):
    code = 'NOT_AVAILABLE_AFTER_LOAD'

    def __init__(self, capability: str):
        super().__init__(capability, "loaded but not available")


class DependencyCycle(ValueError):
    """Raised when a descriptor table would contain a dependency cycle."""

    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__("dependency cycle: " + " -> ".join(self.path))
