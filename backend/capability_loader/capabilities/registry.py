from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Set
from capability_loader.capabilities.errors import DependencyCycle, DescriptorNotFound
from capability_loader.capabilities.models import CapabilityDescriptor

_log = logging.getLogger(__name__)


class CapabilityRegistry:
    """Capability descriptor table.

    Entries may be added or replaced until a load attempt references them;
    after that the entry is frozen. Registrations that would close a
    dependency cycle are rejected.
    """
    def __init__(self, descriptors: Iterable[CapabilityDescriptor] = ()):
        self._descriptors: Dict[str, CapabilityDescriptor] = {}
        self._referenced: Set[str] = set()
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: CapabilityDescriptor) -> None:
        name = descriptor.name
        if name in self._referenced:
            raise ValueError(f"capability {name!r} is in use and can no longer be replaced")
        cycle = self._find_cycle(descriptor)
        if cycle:
            raise DependencyCycle(cycle)
        if name in self._descriptors:
            _log.info("replacing capability descriptor name=%s", name)
        self._descriptors[name] = descriptor

    def extend(self, descriptors: Iterable[CapabilityDescriptor]) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def get(self, name: str) -> Optional[CapabilityDescriptor]:
        return self._descriptors.get(name)

    def require(self, name: str) -> CapabilityDescriptor:
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise DescriptorNotFound(name)
        return descriptor

    def mark_referenced(self, name: str) -> None:
        self._referenced.add(name)

    def list(self) -> List[CapabilityDescriptor]:
        return list(self._descriptors.values())

    def names(self) -> List[str]:
        return list(self._descriptors.keys())

    def missing_dependencies(self, name: str) -> List[str]:
        descriptor = self.require(name)
        return [d for d in descriptor.dependencies if d not in self._descriptors]

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def _find_cycle(self, candidate: CapabilityDescriptor) -> List[str]:
        """Return the cycle path the candidate would close, or an empty list."""
        table = dict(self._descriptors)
        table[candidate.name] = candidate
        visited: Set[str] = set()
        path: List[str] = []

        def dfs(name: str) -> List[str]:
            if name in path:
                return path[path.index(name):] + [name]
            if name in visited:
                return []
            descriptor = table.get(name)
            if descriptor is None:
                return []
            path.append(name)
            for dep in descriptor.dependencies:
                found = dfs(dep)
                if found:
                    return found
            path.pop()
            visited.add(name)
            return []

        return dfs(candidate.name)
