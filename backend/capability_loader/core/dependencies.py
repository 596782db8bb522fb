"""
Dependency injection setup for the application.
Provides the FastAPI dependency for the capability load manager.
"""

from functools import lru_cache
from typing import Annotated, Optional
from fastapi import Depends

from capability_loader.capabilities.catalog import build_registry
from capability_loader.capabilities.manager import CapabilityLoadManager
from capability_loader.core.config import settings

# Allows tests to run routes against an isolated manager
_manager_override: Optional[CapabilityLoadManager] = None


@lru_cache()
def _default_manager() -> CapabilityLoadManager:
    return CapabilityLoadManager.from_settings(settings, build_registry(settings))


def get_capability_manager() -> CapabilityLoadManager:
    """Get the process CapabilityLoadManager, built from settings on first use."""
    if _manager_override is not None:
        return _manager_override
    return _default_manager()


def set_capability_manager_override(manager: Optional[CapabilityLoadManager]) -> None:
    """Set (or clear with None) the manager returned to routes."""
    global _manager_override
    _manager_override = manager


def reset_default_manager() -> None:
    _default_manager.cache_clear()


# FastAPI dependency type annotation
CapabilityManagerDep = Annotated[CapabilityLoadManager, Depends(get_capability_manager)]
