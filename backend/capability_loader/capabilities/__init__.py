"""On-demand loading of optional heavyweight capabilities."""
from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.errors import (
    CapabilityLoadError,
    DependencyCycle,
    DependencyFailed,
    DescriptorNotFound,
    FetchError,
    NotAvailableAfterLoad,
)
from capability_loader.capabilities.manager import CapabilityLoadManager
from capability_loader.capabilities.models import CapabilityDescriptor, LoadState, LoadStatus
from capability_loader.capabilities.registry import CapabilityRegistry

__all__ = [
    "BindingRegistry",
    "CapabilityDescriptor",
    "CapabilityLoadError",
    "CapabilityLoadManager",
    "CapabilityRegistry",
    "DependencyCycle",
    "DependencyFailed",
    "DescriptorNotFound",
    "FetchError",
    "LoadState",
    "LoadStatus",
    "NotAvailableAfterLoad",
]
