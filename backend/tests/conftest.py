import pathlib
import sys

import pytest

# Ensure backend root (containing the 'capability_loader' package) is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.manager import CapabilityLoadManager
from capability_loader.capabilities.registry import CapabilityRegistry
from capability_helpers import FakeActivator


@pytest.fixture
def bindings():
    return BindingRegistry()


@pytest.fixture
def activator(bindings):
    return FakeActivator(bindings, delay=0.01)


@pytest.fixture
def registry():
    return CapabilityRegistry()


@pytest.fixture
def manager(registry, bindings, activator):
    return CapabilityLoadManager(
        registry,
        bindings=bindings,
        activator=activator,
        grace_period=0.0,
        progress_interval=0.01,
    )
