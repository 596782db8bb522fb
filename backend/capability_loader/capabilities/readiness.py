from __future__ import annotations
import logging
from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.models import CapabilityDescriptor

_log = logging.getLogger(__name__)


def is_ready(descriptor: CapabilityDescriptor, bindings: BindingRegistry) -> bool:
    """Return True when the capability can be used right now.

    Uses the descriptor's predicate when present, otherwise looks for the
    conventional binding. A predicate that raises counts as not ready.
    """
    predicate = descriptor.readiness_predicate
    if predicate is None:
        return bindings.has(descriptor.binding_name)
    try:
        return bool(predicate(bindings))
    except Exception as exc:
        _log.debug("readiness predicate raised name=%s error=%s", descriptor.name, exc)
        return False
