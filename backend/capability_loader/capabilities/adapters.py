from __future__ import annotations
import logging
from typing import Callable, List, Optional

from capability_loader.capabilities.errors import CapabilityLoadError, DescriptorNotFound
from capability_loader.capabilities.manager import CapabilityLoadManager
from capability_loader.capabilities.models import LoadState, LoadStatus

_log = logging.getLogger(__name__)


class CapabilityWatcher:
    """Tracks one capability for a progress widget or feature gate.

    Keeps the latest ``LoadState`` for ``name`` and forwards it to optional
    callbacks. ``load()`` reports failure through its return value and the
    tracked state rather than raising, so a UI can offer a retry.
    """
    def __init__(self, manager: CapabilityLoadManager, name: str, *, on_change: Optional[Callable[[LoadState], None]] = None):
        if manager.get_descriptor(name) is None:
            raise DescriptorNotFound(name)
        self.manager = manager
        self.name = name
        self.state: Optional[LoadState] = manager.get_state(name)
        self.history: List[LoadState] = []
        self._on_change = on_change
        self._subscription = manager.subscribe(self._handle)

    def _handle(self, name: str, state: LoadState) -> None:
        if name != self.name:
            return
        self.state = state
        self.history.append(state)
        if self._on_change is not None:
            self._on_change(state)

    @property
    def status(self) -> LoadStatus:
        return self.state.status if self.state is not None else LoadStatus.idle

    @property
    def is_loaded(self) -> bool:
        return self.manager.is_loaded(self.name)

    @property
    def error(self) -> Optional[str]:
        return self.state.error if self.state is not None else None

    async def load(self) -> bool:
        try:
            await self.manager.ensure_loaded(self.name)
        except CapabilityLoadError as exc:
            _log.warning("capability load failed name=%s error=%s", self.name, exc)
            return False
        return True

    def close(self) -> None:
        self._subscription.unsubscribe()

    def __enter__(self) -> 'CapabilityWatcher':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
