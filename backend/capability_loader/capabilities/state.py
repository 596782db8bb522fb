from __future__ import annotations
import itertools
import logging
from typing import Callable, Dict, Optional
from capability_loader.capabilities.models import LoadState, LoadStatus

_log = logging.getLogger(__name__)

StateListener = Callable[[str, LoadState], None]


class Subscription:
    """Handle returned by ``subscribe``; calling it (or ``unsubscribe()``) detaches the listener."""
    def __init__(self, store: 'LoadStateStore', token: int):
        self._store = store
        self._token = token
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._store._remove_listener(self._token)

    def __call__(self) -> None:
        self.unsubscribe()


class LoadStateStore:
    """Per-capability load records plus the listeners told about every transition.

    Records are replaced, never mutated. Progress within one attempt only
    moves forward and stays below 100 until the attempt is finalised as loaded.
    """
    def __init__(self):
        self._states: Dict[str, LoadState] = {}
        self._listeners: Dict[int, StateListener] = {}
        self._tokens = itertools.count(1)
        self._attempts: Dict[str, int] = {}

    # --- listeners ---------------------------------------------------
    def subscribe(self, listener: StateListener) -> Subscription:
        if not callable(listener):
            raise TypeError("listener must be callable")
        token = next(self._tokens)
        self._listeners[token] = listener
        return Subscription(self, token)

    def _remove_listener(self, token: int) -> None:
        self._listeners.pop(token, None)

    def listener_count(self) -> int:
        return len(self._listeners)

    def _emit(self, name: str, state: LoadState) -> None:
        for token, cb in list(self._listeners.items()):
            # Listeners removed by an earlier callback in this round are skipped.
            if token not in self._listeners:
                continue
            try:
                cb(name, state)
            except Exception:
                _log.exception("load state listener failed name=%s", name)

    # --- records -----------------------------------------------------
    def get(self, name: str) -> Optional[LoadState]:
        return self._states.get(name)

    def snapshot(self) -> Dict[str, LoadState]:
        return dict(self._states)

    def _store(self, name: str, state: LoadState) -> LoadState:
        self._states[name] = state
        self._emit(name, state)
        return state

    def begin(self, name: str, message: str) -> LoadState:
        """Start a fresh attempt; any earlier record is replaced."""
        attempt = self._attempts.get(name, 0) + 1
        self._attempts[name] = attempt
        return self._store(name, LoadState(status=LoadStatus.loading, progress=0, message=message, attempt=attempt))

    def advance(self, name: str, progress: int, message: str) -> LoadState:
        current = self._require_loading(name)
        progress = min(max(progress, current.progress), 99)
        return self._store(name, LoadState(
            status=LoadStatus.loading,
            progress=progress,
            message=message,
            attempt=current.attempt,
        ))

    def finish_loaded(self, name: str, message: str) -> LoadState:
        current = self._states.get(name)
        attempt = current.attempt if current is not None else 0
        return self._store(name, LoadState(status=LoadStatus.loaded, progress=100, message=message, attempt=attempt))

    def finish_failed(self, name: str, message: str, error: str) -> LoadState:
        current = self._require_loading(name)
        return self._store(name, LoadState(
            status=LoadStatus.failed,
            progress=current.progress,
            message=message,
            error=error,
            attempt=current.attempt,
        ))

    def _require_loading(self, name: str) -> LoadState:
        current = self._states.get(name)
        if current is None or current.status != LoadStatus.loading:
            raise RuntimeError(f"capability {name!r} has no load in progress")
        return current
