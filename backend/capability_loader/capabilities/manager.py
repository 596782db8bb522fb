from __future__ import annotations
import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from capability_loader.capabilities.activation import SourceActivator
from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.errors import (
    CapabilityLoadError,
    DependencyCycle,
    DependencyFailed,
    FetchError,
    NotAvailableAfterLoad,
)
from capability_loader.capabilities.models import CapabilityDescriptor, LoadState, LoadStatus
from capability_loader.capabilities.readiness import is_ready
from capability_loader.capabilities.registry import CapabilityRegistry
from capability_loader.capabilities.state import LoadStateStore, StateListener, Subscription

_log = logging.getLogger(__name__)

Activator = Callable[[CapabilityDescriptor], Awaitable[None]]

DEPENDENCY_PROGRESS = 25
FETCH_PROGRESS = 50
INIT_PROGRESS = 75
INIT_PROGRESS_HEAVY = 90


class CapabilityLoadManager:
    """Loads capabilities on demand, at most one physical load per name at a time.

    Features:
      - Concurrent ``ensure_loaded`` calls for one name share a single operation
      - Prerequisites are ensured in declaration order before the fetch step
      - Per-capability ``LoadState`` records published to subscribers on every transition
      - Cosmetic progress ticks while heavyweight sources download
      - Callers may retry after a failure; nothing is retried automatically

    All bookkeeping runs on the event loop thread, so the in-flight registry
    and the state store need no locking.
    """
    def __init__(
        self,
        registry: Optional[CapabilityRegistry] = None,
        *,
        bindings: Optional[BindingRegistry] = None,
        activator: Optional[Activator] = None,
        grace_period: float = 0.1,
        progress_interval: float = 0.5,
        progress_step: int = 5,
        progress_ceiling: int = 70,
    ):
        self.registry = registry if registry is not None else CapabilityRegistry()
        self.bindings = bindings if bindings is not None else BindingRegistry()
        self.activator: Activator = activator if activator is not None else SourceActivator(self.bindings)
        self.store = LoadStateStore()
        self.grace_period = grace_period
        self.progress_interval = progress_interval
        self.progress_step = max(1, progress_step)
        self.progress_ceiling = min(progress_ceiling, INIT_PROGRESS - 1)
        self._inflight: Dict[str, asyncio.Task[None]] = {}

    @classmethod
    def from_settings(cls, settings, registry: Optional[CapabilityRegistry] = None, **kwargs) -> 'CapabilityLoadManager':
        bindings = kwargs.pop('bindings', None) or BindingRegistry()
        activator = kwargs.pop('activator', None) or SourceActivator(bindings, timeout=settings.fetch_timeout)
        return cls(
            registry,
            bindings=bindings,
            activator=activator,
            grace_period=settings.grace_period,
            progress_interval=settings.progress_interval,
            progress_step=settings.progress_step,
            progress_ceiling=settings.progress_ceiling,
            **kwargs,
        )

    # --- queries -----------------------------------------------------
    def is_loaded(self, name: str) -> bool:
        descriptor = self.registry.get(name)
        if descriptor is None:
            return False
        return is_ready(descriptor, self.bindings)

    def get_state(self, name: str) -> Optional[LoadState]:
        self.registry.require(name)
        return self.store.get(name)

    def descriptors(self) -> List[CapabilityDescriptor]:
        return self.registry.list()

    def get_descriptor(self, name: str) -> Optional[CapabilityDescriptor]:
        return self.registry.get(name)

    def snapshot(self) -> Dict[str, LoadState]:
        return self.store.snapshot()

    def in_flight(self) -> List[str]:
        return list(self._inflight.keys())

    def subscribe(self, listener: StateListener) -> Subscription:
        return self.store.subscribe(listener)

    # --- loading -----------------------------------------------------
    async def ensure_loaded(self, name: str) -> None:
        await self._ensure(name, ())

    async def ensure_many(self, names: Iterable[str]) -> None:
        """Ensure several capabilities concurrently; raise the first failure once all settle."""
        results = await asyncio.gather(*(self.ensure_loaded(n) for n in names), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _ensure(self, name: str, chain: Tuple[str, ...]) -> None:
        descriptor = self.registry.require(name)
        if name in chain:
            raise DependencyCycle(list(chain) + [name])
        current = self.store.get(name)
        if current is not None and current.status == LoadStatus.loaded:
            return
        task = self._inflight.get(name)
        if is_ready(descriptor, self.bindings):
            if task is None:
                self.store.finish_loaded(name, f"{descriptor.display_name} ready")
                _log.debug("capability already available name=%s", name)
                return
            # Made ready elsewhere while an attempt runs: direct callers return at
            # once, a dependency walk still waits for the attempt to settle.
            if not chain:
                return
        if task is None:
            self.registry.mark_referenced(name)
            task = asyncio.get_running_loop().create_task(
                self._run(descriptor, chain + (name,)), name=f"capability-load:{name}"
            )
            self._inflight[name] = task
            task.add_done_callback(_consume_result)
        else:
            _log.debug("joining in-flight load name=%s", name)
        # A caller that stops waiting must not cancel the load for the others.
        await asyncio.shield(task)

    async def _run(self, descriptor: CapabilityDescriptor, chain: Tuple[str, ...]) -> None:
        name = descriptor.name
        try:
            await self._load(descriptor, chain)
        except CapabilityLoadError as exc:
            self._fail(descriptor, exc)
            raise
        except asyncio.CancelledError:
            self._fail(descriptor, FetchError(name, descriptor.source_location, "load cancelled"))
            raise
        except Exception as exc:
            err = FetchError(name, descriptor.source_location, f"{exc.__class__.__name__}: {exc}")
            self._fail(descriptor, err)
            raise err from exc
        finally:
            if self._inflight.get(name) is asyncio.current_task():
                self._inflight.pop(name, None)

    async def _load(self, descriptor: CapabilityDescriptor, chain: Tuple[str, ...]) -> None:
        name = descriptor.name
        label = descriptor.display_name
        _log.info("loading capability name=%s source=%s", name, descriptor.source_location)
        self.store.begin(name, f"Starting {label}...")

        for dep in descriptor.dependencies:
            dep_descriptor = self.registry.get(dep)
            dep_label = dep_descriptor.display_name if dep_descriptor is not None else dep
            self.store.advance(name, DEPENDENCY_PROGRESS, f"Loading dependency {dep_label}...")
            try:
                await self._ensure(dep, chain)
            except (CapabilityLoadError, DependencyCycle) as exc:
                _log.warning("dependency failed name=%s dependency=%s error=%s", name, dep, exc)
                raise DependencyFailed(name, dep, exc) from exc

        self.store.advance(name, FETCH_PROGRESS, f"Fetching {label}...")
        ticker = None
        if descriptor.heavyweight and self.progress_interval > 0:
            ticker = asyncio.get_running_loop().create_task(self._tick_progress(descriptor))
        try:
            await self.activator(descriptor)
        except FetchError:
            raise
        except Exception as exc:
            raise FetchError(name, descriptor.source_location, f"{exc.__class__.__name__}: {exc}") from exc
        finally:
            if ticker is not None:
                ticker.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ticker

        init_progress = INIT_PROGRESS_HEAVY if descriptor.heavyweight else INIT_PROGRESS
        self.store.advance(name, init_progress, f"Initializing {label}...")
        grace = descriptor.grace_period if descriptor.grace_period is not None else self.grace_period
        if grace > 0:
            await asyncio.sleep(grace)

        if not is_ready(descriptor, self.bindings):
            _log.error("capability activated but not available name=%s binding=%s", name, descriptor.binding_name)
            raise NotAvailableAfterLoad(name)
        self.store.finish_loaded(name, f"{label} ready")
        _log.info("capability loaded name=%s", name)

    async def _tick_progress(self, descriptor: CapabilityDescriptor) -> None:
        progress = FETCH_PROGRESS
        while progress < self.progress_ceiling:
            await asyncio.sleep(self.progress_interval)
            progress = min(progress + self.progress_step, self.progress_ceiling)
            self.store.advance(descriptor.name, progress, f"Fetching {descriptor.display_name}... {progress}%")

    def _fail(self, descriptor: CapabilityDescriptor, exc: CapabilityLoadError) -> None:
        current = self.store.get(descriptor.name)
        if current is None or current.status != LoadStatus.loading:
            return
        _log.warning("capability failed name=%s code=%s error=%s", descriptor.name, exc.code, exc)
        self.store.finish_failed(descriptor.name, f"{descriptor.display_name} failed to load: {exc}", str(exc))


def _consume_result(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled; mark the outcome as retrieved.
    if not task.cancelled():
        task.exception()
