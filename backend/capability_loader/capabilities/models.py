from __future__ import annotations
import enum
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from capability_loader.capabilities.bindings import BindingRegistry

ReadinessPredicate = Callable[["BindingRegistry"], bool]


class LoadStatus(str, enum.Enum):
    idle = 'idle'
    loading = 'loading'
    loaded = 'loaded'
    failed = 'failed'


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Static description of how to fetch a capability and tell whether it is usable.

    ``binding`` is the conventional name the remote code registers itself under;
    it is consulted only when no ``readiness_predicate`` is supplied.
    ``grace_period`` of None means "use the manager default".
    """
    name: str
    display_name: str
    source_location: str
    dependencies: Tuple[str, ...] = ()
    readiness_predicate: Optional[ReadinessPredicate] = field(default=None, compare=False)
    binding: Optional[str] = None
    heavyweight: bool = False
    grace_period: Optional[float] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("capability name is required")
        if not self.source_location:
            raise ValueError(f"capability {self.name!r} has no source location")
        if self.grace_period is not None and self.grace_period < 0:
            raise ValueError(f"capability {self.name!r} has a negative grace period")
        # Accept any iterable of names but store an immutable tuple.
        object.__setattr__(self, 'dependencies', tuple(self.dependencies))
        if self.name in self.dependencies:
            raise ValueError(f"capability {self.name!r} depends on itself")

    @property
    def binding_name(self) -> str:
        return self.binding or self.name

    def summary(self) -> dict:
        return {
            'name': self.name,
            'display_name': self.display_name,
            'source_location': self.source_location,
            'dependencies': list(self.dependencies),
            'binding': self.binding_name,
            'heavyweight': self.heavyweight,
            'grace_period': self.grace_period,
        }


class LoadState(BaseModel):
    """Immutable snapshot of one capability's load progress.

    Every transition produces a new record; subscribers may keep references
    without seeing them change underneath.
    """
    model_config = ConfigDict(frozen=True)

    status: LoadStatus = LoadStatus.idle
    progress: int = Field(default=0, ge=0, le=100)
    message: str = ''
    error: str | None = None
    attempt: int = 0
    updated_at: float = Field(default_factory=time.time)

    @model_validator(mode='after')
    def check_invariants(self) -> 'LoadState':
        if (self.progress == 100) != (self.status == LoadStatus.loaded):
            raise ValueError("progress is 100 exactly when the capability is loaded")
        if self.error is not None and self.status != LoadStatus.failed:
            raise ValueError("only a failed state carries an error")
        return self

    @property
    def is_loading(self) -> bool:
        return self.status == LoadStatus.loading

    @property
    def is_terminal(self) -> bool:
        return self.status in (LoadStatus.loaded, LoadStatus.failed)

    def summary(self) -> dict:
        return {
            'status': self.status.value,
            'progress': self.progress,
            'message': self.message,
            'error': self.error,
            'attempt': self.attempt,
            'updated_at': self.updated_at,
        }
