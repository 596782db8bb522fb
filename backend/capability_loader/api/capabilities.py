from __future__ import annotations
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging

from capability_loader.capabilities.errors import CapabilityLoadError, DescriptorNotFound
from capability_loader.capabilities.manager import CapabilityLoadManager
from capability_loader.capabilities.models import CapabilityDescriptor
from capability_loader.core.dependencies import CapabilityManagerDep

router = APIRouter(prefix='/capabilities', tags=['capabilities'])
logger = logging.getLogger(__name__)


class LoadStateModel(BaseModel):
    status: str
    progress: int
    message: str
    error: Optional[str] = None
    attempt: int
    updated_at: float


class CapabilityModel(BaseModel):
    name: str
    display_name: str
    source_location: str
    dependencies: List[str]
    binding: str
    heavyweight: bool
    grace_period: Optional[float] = None
    loaded: bool
    in_flight: bool
    state: Optional[LoadStateModel] = None


def _describe(manager: CapabilityLoadManager, descriptor: CapabilityDescriptor) -> CapabilityModel:
    state = manager.store.get(descriptor.name)
    return CapabilityModel(
        **descriptor.summary(),
        loaded=manager.is_loaded(descriptor.name),
        in_flight=descriptor.name in manager.in_flight(),
        state=LoadStateModel(**state.summary()) if state is not None else None,
    )


def _require_descriptor(manager: CapabilityLoadManager, name: str) -> CapabilityDescriptor:
    descriptor = manager.get_descriptor(name)
    if descriptor is None:
        e = DescriptorNotFound(name)
        raise HTTPException(
            status_code=404,
            detail={'code': e.code, 'capability': name, 'message': str(e)},
        )
    return descriptor


@router.get('', response_model=List[CapabilityModel])
async def list_capabilities(manager: CapabilityManagerDep):
    return [_describe(manager, d) for d in manager.descriptors()]


@router.get('/{name}', response_model=CapabilityModel)
async def get_capability(name: str, manager: CapabilityManagerDep):
    descriptor = _require_descriptor(manager, name)
    return _describe(manager, descriptor)


@router.post('/{name}/load', response_model=CapabilityModel)
async def load_capability(name: str, manager: CapabilityManagerDep):
    """Ensure the capability is loaded, waiting for the (possibly shared) load to settle."""
    descriptor = _require_descriptor(manager, name)
    try:
        await manager.ensure_loaded(name)
    except CapabilityLoadError as e:
        state = manager.store.get(name)
        detail: Dict[str, Any] = {
            'code': e.code,
            'capability': name,
            'error': str(e),
            'state': state.summary() if state is not None else None,
        }
        dependency = getattr(e, 'dependency', None)
        if dependency:
            detail['dependency'] = dependency
        logger.info("load request failed capability=%s code=%s", name, e.code)
        raise HTTPException(status_code=409, detail=detail)
    return _describe(manager, descriptor)
