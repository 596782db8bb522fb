"""Fetch and activate capability source code.

Source locations are dispatched by scheme:

  http:// https://      Python source downloaded with httpx, then executed
  file:// or a path     Python source read from disk, then executed
  import:<module>       an installed module imported in a worker thread

Executed sources see ``bindings`` (the binding registry) and ``capability``
(the descriptor) as globals. A callable ``register`` defined by an executed
source is invoked with the binding registry, which is how the code announces
itself. Imported modules are bound under the descriptor's binding name and
get the same ``register`` call. Every failure is reported as ``FetchError``.
"""
from __future__ import annotations
import asyncio
import importlib
import logging
import pathlib
import types
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.errors import FetchError
from capability_loader.capabilities.models import CapabilityDescriptor

_log = logging.getLogger(__name__)

IMPORT_SCHEME = 'import:'
_MODULE_PREFIX = 'capability_loader.remote'


class SourceActivator:
    def __init__(
        self,
        bindings: BindingRegistry,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.bindings = bindings
        self.timeout = timeout
        self._client = client

    async def __call__(self, descriptor: CapabilityDescriptor) -> None:
        await self.activate(descriptor)

    async def activate(self, descriptor: CapabilityDescriptor) -> None:
        location = descriptor.source_location
        try:
            if location.startswith(IMPORT_SCHEME):
                await self._activate_module(descriptor, location[len(IMPORT_SCHEME):].strip())
                return
            scheme = urlparse(location).scheme.lower()
            if scheme in ('http', 'https'):
                source = await self._download(location)
            else:
                source = await asyncio.to_thread(_read_local, location)
            self._execute(descriptor, source)
        except FetchError:
            raise
        except Exception as exc:
            _log.debug("activation failed name=%s source=%s", descriptor.name, location, exc_info=True)
            raise FetchError(descriptor.name, location, f"{exc.__class__.__name__}: {exc}") from exc

    async def _download(self, url: str) -> str:
        if self._client is not None:
            r = await self._client.get(url, timeout=self.timeout)
            r.raise_for_status()
            return r.text
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            r = await client.get(url)
            r.raise_for_status()
            return r.text

    def _execute(self, descriptor: CapabilityDescriptor, source: str) -> None:
        module_name = f"{_MODULE_PREFIX}.{descriptor.name.replace('-', '_')}"
        module = types.ModuleType(module_name)
        module.__dict__.update({
            '__file__': descriptor.source_location,
            'bindings': self.bindings,
            'capability': descriptor,
        })
        code = compile(source, descriptor.source_location, 'exec')
        exec(code, module.__dict__)
        _log.info("executed capability source name=%s source=%s", descriptor.name, descriptor.source_location)
        self._invoke_register(descriptor, module)

    async def _activate_module(self, descriptor: CapabilityDescriptor, module_path: str) -> None:
        if not module_path:
            raise ValueError("import source has no module name")
        module = await asyncio.to_thread(importlib.import_module, module_path)
        _log.info("imported capability module name=%s module=%s", descriptor.name, module_path)
        self.bindings.register(descriptor.binding_name, module)
        self._invoke_register(descriptor, module)

    def _invoke_register(self, descriptor: CapabilityDescriptor, module: types.ModuleType) -> None:
        reg_fn = getattr(module, 'register', None)
        if callable(reg_fn):
            reg_fn(self.bindings)
            _log.debug("invoked register() name=%s", descriptor.name)


def _read_local(location: str) -> str:
    parsed = urlparse(location)
    if parsed.scheme == 'file':
        path = pathlib.Path(unquote(parsed.path))
    else:
        path = pathlib.Path(location).expanduser()
    return path.read_text(encoding='utf-8')
