"""Built-in capability table and YAML catalog files.

A catalog file extends (or, before first use, replaces entries of) the
built-in table. Either a list under ``capabilities:`` or a mapping keyed by
capability name is accepted::

    capabilities:
      - name: tesseract
        display_name: Tesseract OCR engine
        source: import:pytesseract
        requires_attr: image_to_string
      - name: ocr-pipeline
        display_name: OCR pipeline
        source: https://example.org/capabilities/ocr_pipeline.py
        depends_on: [tesseract, pdf-lib]
        heavyweight: true
        grace_period: 0.5
"""
from __future__ import annotations
import logging
import pathlib
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import yaml

from capability_loader.capabilities.models import CapabilityDescriptor, ReadinessPredicate
from capability_loader.capabilities.registry import CapabilityRegistry

if TYPE_CHECKING:
    from capability_loader.capabilities.manager import CapabilityLoadManager
    from capability_loader.core.config import Settings

_log = logging.getLogger(__name__)

_NULL_STRINGS = {"null", "none", ""}
_TRUTHY_STRINGS = {"1", "true", "yes", "on"}


def requires_attr(binding: str, attr: str) -> ReadinessPredicate:
    """Predicate: the binding is registered and exposes ``attr``."""
    def _predicate(bindings) -> bool:
        return bindings.has_attr(binding, attr)
    _predicate.__name__ = f"requires_{binding}_{attr}"
    return _predicate


def default_descriptors() -> List[CapabilityDescriptor]:
    return [
        CapabilityDescriptor(
            name='ffmpeg',
            display_name='FFmpeg video engine',
            source_location='import:av',
            heavyweight=True,
            grace_period=1.0,
            readiness_predicate=requires_attr('ffmpeg', 'open'),
        ),
        CapabilityDescriptor(
            name='gifuct',
            display_name='GIF decoder',
            source_location='import:PIL.GifImagePlugin',
        ),
        CapabilityDescriptor(
            name='opencv',
            display_name='OpenCV image processing',
            source_location='import:cv2',
            heavyweight=True,
            readiness_predicate=requires_attr('opencv', 'Mat'),
        ),
        CapabilityDescriptor(
            name='pdfjs-lib',
            display_name='PDF rendering engine',
            source_location='import:pypdfium2',
        ),
        CapabilityDescriptor(
            name='tesseract',
            display_name='Tesseract OCR engine',
            source_location='import:pytesseract',
            readiness_predicate=requires_attr('tesseract', 'image_to_string'),
        ),
        CapabilityDescriptor(
            name='pdf-lib',
            display_name='PDF manipulation library',
            source_location='import:pypdf',
        ),
    ]


def _sanitize_dependency_list(raw: Any) -> List[str]:
    """Normalize dependency declarations by removing placeholder null strings."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set)):
        items: Iterable[Any] = raw
    else:
        items = (raw,)
    cleaned: List[str] = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text.lower() in _NULL_STRINGS:
            continue
        if text not in cleaned:
            cleaned.append(text)
    return cleaned


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return bool(value)


def parse_entry(data: Dict[str, Any], *, source: str = '<catalog>') -> Optional[CapabilityDescriptor]:
    """Build a descriptor from one catalog entry; invalid entries are logged and skipped."""
    if not isinstance(data, dict):
        _log.warning("invalid catalog entry (not a mapping) in %s: %r", source, data)
        return None
    name = str(data.get('name') or '').strip()
    location = data.get('source') or data.get('source_location') or data.get('url')
    if not name or not location:
        _log.warning("invalid catalog entry missing name/source in %s: %r", source, data)
        return None
    display_name = data.get('display_name') or data.get('displayName') or data.get('human_name') or name
    binding = data.get('binding') or data.get('global_var') or data.get('globalVar') or None
    predicate = None
    attr = data.get('requires_attr')
    if attr:
        predicate = requires_attr(binding or name, str(attr))
    grace = data.get('grace_period')
    try:
        return CapabilityDescriptor(
            name=name,
            display_name=str(display_name),
            source_location=str(location),
            dependencies=_sanitize_dependency_list(data.get('depends_on', data.get('dependencies'))),
            readiness_predicate=predicate,
            binding=str(binding) if binding else None,
            heavyweight=_parse_flag(data.get('heavyweight')),
            grace_period=float(grace) if grace is not None else None,
        )
    except (TypeError, ValueError) as e:
        _log.warning("invalid catalog entry %s in %s: %s", name, source, e)
        return None


def load_catalog_file(path: pathlib.Path) -> List[CapabilityDescriptor]:
    data = yaml.safe_load(pathlib.Path(path).read_text(encoding='utf-8')) or {}
    if isinstance(data, dict) and 'capabilities' in data:
        data = data['capabilities'] or []
    if isinstance(data, dict):
        entries = []
        for key, value in data.items():
            if isinstance(value, dict) or value is None:
                entry = dict(value or {})
                entry.setdefault('name', key)
                entries.append(entry)
            else:
                entries.append(value)
    elif isinstance(data, list):
        entries = data
    else:
        raise ValueError(f"catalog {path} must contain a list or mapping of capabilities")
    descriptors = []
    for entry in entries:
        descriptor = parse_entry(entry, source=str(path))
        if descriptor is not None:
            descriptors.append(descriptor)
    _log.info("catalog loaded path=%s capabilities=%d", path, len(descriptors))
    return descriptors


def build_registry(settings: 'Settings') -> CapabilityRegistry:
    registry = CapabilityRegistry(default_descriptors() if settings.include_builtins else ())
    path = settings.catalog_file
    if path is not None:
        if path.exists():
            for descriptor in load_catalog_file(path):
                try:
                    registry.register(descriptor)
                except ValueError as e:
                    _log.warning("skipping catalog entry %s from %s: %s", descriptor.name, path, e)
        else:
            _log.warning("catalog file not found path=%s", path)
    return registry


# One-shot convenience loaders for the built-in capabilities.
async def load_ffmpeg(manager: 'CapabilityLoadManager') -> None:
    await manager.ensure_loaded('ffmpeg')


async def load_opencv(manager: 'CapabilityLoadManager') -> None:
    await manager.ensure_loaded('opencv')


async def load_gif(manager: 'CapabilityLoadManager') -> None:
    await manager.ensure_loaded('gifuct')


async def load_pdfjs(manager: 'CapabilityLoadManager') -> None:
    await manager.ensure_loaded('pdfjs-lib')


async def load_pdf_lib(manager: 'CapabilityLoadManager') -> None:
    await manager.ensure_loaded('pdf-lib')


async def load_tesseract(manager: 'CapabilityLoadManager') -> None:
    await manager.ensure_loaded('tesseract')
