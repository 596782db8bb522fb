"""Built-in table, YAML catalog parsing and the one-shot loaders."""
from types import SimpleNamespace

import pytest
import yaml
from hypothesis import given, strategies as st

from capability_loader.capabilities import catalog
from capability_loader.capabilities.catalog import (
    _sanitize_dependency_list,
    build_registry,
    default_descriptors,
    load_catalog_file,
    parse_entry,
)
from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.manager import CapabilityLoadManager
from capability_loader.capabilities.models import LoadStatus
from capability_loader.core.config import Settings
from capability_helpers import FakeActivator


def test_default_table_contents():
    descriptors = {d.name: d for d in default_descriptors()}
    assert set(descriptors) == {'ffmpeg', 'gifuct', 'opencv', 'pdfjs-lib', 'tesseract', 'pdf-lib'}
    assert descriptors['ffmpeg'].heavyweight and descriptors['ffmpeg'].grace_period == 1.0
    assert descriptors['opencv'].heavyweight
    assert descriptors['gifuct'].grace_period is None
    assert all(d.source_location.startswith('import:') for d in descriptors.values())


def test_opencv_predicate_needs_mat():
    opencv = next(d for d in default_descriptors() if d.name == 'opencv')
    bindings = BindingRegistry()
    bindings.register('opencv', SimpleNamespace())
    assert not opencv.readiness_predicate(bindings)
    bindings.register('opencv', SimpleNamespace(Mat=object))
    assert opencv.readiness_predicate(bindings)


def test_parse_list_catalog(tmp_path):
    path = tmp_path / 'capabilities.yml'
    path.write_text(yaml.safe_dump({'capabilities': [
        {
            'name': 'ocr-pipeline',
            'display_name': 'OCR pipeline',
            'source': 'https://capabilities.test/ocr_pipeline.py',
            'depends_on': ['tesseract', 'null', 'pdf-lib', 'tesseract'],
            'heavyweight': True,
            'grace_period': 0.5,
            'requires_attr': 'run',
        },
        {'name': 'broken'},
        'not a mapping',
    ]}))

    descriptors = load_catalog_file(path)

    assert [d.name for d in descriptors] == ['ocr-pipeline']
    d = descriptors[0]
    assert d.dependencies == ('tesseract', 'pdf-lib')
    assert d.heavyweight is True
    assert d.grace_period == 0.5
    bindings = BindingRegistry()
    bindings.register('ocr-pipeline', SimpleNamespace(run=print))
    assert d.readiness_predicate(bindings)


def test_parse_mapping_catalog(tmp_path):
    path = tmp_path / 'capabilities.yml'
    path.write_text(
        "tesseract:\n"
        "  display_name: Tesseract OCR 4\n"
        "  source: https://capabilities.test/tesseract.py\n"
        "  binding: Tesseract\n"
    )
    (descriptor,) = load_catalog_file(path)
    assert descriptor.name == 'tesseract'
    assert descriptor.binding_name == 'Tesseract'
    assert descriptor.readiness_predicate is None


def test_catalog_must_be_list_or_mapping(tmp_path):
    path = tmp_path / 'capabilities.yml'
    path.write_text("just a string\n")
    with pytest.raises(ValueError):
        load_catalog_file(path)


def test_parse_entry_rejects_bad_grace_period():
    assert parse_entry({'name': 'x', 'source': 'import:json', 'grace_period': -2}) is None
    assert parse_entry({'name': 'x', 'source': 'import:json', 'grace_period': 'soon'}) is None


@given(st.lists(st.one_of(st.none(), st.text(max_size=12), st.sampled_from(['null', 'NULL', 'None', ' none ']))))
def test_sanitized_dependencies_are_clean(raw):
    cleaned = _sanitize_dependency_list(raw)
    assert len(cleaned) == len(set(cleaned))
    for name in cleaned:
        assert name == name.strip()
        assert name.lower() not in {'null', 'none', ''}


def test_sanitize_accepts_single_value():
    assert _sanitize_dependency_list('pdf-lib') == ['pdf-lib']
    assert _sanitize_dependency_list(None) == []


def test_build_registry_merges_catalog_over_builtins(tmp_path):
    path = tmp_path / 'capabilities.yml'
    path.write_text(yaml.safe_dump([
        {'name': 'tesseract', 'display_name': 'Tesseract 4', 'source': 'https://capabilities.test/t.py'},
        {'name': 'scan', 'display_name': 'Scanner', 'source': 'import:json', 'depends_on': ['tesseract']},
    ]))
    registry = build_registry(Settings(catalog_file=path, include_builtins=True))
    assert len(registry) == 7
    assert registry.require('tesseract').display_name == 'Tesseract 4'
    assert registry.require('scan').dependencies == ('tesseract',)


def test_build_registry_without_builtins(tmp_path):
    registry = build_registry(Settings(catalog_file=tmp_path / 'absent.yml', include_builtins=False))
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_one_shot_loader_uses_manager():
    bindings = BindingRegistry()
    activator = FakeActivator(bindings, value_factory=lambda d: SimpleNamespace(image_to_string=str))
    manager = CapabilityLoadManager(
        build_registry(Settings(include_builtins=True, catalog_file=None)),
        bindings=bindings,
        activator=activator,
        grace_period=0.0,
    )
    await catalog.load_tesseract(manager)
    assert activator.calls == ['tesseract']
    assert manager.get_state('tesseract').status == LoadStatus.loaded


def test_build_registry_skips_entries_closing_a_cycle(tmp_path):
    path = tmp_path / 'capabilities.yml'
    path.write_text(yaml.safe_dump([
        {'name': 'a', 'source': 'import:json', 'depends_on': ['b']},
        {'name': 'b', 'source': 'import:json', 'depends_on': ['a']},
        {'name': 'c', 'source': 'import:json'},
    ]))

    registry = build_registry(Settings(catalog_file=path, include_builtins=False))

    assert registry.names() == ['a', 'c']


def test_mapping_catalog_skips_scalar_entries(tmp_path):
    path = tmp_path / 'capabilities.yml'
    path.write_text(
        "good:\n"
        "  source: import:json\n"
        "bad: import:os\n"
    )
    assert [d.name for d in load_catalog_file(path)] == ['good']


@pytest.mark.parametrize('raw, expected', [
    ('false', False),
    ('no', False),
    ('True', True),
    ('on', True),
    (True, True),
    (False, False),
    (None, False),
])
def test_heavyweight_flag_parsing(raw, expected):
    descriptor = parse_entry({'name': 'x', 'source': 'import:json', 'heavyweight': raw})
    assert descriptor.heavyweight is expected
