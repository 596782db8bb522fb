"""Descriptor table: registration, cycle rejection, freezing and readiness detection."""
from types import SimpleNamespace

import pytest

from capability_loader.capabilities.bindings import BindingRegistry
from capability_loader.capabilities.errors import DependencyCycle, DescriptorNotFound
from capability_loader.capabilities.models import CapabilityDescriptor
from capability_loader.capabilities.readiness import is_ready
from capability_loader.capabilities.registry import CapabilityRegistry
from capability_helpers import make_descriptor


def test_register_and_lookup():
    registry = CapabilityRegistry([make_descriptor('a'), make_descriptor('b', 'a')])
    assert registry.names() == ['a', 'b']
    assert 'a' in registry
    assert len(registry) == 2
    assert registry.require('b').dependencies == ('a',)
    assert registry.get('missing') is None


def test_require_unknown_raises_descriptor_not_found():
    registry = CapabilityRegistry()
    with pytest.raises(DescriptorNotFound) as info:
        registry.require('ghost')
    assert info.value.capability == 'ghost'
    assert isinstance(info.value, KeyError)


def test_cycle_closed_by_last_registration_is_rejected():
    registry = CapabilityRegistry()
    registry.register(make_descriptor('a', 'b'))
    registry.register(make_descriptor('b', 'c'))
    with pytest.raises(DependencyCycle) as info:
        registry.register(make_descriptor('c', 'a'))
    assert info.value.path == ['c', 'a', 'b', 'c']
    assert 'c' not in registry


def test_self_dependency_rejected_by_descriptor():
    with pytest.raises(ValueError):
        make_descriptor('a', 'a')


def test_replacement_before_use_is_allowed():
    registry = CapabilityRegistry([make_descriptor('ocr', display_name='Old OCR')])
    registry.register(make_descriptor('ocr', display_name='New OCR'))
    assert registry.require('ocr').display_name == 'New OCR'


def test_replacement_after_reference_is_refused():
    registry = CapabilityRegistry([make_descriptor('ocr')])
    registry.mark_referenced('ocr')
    with pytest.raises(ValueError):
        registry.register(make_descriptor('ocr', display_name='New OCR'))


def test_missing_dependencies_reported():
    registry = CapabilityRegistry([make_descriptor('a', 'b', 'c'), make_descriptor('b')])
    assert registry.missing_dependencies('a') == ['c']


def test_descriptor_validation():
    with pytest.raises(ValueError):
        CapabilityDescriptor(name='', display_name='x', source_location='import:json')
    with pytest.raises(ValueError):
        CapabilityDescriptor(name='x', display_name='x', source_location='')
    with pytest.raises(ValueError):
        CapabilityDescriptor(name='x', display_name='x', source_location='import:json', grace_period=-1)


def test_descriptor_dependencies_stored_as_tuple():
    descriptor = CapabilityDescriptor(name='x', display_name='X', source_location='import:json', dependencies=['a', 'b'])
    assert descriptor.dependencies == ('a', 'b')
    assert descriptor.binding_name == 'x'
    assert descriptor.summary()['dependencies'] == ['a', 'b']


class TestReadiness:

    def test_falls_back_to_conventional_binding(self):
        bindings = BindingRegistry()
        descriptor = make_descriptor('opencv', binding='cv')
        assert is_ready(descriptor, bindings) is False
        bindings.register('opencv', object())
        assert is_ready(descriptor, bindings) is False
        bindings.register('cv', object())
        assert is_ready(descriptor, bindings) is True

    def test_none_binding_is_not_ready(self):
        bindings = BindingRegistry()
        bindings.register('x', None)
        assert is_ready(make_descriptor('x'), bindings) is False

    def test_predicate_wins_over_binding(self):
        bindings = BindingRegistry()
        bindings.register('cv', SimpleNamespace())
        descriptor = make_descriptor('cv', readiness_predicate=lambda b: b.has_attr('cv', 'Mat'))
        assert is_ready(descriptor, bindings) is False
        bindings.register('cv', SimpleNamespace(Mat=object))
        assert is_ready(descriptor, bindings) is True

    def test_raising_predicate_counts_as_not_ready(self):
        def broken(bindings):
            raise AttributeError('half initialised')

        assert is_ready(make_descriptor('x', readiness_predicate=broken), BindingRegistry()) is False

    def test_repeated_checks_are_stable(self):
        bindings = BindingRegistry()
        bindings.register('x', object())
        descriptor = make_descriptor('x')
        assert [is_ready(descriptor, bindings) for _ in range(3)] == [True, True, True]
