import pytest

from capability_loader.capabilities.adapters import CapabilityWatcher
from capability_loader.capabilities.errors import DescriptorNotFound, FetchError
from capability_loader.capabilities.models import LoadStatus
from capability_helpers import make_descriptor


@pytest.mark.asyncio
async def test_watcher_tracks_successful_load(manager, registry):
    registry.register(make_descriptor('ffmpeg', heavyweight=True))
    seen = []
    with CapabilityWatcher(manager, 'ffmpeg', on_change=seen.append) as watcher:
        assert watcher.status == LoadStatus.idle
        assert watcher.state is None
        assert await watcher.load() is True
    assert watcher.status == LoadStatus.loaded
    assert watcher.is_loaded
    assert watcher.history[0].status == LoadStatus.loading
    assert watcher.history[-1].progress == 100
    assert seen == watcher.history


@pytest.mark.asyncio
async def test_watcher_reports_failure_without_raising(manager, registry, activator):
    registry.register(make_descriptor('tesseract'))
    activator.failures['tesseract'] = FetchError('tesseract', 'https://capabilities.test/tesseract.py', 'HTTP 503')
    watcher = CapabilityWatcher(manager, 'tesseract')
    assert await watcher.load() is False
    assert watcher.status == LoadStatus.failed
    assert 'HTTP 503' in watcher.error
    watcher.close()


@pytest.mark.asyncio
async def test_watcher_ignores_other_capabilities(manager, registry):
    registry.register(make_descriptor('gifuct'))
    registry.register(make_descriptor('opencv'))
    watcher = CapabilityWatcher(manager, 'gifuct')
    await manager.ensure_loaded('opencv')
    assert watcher.history == []
    watcher.close()


@pytest.mark.asyncio
async def test_closed_watcher_stops_receiving(manager, registry):
    registry.register(make_descriptor('pdf-lib'))
    watcher = CapabilityWatcher(manager, 'pdf-lib')
    watcher.close()
    watcher.close()
    await manager.ensure_loaded('pdf-lib')
    assert watcher.history == []
    assert manager.store.listener_count() == 0


def test_watcher_requires_known_capability(manager):
    with pytest.raises(DescriptorNotFound):
        CapabilityWatcher(manager, 'unknown')
