import os
import time
import pytest
from app.core.config import settings
from app.services.cleanup_service import cleanup_stale_flows
from app.services.customer_data import InMemoryKeyValueStore
from app.services.flow_registry import FlowRegistry
from app.services.image_validation import CandidateFile

def age(path, seconds):
    past = time.time() - seconds
    os.utime(path, (past, past))

@pytest.mark.asyncio
async def test_idle_flows_are_discarded(backend_client, jpeg_bytes, monkeypatch):
    """Test that idle checkout flows are discarded with their staged files."""
    registry = FlowRegistry()
    idle = registry.get_or_create("idle", backend_client, InMemoryKeyValueStore())
    active = registry.get_or_create("active", backend_client, InMemoryKeyValueStore())
    await idle.staging.append([CandidateFile(name="a.jpg", content_type="image/jpeg", data=jpeg_bytes)])
    staged_path = idle.staging.files[0].path

    idle.last_update -= settings.STALE_FLOW_TIMEOUT_SECONDS + 1

    removed = cleanup_stale_flows(registry)

    assert removed == 1
    assert registry.flow_ids() == ["active"]
    assert idle.reconciler.closed
    assert not staged_path.exists()
    assert not active.reconciler.closed

def test_orphan_directories_are_removed(backend_client):
    """Test removal of old staging directories with no live flow."""
    registry = FlowRegistry()
    registry.get_or_create("live", backend_client, InMemoryKeyValueStore())
    live_dir = settings.STAGING_DIR / "live"
    orphan_dir = settings.STAGING_DIR / "orphan"
    recent_dir = settings.STAGING_DIR / "recent"
    for path in (live_dir, orphan_dir, recent_dir):
        path.mkdir(parents=True, exist_ok=True)
    for path in (live_dir, orphan_dir, settings.CUSTOMER_DATA_DIR):
        age(path, settings.STALE_FLOW_TIMEOUT_SECONDS + 60)

    removed = cleanup_stale_flows(registry)

    assert removed == 1
    assert not orphan_dir.exists()
    assert live_dir.exists()
    assert recent_dir.exists()
    assert settings.CUSTOMER_DATA_DIR.exists()
