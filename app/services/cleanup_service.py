import asyncio
import logging
import shutil
import time
from fastapi import FastAPI
from app.core.config import settings
from app.services.flow_registry import FlowRegistry, flow_registry

logger = logging.getLogger("cleanup_service")

def cleanup_stale_flows(registry: FlowRegistry = flow_registry) -> int:
    """
    Discard checkout flows nobody touched for a while, then remove staging
    directories left behind by flows that no longer exist (e.g. after a restart).
    """
    removed = len(registry.discard_stale(settings.STALE_FLOW_TIMEOUT_SECONDS))

    stale_threshold = time.time() - settings.STALE_FLOW_TIMEOUT_SECONDS
    for flow_dir in settings.STAGING_DIR.iterdir():
        if not flow_dir.is_dir() or flow_dir == settings.CUSTOMER_DATA_DIR:
            continue
        if flow_dir.name in registry:
            continue
        if flow_dir.stat().st_mtime < stale_threshold:
            logger.info(f"Removing orphan staging directory: {flow_dir}")
            shutil.rmtree(flow_dir, ignore_errors=True)
            removed += 1
    return removed

async def cleanup_loop():
    """
    Periodically release staged files of abandoned checkout flows.
    """
    while True:
        try:
            logger.info("Running cleanup task for stale checkout flows")
            cleanup_stale_flows()
        except Exception as e:
            logger.error(f"Error in cleanup task: {str(e)}")

        # Wait for next run
        await asyncio.sleep(settings.CLEANUP_INTERVAL_SECONDS)

def setup_cleanup_tasks(app: FastAPI):
    """
    Set up background tasks for the FastAPI application.
    """
    @app.on_event("startup")
    async def start_cleanup_task():
        asyncio.create_task(cleanup_loop())
