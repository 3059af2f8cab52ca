from typing import Optional
from fastapi import Depends
from app.core.auth import get_current_flow
from app.core.config import settings
from app.services.backend_client import BackendClient
from app.services.customer_data import JsonFileKeyValueStore, KeyValueStore
from app.services.flow_registry import CheckoutFlow, flow_registry
from app.services.image_validation import ValidationConfig, config_from_settings
from app.services.upload_orchestrator import UploadOrchestrator

_backend_client: Optional[BackendClient] = None
_key_value_store: Optional[KeyValueStore] = None

def get_backend_client() -> BackendClient:
    """
    Dependency to get the shared backend API client.
    """
    global _backend_client
    if _backend_client is None:
        _backend_client = BackendClient()
    return _backend_client

def get_key_value_store() -> KeyValueStore:
    global _key_value_store
    if _key_value_store is None:
        _key_value_store = JsonFileKeyValueStore(settings.CUSTOMER_DATA_DIR)
    return _key_value_store

def get_validation_config() -> ValidationConfig:
    return config_from_settings()

# Dependency to get the CheckoutFlow for the current visitor
def get_flow(
    flow_id: str = Depends(get_current_flow),
    client: BackendClient = Depends(get_backend_client),
    key_value_store: KeyValueStore = Depends(get_key_value_store),
) -> CheckoutFlow:
    """
    Dependency to get the CheckoutFlow bound to the signed flow cookie.
    """
    return flow_registry.get_or_create(flow_id, client, key_value_store)

def get_upload_orchestrator(
    client: BackendClient = Depends(get_backend_client),
    config: ValidationConfig = Depends(get_validation_config),
) -> UploadOrchestrator:
    return UploadOrchestrator(client, config)
