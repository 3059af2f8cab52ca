import logging
import time
from typing import Dict, List, Optional
from app.services.backend_client import BackendClient
from app.services.customer_data import CustomerDataStore, KeyValueStore
from app.services.session_images import SessionImageReconciler
from app.services.staging_store import StagingStore

logger = logging.getLogger("flow_registry")

class CheckoutFlow:
    """
    Per-visitor checkout state: the step-1 staging store, the session image
    reconciler holding the active token, and the saved customer form.
    """

    def __init__(self, flow_id: str, client: BackendClient, key_value_store: KeyValueStore):
        self.flow_id = flow_id
        self.staging = StagingStore(flow_id)
        self.reconciler = SessionImageReconciler(client)
        self.customer = CustomerDataStore(key_value_store, flow_id)
        self.last_update = time.monotonic()

    @property
    def active_token(self) -> Optional[str]:
        return self.reconciler.active_token

    def touch(self) -> None:
        self.last_update = time.monotonic()

    def discard(self) -> None:
        self.reconciler.close()
        self.staging.discard()

class FlowRegistry:
    """
    In-memory registry of live checkout flows, keyed by flow id.
    """

    def __init__(self):
        self._flows: Dict[str, CheckoutFlow] = {}

    def __contains__(self, flow_id: str) -> bool:
        return flow_id in self._flows

    def get_or_create(self, flow_id: str, client: BackendClient, key_value_store: KeyValueStore) -> CheckoutFlow:
        flow = self._flows.get(flow_id)
        if flow is None:
            flow = CheckoutFlow(flow_id, client, key_value_store)
            self._flows[flow_id] = flow
            logger.info(f"Started checkout flow {flow_id}")
        flow.touch()
        return flow

    def flow_ids(self) -> List[str]:
        return list(self._flows)

    def discard(self, flow_id: str) -> None:
        flow = self._flows.pop(flow_id, None)
        if flow is not None:
            flow.discard()

    def discard_stale(self, max_idle_seconds: float) -> List[str]:
        """
        Drop flows idle for longer than `max_idle_seconds`, releasing their staged files.
        """
        threshold = time.monotonic() - max_idle_seconds
        stale = [flow_id for flow_id, flow in self._flows.items() if flow.last_update < threshold]
        for flow_id in stale:
            logger.info(f"Discarding stale checkout flow {flow_id}")
            self.discard(flow_id)
        return stale

    def clear(self) -> None:
        for flow_id in self.flow_ids():
            self.discard(flow_id)

# Global registry instance
flow_registry = FlowRegistry()
