"""
API Controller - Thin async facade over the supervisor, reconciler and
license helpers for the REST routes.
"""

import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..license import describe_license, read_license_fields
from ..license_validator import validate_license
from ..logging_utils import get_module_logger
from ..monitor_reconciler import MonitorReconciler
from ..monitors import MonitorEnumerator
from ..settings_store import SettingsStore
from ..supervisor import ProcessSupervisor


class APIController:
    """Async operations backing the control API routes."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        store: SettingsStore,
        enumerator: MonitorEnumerator,
        reconciler: Optional[MonitorReconciler] = None,
        version: str = "unknown",
    ):
        self.logger = get_module_logger("APIController")
        self.supervisor = supervisor
        self.store = store
        self.enumerator = enumerator
        self.reconciler = reconciler
        self.version = version

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.datetime.now().isoformat(),
            "api_version": "v1",
            "version": self.version,
        }

    async def sidecar_status(self) -> Dict[str, Any]:
        state = await self.supervisor.state()
        return {"state": state.value, "pid": self.supervisor.pid}

    async def spawn_sidecar(self, override_args: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        await self.supervisor.spawn(override_args)
        return {"success": True, **await self.sidecar_status()}

    async def stop_sidecar(self) -> Dict[str, Any]:
        await self.supervisor.stop()
        return {"success": True, **await self.sidecar_status()}

    async def list_monitors(self) -> List[Dict[str, Any]]:
        monitors = await self.enumerator.list_monitors()
        return [monitor.to_dict() for monitor in monitors]

    async def license_status(self) -> Dict[str, Any]:
        snapshot = await read_license_fields(self.store)
        status = describe_license(snapshot)
        return {"read_only_mode": snapshot.is_read_only_mode(), **status.to_dict()}

    async def validate_license_key(self, key: str) -> Dict[str, Any]:
        result = await validate_license(key)
        return result.to_dict()

    async def reconciler_status(self) -> Dict[str, Any]:
        if self.reconciler is None:
            return {"running": False, "known": [], "last_pass": None}
        last = self.reconciler.last_result
        return {
            "running": self.reconciler.is_running,
            "known": sorted(self.reconciler.known),
            "last_pass": last.to_dict() if last else None,
        }
