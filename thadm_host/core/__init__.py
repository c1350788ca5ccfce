"""Recorder supervision, license gating and display reconciliation."""

from .config_snapshot import ConfigurationSnapshot, load_snapshot
from .errors import (
    CollaboratorQueryFailure,
    MalformedOutput,
    PermissionRequired,
    SettingsStoreError,
    SpawnFailure,
    SupervisorError,
    TerminationTimeout,
)
from .license import LicenseSnapshot, LicenseStatus, evaluate_read_only, read_license_fields
from .liveness import LivenessChecker
from .monitor_reconciler import MonitorReconciler, PassResult
from .monitors import MonitorDevice, WorkerMonitorEnumerator
from .settings_store import JsonFileSettingsStore, MemorySettingsStore
from .supervisor import ProcessSupervisor, SupervisorState
from .terminators import select_terminator
from .worker_args import build_invocation, build_worker_args, build_worker_env

__all__ = [
    "CollaboratorQueryFailure",
    "ConfigurationSnapshot",
    "JsonFileSettingsStore",
    "LicenseSnapshot",
    "LicenseStatus",
    "LivenessChecker",
    "MalformedOutput",
    "MemorySettingsStore",
    "MonitorDevice",
    "MonitorReconciler",
    "PassResult",
    "PermissionRequired",
    "ProcessSupervisor",
    "SettingsStoreError",
    "SpawnFailure",
    "SupervisorError",
    "SupervisorState",
    "TerminationTimeout",
    "WorkerMonitorEnumerator",
    "build_invocation",
    "build_worker_args",
    "build_worker_env",
    "evaluate_read_only",
    "load_snapshot",
    "read_license_fields",
    "select_terminator",
]
