"""Translation of a settings snapshot into a recorder invocation.

The command line is produced by ``ARGUMENT_RULES``, an ordered table of
small rule functions. Each rule looks at a ``BuildContext`` and returns the
strings it contributes; the builder concatenates them in table order.
"""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .config_snapshot import (
    CLOUD_TRANSCRIPTION_ENGINE,
    DEFAULT_AUDIO_CHUNK_DURATION,
    DEFAULT_FPS,
    DEFAULT_SENTINEL,
    DEFAULT_VAD_SENSITIVITY,
    ConfigurationSnapshot,
)
from .errors import CollaboratorQueryFailure
from .license import LicenseSnapshot
from .logging_utils import get_module_logger
from .monitors import MonitorDevice, MonitorEnumerator, select_default_monitor
from .paths import WORKER_NAME, worker_image_name

logger = get_module_logger("WorkerArgs")

REALTIME_VISION_FLAG = "--enable-realtime-vision"

FD_LIMIT = "8192"
HF_MIRROR_ENDPOINT = "https://hf-mirror.com"
SENTRY_RELEASE_SUFFIX = "tauri"
CLOUD_DEEPGRAM_API_URL = "https://api.screenpi.pe/v1/listen"
CLOUD_DEEPGRAM_WEBSOCKET_URL = "wss://api.screenpi.pe"


def format_number(value: float) -> str:
    """Render ``value`` the way the recorder's own CLI prints it: 1.0 -> "1"."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _is_default_list(values: Sequence[str]) -> bool:
    return not values or values[0] == DEFAULT_SENTINEL


def _repeat(flag: str, values: Sequence[str]) -> List[str]:
    args: List[str] = []
    for value in values:
        args.extend((flag, value))
    return args


@dataclass(frozen=True)
class BuildContext:
    config: ConfigurationSnapshot
    read_only: bool
    current_pid: int
    default_monitor: Optional[MonitorDevice] = None
    override_args: Tuple[str, ...] = ()


class ArgumentRule(NamedTuple):
    name: str
    render: Callable[[BuildContext], List[str]]


def _port(ctx: BuildContext) -> List[str]:
    return ["--port", str(ctx.config.port)]


def _fps(ctx: BuildContext) -> List[str]:
    if ctx.config.fps == DEFAULT_FPS:
        return []
    return ["--fps", format_number(ctx.config.fps)]


def _transcription_engine(ctx: BuildContext) -> List[str]:
    engine = ctx.config.audio_transcription_engine
    if engine == DEFAULT_SENTINEL:
        return []
    if engine == CLOUD_TRANSCRIPTION_ENGINE:
        engine = "deepgram"
    return ["--audio-transcription-engine", engine]


def _ocr_engine(ctx: BuildContext) -> List[str]:
    if ctx.config.ocr_engine == DEFAULT_SENTINEL:
        return []
    return ["--ocr-engine", ctx.config.ocr_engine]


def _monitors(ctx: BuildContext) -> List[str]:
    monitor_ids = ctx.config.monitor_ids
    if not monitor_ids:
        return []
    if DEFAULT_SENTINEL in monitor_ids:
        if ctx.default_monitor is None:
            return []
        return ["--monitor-id", str(ctx.default_monitor.id)]
    return _repeat("--monitor-id", monitor_ids)


def _languages(ctx: BuildContext) -> List[str]:
    if _is_default_list(ctx.config.languages):
        return []
    return _repeat("--language", ctx.config.languages)


def _deepgram_key(ctx: BuildContext) -> List[str]:
    key = ctx.config.deepgram_api_key
    if not key or key == DEFAULT_SENTINEL:
        return []
    return ["--deepgram-api-key", key]


def _audio_devices(ctx: BuildContext) -> List[str]:
    if _is_default_list(ctx.config.audio_devices):
        return []
    return _repeat("--audio-device", ctx.config.audio_devices)


def _bare_flags(ctx: BuildContext) -> List[str]:
    config = ctx.config
    switches = (
        ("--use-pii-removal", config.use_pii_removal),
        ("--disable-audio", config.disable_audio or ctx.read_only),
        ("--disable-vision", config.disable_vision or ctx.read_only),
        ("--disable-telemetry", not config.telemetry_enabled),
        ("--enable-beta", config.enable_beta),
        ("--enable-frame-cache", config.enable_frame_cache),
        ("--enable-realtime-audio-transcription", config.enable_realtime_audio_transcription),
        (REALTIME_VISION_FLAG, config.enable_realtime_vision),
    )
    return [flag for flag, enabled in switches if enabled]


def _window_filters(ctx: BuildContext) -> List[str]:
    config = ctx.config
    return (
        _repeat("--ignored-windows", config.ignored_windows)
        + _repeat("--included-windows", config.included_windows)
        + _repeat("--ignored-urls", config.ignored_urls)
    )


def _auto_destruct(ctx: BuildContext) -> List[str]:
    # Dev builds outlive the shell so the recorder can be debugged on its own.
    if ctx.config.dev_mode:
        return []
    return ["--auto-destruct-pid", str(ctx.current_pid)]


def _vad_sensitivity(ctx: BuildContext) -> List[str]:
    if ctx.config.vad_sensitivity == DEFAULT_VAD_SENSITIVITY:
        return []
    return ["--vad-sensitivity", ctx.config.vad_sensitivity]


def _audio_chunk_duration(ctx: BuildContext) -> List[str]:
    if ctx.config.audio_chunk_duration == DEFAULT_AUDIO_CHUNK_DURATION:
        return []
    return ["--audio-chunk-duration", str(ctx.config.audio_chunk_duration)]


def _data_dir(ctx: BuildContext) -> List[str]:
    data_dir = ctx.config.data_dir
    if not data_dir or data_dir == DEFAULT_SENTINEL:
        return []
    return ["--data-dir", data_dir]


def _cloud_transcription(ctx: BuildContext) -> List[str]:
    # The cloud proxy authenticates with the account id passed as the Deepgram key.
    user_id = ctx.config.user.id
    if not ctx.config.uses_cloud_transcription or not user_id:
        return []
    return ["--deepgram-api-key", user_id]


ARGUMENT_RULES: Tuple[ArgumentRule, ...] = (
    ArgumentRule("port", _port),
    ArgumentRule("fps", _fps),
    ArgumentRule("audio_transcription_engine", _transcription_engine),
    ArgumentRule("ocr_engine", _ocr_engine),
    ArgumentRule("monitors", _monitors),
    ArgumentRule("languages", _languages),
    ArgumentRule("deepgram_api_key", _deepgram_key),
    ArgumentRule("audio_devices", _audio_devices),
    ArgumentRule("flags", _bare_flags),
    ArgumentRule("window_filters", _window_filters),
    ArgumentRule("auto_destruct_pid", _auto_destruct),
    ArgumentRule("vad_sensitivity", _vad_sensitivity),
    ArgumentRule("audio_chunk_duration", _audio_chunk_duration),
    ArgumentRule("data_dir", _data_dir),
    ArgumentRule("cloud_transcription", _cloud_transcription),
)


def apply_rules(ctx: BuildContext, rules: Sequence[ArgumentRule] = ARGUMENT_RULES) -> List[str]:
    """Run ``rules`` in order and append qualifying override arguments."""
    args: List[str] = []
    for rule in rules:
        args.extend(rule.render(ctx))

    # Only realtime vision can be forced on from the caller.
    if REALTIME_VISION_FLAG in ctx.override_args and REALTIME_VISION_FLAG not in args:
        args.extend(ctx.override_args)
    return args


async def _resolve_default_monitor(
    config: ConfigurationSnapshot,
    monitor_lookup: Optional[MonitorEnumerator],
) -> Optional[MonitorDevice]:
    if DEFAULT_SENTINEL not in config.monitor_ids:
        return None
    if monitor_lookup is None:
        logger.error("Failed to get default monitor: no monitor enumerator configured")
        return None
    try:
        monitors = await monitor_lookup.list_monitors()
    except CollaboratorQueryFailure as exc:
        logger.error("Failed to get default monitor: %s", exc)
        return None
    return select_default_monitor(monitors)


async def build_worker_args(
    config: ConfigurationSnapshot,
    license: LicenseSnapshot,
    current_pid: int,
    monitor_lookup: Optional[MonitorEnumerator] = None,
    *,
    now: Optional[datetime] = None,
    override_args: Optional[Sequence[str]] = None,
) -> List[str]:
    """Build the recorder's argument list for one spawn attempt.

    Args:
        config: Frozen user settings.
        license: License fields read live from the store.
        current_pid: Pid the recorder should watch and exit with.
        monitor_lookup: Enumerator used to resolve the "default" monitor id.
        now: Clock used for the license window checks.
        override_args: Extra arguments from the caller; see ``apply_rules``.
    """
    read_only = license.is_read_only_mode(now)
    if read_only:
        logger.info("Trial expired, spawning recorder in read-only mode")

    ctx = BuildContext(
        config=config,
        read_only=read_only,
        current_pid=current_pid,
        default_monitor=await _resolve_default_monitor(config, monitor_lookup),
        override_args=tuple(override_args or ()),
    )
    return apply_rules(ctx)


def build_worker_env(config: ConfigurationSnapshot) -> Dict[str, str]:
    """Environment bindings layered over the host's own environment."""
    env = {"SCREENPIPE_FD_LIMIT": FD_LIMIT}

    if config.use_chinese_mirror:
        env["HF_ENDPOINT"] = HF_MIRROR_ENDPOINT

    if config.uses_cloud_transcription and config.user.id:
        logger.info("Using cloud transcription with user id: %s", config.user.id)
        env["DEEPGRAM_API_URL"] = CLOUD_DEEPGRAM_API_URL
        env["DEEPGRAM_WEBSOCKET_URL"] = CLOUD_DEEPGRAM_WEBSOCKET_URL
        env["CUSTOM_DEEPGRAM_API_TOKEN"] = config.user.id

    env["SENTRY_RELEASE_NAME_APPEND"] = SENTRY_RELEASE_SUFFIX
    env["SCREENPIPE_ANALYTICS_ID"] = config.analytics_id
    return env


@dataclass(frozen=True)
class WorkerInvocation:
    program: str
    args: Tuple[str, ...]
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    def merged_env(self, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        merged = dict(os.environ if base is None else base)
        merged.update(self.env)
        return merged


def find_worker_binary(configured: Optional[str] = None) -> str:
    """Locate the recorder executable.

    Order: an explicitly configured path, ``PATH``, then the directory of
    the running interpreter or frozen executable. Falls back to the bare
    name so the OS error surfaces at launch time.
    """
    if configured:
        candidate = Path(configured).expanduser()
        if candidate.is_file():
            return str(candidate)
        logger.warning("Configured worker binary %s not found, searching PATH", candidate)

    found = shutil.which(WORKER_NAME)
    if found:
        return found

    sibling = Path(sys.executable).resolve().parent / worker_image_name()
    if sibling.is_file():
        return str(sibling)

    return WORKER_NAME


async def build_invocation(
    program: str,
    config: ConfigurationSnapshot,
    license: LicenseSnapshot,
    current_pid: int,
    monitor_lookup: Optional[MonitorEnumerator] = None,
    *,
    now: Optional[datetime] = None,
    override_args: Optional[Sequence[str]] = None,
) -> WorkerInvocation:
    args = await build_worker_args(
        config,
        license,
        current_pid,
        monitor_lookup,
        now=now,
        override_args=override_args,
    )
    return WorkerInvocation(program=program, args=tuple(args), env=build_worker_env(config))


__all__ = [
    "ARGUMENT_RULES",
    "ArgumentRule",
    "BuildContext",
    "WorkerInvocation",
    "apply_rules",
    "build_invocation",
    "build_worker_args",
    "build_worker_env",
    "find_worker_binary",
    "format_number",
]
