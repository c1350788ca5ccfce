"""Frozen copy of the user's recording settings taken at spawn time."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import SettingsStoreError
from .logging_utils import get_module_logger
from .settings_store import SettingsStore, read_settings

logger = get_module_logger("ConfigSnapshot")

DEFAULT_SENTINEL = "default"
DEFAULT_PORT = 3030
DEFAULT_FPS = 0.2
DEFAULT_VAD_SENSITIVITY = "high"
DEFAULT_AUDIO_CHUNK_DURATION = 30
CLOUD_TRANSCRIPTION_ENGINE = "screenpipe-cloud"


def _get_str(settings: Mapping[str, Any], key: str, default: str) -> str:
    value = settings.get(key)
    if value is None:
        return default
    if isinstance(value, (dict, list, bool)):
        logger.warning("Invalid string value for %s: %r, using default %r", key, value, default)
        return default
    return str(value)


def _get_optional_str(settings: Mapping[str, Any], key: str) -> Optional[str]:
    value = settings.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _get_bool(settings: Mapping[str, Any], key: str, default: bool) -> bool:
    value = settings.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    logger.warning("Invalid bool value for %s: %r, using default %s", key, value, default)
    return default


def _get_int(settings: Mapping[str, Any], key: str, default: int) -> int:
    value = settings.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        logger.warning("Invalid int value for %s: %r, using default %d", key, value, default)
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid int value for %s: %r, using default %d", key, value, default)
        return default


def _get_float(settings: Mapping[str, Any], key: str, default: float) -> float:
    value = settings.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        logger.warning("Invalid float value for %s: %r, using default %f", key, value, default)
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid float value for %s: %r, using default %f", key, value, default)
        return default


def _get_str_list(settings: Mapping[str, Any], key: str) -> Tuple[str, ...]:
    value = settings.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        logger.warning("Invalid list value for %s: %r, using empty list", key, value)
        return ()
    items = []
    for item in value:
        if item is None or isinstance(item, (dict, list)):
            logger.warning("Skipping malformed entry in %s: %r", key, item)
            continue
        items.append(str(item))
    return tuple(items)


@dataclass(frozen=True)
class UserCredits:
    amount: int = 0
    created_at: Optional[str] = None


@dataclass(frozen=True)
class UserIdentity:
    """Signed-in account as stored by the desktop shell."""

    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    token: Optional[str] = None
    clerk_id: Optional[str] = None
    credits: Optional[UserCredits] = None
    cloud_subscribed: Optional[bool] = None

    @classmethod
    def from_settings(cls, raw: Any) -> "UserIdentity":
        if not isinstance(raw, dict):
            return cls()

        credits = None
        raw_credits = raw.get("credits")
        if isinstance(raw_credits, dict):
            credits = UserCredits(
                amount=_get_int(raw_credits, "amount", 0),
                created_at=_get_optional_str(raw_credits, "created_at"),
            )

        subscribed = raw.get("cloud_subscribed", raw.get("cloudSubscribed"))
        return cls(
            id=_get_optional_str(raw, "id") or None,
            email=_get_optional_str(raw, "email"),
            name=_get_optional_str(raw, "name"),
            image=_get_optional_str(raw, "image"),
            token=_get_optional_str(raw, "token"),
            clerk_id=_get_optional_str(raw, "clerk_id") or _get_optional_str(raw, "clerkId"),
            credits=credits,
            cloud_subscribed=subscribed if isinstance(subscribed, bool) else None,
        )


@dataclass(frozen=True)
class ConfigurationSnapshot:
    """Recording settings as they were when a spawn attempt started.

    Instances are built fresh for every spawn and never modified; list
    settings are tuples so the snapshot stays hashable and read-only.
    """

    audio_transcription_engine: str = DEFAULT_SENTINEL
    ocr_engine: str = DEFAULT_SENTINEL
    port: int = DEFAULT_PORT
    fps: float = DEFAULT_FPS
    monitor_ids: Tuple[str, ...] = ()
    audio_devices: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()
    deepgram_api_key: str = DEFAULT_SENTINEL
    disable_audio: bool = False
    disable_vision: bool = False
    use_pii_removal: bool = False
    enable_beta: bool = False
    enable_frame_cache: bool = False
    enable_realtime_audio_transcription: bool = False
    enable_realtime_vision: bool = False
    telemetry_enabled: bool = True
    use_chinese_mirror: bool = False
    ignored_windows: Tuple[str, ...] = ()
    included_windows: Tuple[str, ...] = ()
    ignored_urls: Tuple[str, ...] = ()
    dev_mode: bool = False
    vad_sensitivity: str = DEFAULT_VAD_SENSITIVITY
    audio_chunk_duration: int = DEFAULT_AUDIO_CHUNK_DURATION
    data_dir: str = DEFAULT_SENTINEL
    analytics_id: str = ""
    user: UserIdentity = field(default_factory=UserIdentity)

    @property
    def uses_cloud_transcription(self) -> bool:
        return self.audio_transcription_engine == CLOUD_TRANSCRIPTION_ENGINE

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "ConfigurationSnapshot":
        """Build a snapshot from the shell's camelCase settings object."""
        return cls(
            audio_transcription_engine=_get_str(settings, "audioTranscriptionEngine", DEFAULT_SENTINEL),
            ocr_engine=_get_str(settings, "ocrEngine", DEFAULT_SENTINEL),
            port=_get_int(settings, "port", DEFAULT_PORT),
            fps=_get_float(settings, "fps", DEFAULT_FPS),
            monitor_ids=_get_str_list(settings, "monitorIds"),
            audio_devices=_get_str_list(settings, "audioDevices"),
            languages=_get_str_list(settings, "languages"),
            deepgram_api_key=_get_str(settings, "deepgramApiKey", DEFAULT_SENTINEL),
            disable_audio=_get_bool(settings, "disableAudio", False),
            disable_vision=_get_bool(settings, "disableVision", False),
            use_pii_removal=_get_bool(settings, "usePiiRemoval", False),
            enable_beta=_get_bool(settings, "enableBeta", False),
            enable_frame_cache=_get_bool(settings, "enableFrameCache", False),
            enable_realtime_audio_transcription=_get_bool(settings, "enableRealtimeAudioTranscription", False),
            enable_realtime_vision=_get_bool(settings, "enableRealtimeVision", False),
            telemetry_enabled=_get_bool(settings, "analyticsEnabled", True),
            use_chinese_mirror=_get_bool(settings, "useChineseMirror", False),
            ignored_windows=_get_str_list(settings, "ignoredWindows"),
            included_windows=_get_str_list(settings, "includedWindows"),
            ignored_urls=_get_str_list(settings, "ignoredUrls"),
            dev_mode=_get_bool(settings, "devMode", False),
            vad_sensitivity=_get_str(settings, "vadSensitivity", DEFAULT_VAD_SENSITIVITY),
            audio_chunk_duration=_get_int(settings, "audioChunkDuration", DEFAULT_AUDIO_CHUNK_DURATION),
            data_dir=_get_str(settings, "dataDir", DEFAULT_SENTINEL),
            analytics_id=_get_str(settings, "analyticsId", ""),
            user=UserIdentity.from_settings(settings.get("user")),
        )


async def load_snapshot(store: SettingsStore) -> ConfigurationSnapshot:
    """Read the store once and freeze the result.

    An unreadable store yields the built-in defaults so the recorder can
    still start with a sane configuration.
    """
    try:
        settings: Dict[str, Any] = await read_settings(store)
    except SettingsStoreError as exc:
        logger.warning("Settings store unreadable, spawning with defaults: %s", exc)
        settings = {}
    return ConfigurationSnapshot.from_settings(settings)
