"""Unit tests for ConfigurationSnapshot."""

import pytest

from thadm_host.core.config_snapshot import (
    ConfigurationSnapshot,
    UserCredits,
    UserIdentity,
    load_snapshot,
)
from thadm_host.core.errors import SettingsStoreError
from thadm_host.core.settings_store import MemorySettingsStore


class BrokenStore:
    async def get(self, key):
        raise SettingsStoreError("disk on fire")


class TestFromSettings:

    def test_defaults(self):
        snapshot = ConfigurationSnapshot.from_settings({})

        assert snapshot == ConfigurationSnapshot()
        assert snapshot.port == 3030
        assert snapshot.fps == 0.2
        assert snapshot.audio_transcription_engine == "default"
        assert snapshot.telemetry_enabled is True
        assert snapshot.user == UserIdentity()

    def test_reads_camel_case_keys(self):
        snapshot = ConfigurationSnapshot.from_settings({
            "audioTranscriptionEngine": "whisper-large",
            "port": 4000,
            "fps": 1,
            "monitorIds": ["1", 2],
            "disableAudio": True,
            "analyticsEnabled": False,
            "ignoredWindows": ["Bitwarden"],
            "audioChunkDuration": "15",
            "dataDir": "/data",
        })

        assert snapshot.audio_transcription_engine == "whisper-large"
        assert snapshot.port == 4000
        assert snapshot.fps == 1.0
        assert snapshot.monitor_ids == ("1", "2")
        assert snapshot.disable_audio is True
        assert snapshot.telemetry_enabled is False
        assert snapshot.ignored_windows == ("Bitwarden",)
        assert snapshot.audio_chunk_duration == 15
        assert snapshot.data_dir == "/data"

    @pytest.mark.parametrize("settings, field, expected", [
        ({"port": "not-a-port"}, "port", 3030),
        ({"port": True}, "port", 3030),
        ({"fps": [1]}, "fps", 0.2),
        ({"disableVision": "yes"}, "disable_vision", False),
        ({"languages": "english"}, "languages", ()),
        ({"ocrEngine": {"name": "x"}}, "ocr_engine", "default"),
    ])
    def test_malformed_values_fall_back(self, settings, field, expected):
        assert getattr(ConfigurationSnapshot.from_settings(settings), field) == expected

    def test_malformed_list_entries_skipped(self):
        snapshot = ConfigurationSnapshot.from_settings({"audioDevices": ["Mic (input)", None, {"x": 1}]})
        assert snapshot.audio_devices == ("Mic (input)",)

    def test_user_identity(self):
        snapshot = ConfigurationSnapshot.from_settings({
            "user": {
                "id": "user-1",
                "email": "a@example.com",
                "clerkId": "clerk-9",
                "credits": {"amount": 5, "created_at": "2025-01-01"},
                "cloud_subscribed": True,
            },
        })

        assert snapshot.user.id == "user-1"
        assert snapshot.user.clerk_id == "clerk-9"
        assert snapshot.user.credits == UserCredits(amount=5, created_at="2025-01-01")
        assert snapshot.user.cloud_subscribed is True

    def test_empty_user_id_is_none(self):
        assert ConfigurationSnapshot.from_settings({"user": {"id": ""}}).user.id is None

    def test_cloud_engine(self):
        snapshot = ConfigurationSnapshot.from_settings({"audioTranscriptionEngine": "screenpipe-cloud"})
        assert snapshot.uses_cloud_transcription

    def test_snapshot_is_frozen(self):
        snapshot = ConfigurationSnapshot()
        with pytest.raises(AttributeError):
            snapshot.port = 1


class TestLoadSnapshot:

    @pytest.mark.asyncio
    async def test_loads_from_store(self):
        store = MemorySettingsStore({"settings": {"port": 3131}})
        assert (await load_snapshot(store)).port == 3131

    @pytest.mark.asyncio
    async def test_unreadable_store_uses_defaults(self):
        assert await load_snapshot(BrokenStore()) == ConfigurationSnapshot()

    @pytest.mark.asyncio
    async def test_later_writes_not_reflected(self):
        store = MemorySettingsStore({"settings": {"fps": 0.5}})
        snapshot = await load_snapshot(store)

        store.update_settings(fps=2.0)

        assert snapshot.fps == 0.5
        assert (await load_snapshot(store)).fps == 2.0
