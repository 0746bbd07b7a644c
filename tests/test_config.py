"""Tests for environment and command-line configuration."""

import pytest

from vc_call.config import DEFAULT_SERVER_URL, AppConfig
from vc_call.main import parse_config
from vc_call.rtc.media import MediaDevice


_ENV_VARS = [
    "VC_SERVER_URL",
    "VC_NAME",
    "VC_PEER",
    "VC_CALL_INSECURE",
    "VC_ICE_SERVERS",
    "VC_AUDIO_SOURCE",
    "VC_AUDIO_FORMAT",
    "VC_VIDEO_SOURCE",
    "VC_VIDEO_FORMAT",
    "VC_AUDIO_OUTPUT",
    "VC_AUDIO_OUTPUT_FORMAT",
    "VC_RECORD_PATH",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("USER", "tester")


def test_defaults():
    cfg = AppConfig.from_env()
    assert cfg.server_url == DEFAULT_SERVER_URL
    assert cfg.name == "tester"
    assert cfg.insecure is False
    assert cfg.ice_servers == []
    assert cfg.audio_source is None
    assert not cfg.has_video_source


def test_from_env(monkeypatch):
    monkeypatch.setenv("VC_SERVER_URL", "wss://relay.example/call")
    monkeypatch.setenv("VC_NAME", "alice")
    monkeypatch.setenv("VC_CALL_INSECURE", "yes")
    monkeypatch.setenv("VC_ICE_SERVERS", "stun:a:3478, turn:b:3478")
    monkeypatch.setenv("VC_VIDEO_SOURCE", "/dev/video2")
    monkeypatch.setenv("VC_VIDEO_FORMAT", "v4l2")
    # A source without a format is ignored.
    monkeypatch.setenv("VC_AUDIO_SOURCE", "default")

    cfg = AppConfig.from_env()
    assert cfg.server_url == "wss://relay.example/call"
    assert cfg.name == "alice"
    assert cfg.insecure is True
    assert cfg.ice_servers == ["stun:a:3478", "turn:b:3478"]
    assert cfg.video_source == MediaDevice(backend="v4l2", device="/dev/video2")
    assert cfg.audio_source is None


def test_cli_overrides_env(monkeypatch):
    monkeypatch.setenv("VC_NAME", "alice")
    monkeypatch.setenv("VC_ICE_SERVERS", "stun:a:3478")

    cfg, level = parse_config(
        [
            "--name",
            "bob",
            "--audio-source",
            "pulse:default",
            "--ice-server",
            "stun:b:3478",
            "--log-level",
            "debug",
        ]
    )
    assert cfg.name == "bob"
    assert cfg.audio_source == MediaDevice(backend="pulse", device="default")
    assert cfg.ice_servers == ["stun:b:3478"]
    assert level == "debug"


def test_cli_rejects_bad_device():
    with pytest.raises(SystemExit):
        parse_config(["--video-source", "nodevice"])
