"""Tests for the aiortc media peer."""

import pytest

from vc_call.rtc.media import LocalMedia
from vc_call.rtc.media_peer import (
    WebRTCMediaPeer,
    WebRTCMediaPeerFactory,
    candidate_from_json,
    candidate_to_json,
    make_rtc_configuration,
)


HOST_CANDIDATE = "candidate:842163049 1 udp 1677729535 192.168.1.20 54321 typ host"


async def _noop(*_args) -> None:
    return None


def test_candidate_from_json_accepts_prefixed_string():
    cand = candidate_from_json({"candidate": HOST_CANDIDATE, "sdpMid": "0", "sdpMLineIndex": 0})
    assert cand.ip == "192.168.1.20"
    assert cand.port == 54321
    assert cand.type == "host"
    assert cand.sdpMid == "0"
    assert cand.sdpMLineIndex == 0

    out = candidate_to_json(cand)
    assert out["candidate"].startswith("candidate:842163049 1 udp")
    assert out["sdpMid"] == "0"


def test_candidate_from_json_requires_candidate():
    with pytest.raises(ValueError):
        candidate_from_json({"sdpMid": "0"})


def test_rtc_configuration():
    assert make_rtc_configuration([]) is None
    cfg = make_rtc_configuration(["stun:stun.example.org:3478", ""])
    assert [s.urls for s in cfg.iceServers] == ["stun:stun.example.org:3478"]


@pytest.mark.asyncio
async def test_offer_without_local_devices_negotiates_media_sections():
    peer = WebRTCMediaPeer(LocalMedia(), {"audio": True, "video": True})
    try:
        sdp = await peer.generate_offer()
    finally:
        await peer.dispose()

    assert sdp.startswith("v=0")
    assert "m=audio" in sdp
    assert "m=video" in sdp
    assert "a=sendrecv" in sdp


@pytest.mark.asyncio
async def test_dispose_is_idempotent():
    peer = WebRTCMediaPeer(LocalMedia(), {"audio": True, "video": False})
    await peer.dispose()
    await peer.dispose()
    assert peer.closed


@pytest.mark.asyncio
async def test_end_of_candidates_is_ignored():
    peer = WebRTCMediaPeer(LocalMedia(), {"audio": True, "video": False})
    try:
        await peer.add_ice_candidate({"candidate": "", "sdpMid": "0", "sdpMLineIndex": 0})
    finally:
        await peer.dispose()


@pytest.mark.asyncio
async def test_factory_rejects_unknown_role():
    factory = WebRTCMediaPeerFactory()
    with pytest.raises(ValueError):
        await factory(role="recvonly", constraints={"audio": True}, on_ice_candidate=_noop, on_error=_noop)
