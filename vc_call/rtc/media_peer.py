"""One aiortc connection to the relay for the current call."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from aiortc import (
    RTCConfiguration,
    RTCIceCandidate,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from ..net.protocol import IceCandidateDict
from .media import LocalMedia, MediaDevice, RemoteMediaSink


logger = logging.getLogger(__name__)


AsyncPeerCallback = Callable[..., Awaitable[None]]

_CANDIDATE_PREFIX = "candidate:"


def candidate_to_json(candidate: RTCIceCandidate) -> IceCandidateDict:
    return {
        "candidate": _CANDIDATE_PREFIX + candidate_to_sdp(candidate),
        "sdpMid": getattr(candidate, "sdpMid", None),
        "sdpMLineIndex": getattr(candidate, "sdpMLineIndex", None),
    }


def candidate_from_json(obj: Dict[str, Any]) -> RTCIceCandidate:
    cand_sdp = obj.get("candidate")
    if not isinstance(cand_sdp, str) or not cand_sdp:
        raise ValueError("missing candidate")
    # Browsers and the relay use the a= attribute value, aiortc wants it bare.
    if cand_sdp.startswith(_CANDIDATE_PREFIX):
        cand_sdp = cand_sdp[len(_CANDIDATE_PREFIX):]
    cand = candidate_from_sdp(cand_sdp)
    cand.sdpMid = obj.get("sdpMid")
    cand.sdpMLineIndex = obj.get("sdpMLineIndex")
    return cand


def make_rtc_configuration(ice_servers: Iterable[str]) -> Optional[RTCConfiguration]:
    urls = [u for u in ice_servers if u]
    if not urls:
        return None
    return RTCConfiguration(iceServers=[RTCIceServer(urls=u) for u in urls])


class WebRTCMediaPeer:
    def __init__(
        self,
        local_media: LocalMedia,
        constraints: Dict[str, bool],
        *,
        on_ice_candidate: Optional[AsyncPeerCallback] = None,  # (candidate: dict)
        on_error: Optional[AsyncPeerCallback] = None,  # (error: Exception)
        remote_sink: Optional[RemoteMediaSink] = None,
        rtc_config: Optional[RTCConfiguration] = None,
    ):
        self._pc = RTCPeerConnection(configuration=rtc_config)
        self._local_media = local_media
        self._remote_sink = remote_sink or RemoteMediaSink()
        self._on_ice_candidate = on_ice_candidate
        self._on_error = on_error
        self._closed = False

        for kind in ("audio", "video"):
            if not constraints.get(kind):
                continue
            track = local_media.track(kind)
            if track is not None:
                self._pc.addTrack(track)
            else:
                # Still negotiate the media section so the remote can send.
                self._pc.addTransceiver(kind, direction="sendrecv")

        @self._pc.on("icecandidate")
        async def on_icecandidate(event) -> None:
            # aiortc embeds candidates in the SDP; this only fires for
            # implementations that trickle.
            if event is None or event.candidate is None:
                return
            if self._on_ice_candidate:
                await self._on_ice_candidate(candidate_to_json(event.candidate))

        @self._pc.on("connectionstatechange")
        async def on_connectionstatechange() -> None:
            state = self._pc.connectionState
            logger.info("pc connectionState=%s", state)
            if state == "failed" and self._on_error and not self._closed:
                await self._on_error(ConnectionError("peer connection failed"))

        @self._pc.on("track")
        async def on_track(track) -> None:
            logger.info("pc remote track kind=%s", track.kind)
            await self._remote_sink.add_track(track)

    @property
    def closed(self) -> bool:
        return self._closed

    async def dispose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._remote_sink.stop()
        finally:
            try:
                await self._pc.close()
            finally:
                self._local_media.close()

    async def generate_offer(self) -> str:
        offer = await self._pc.createOffer()
        await self._pc.setLocalDescription(offer)
        assert self._pc.localDescription is not None
        return self._pc.localDescription.sdp

    async def process_answer(self, sdp: str) -> None:
        await self._pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="answer"))

    async def add_ice_candidate(self, candidate_obj: Dict[str, Any]) -> None:
        if not candidate_obj.get("candidate"):
            # End-of-candidates marker.
            return
        await self._pc.addIceCandidate(candidate_from_json(candidate_obj))


class WebRTCMediaPeerFactory:
    """Creates send/receive peers with freshly opened local media."""

    def __init__(
        self,
        *,
        audio_source: Optional[MediaDevice] = None,
        video_source: Optional[MediaDevice] = None,
        audio_output: Optional[MediaDevice] = None,
        record_path: Optional[str] = None,
        rtc_config: Optional[RTCConfiguration] = None,
    ):
        self.audio_source = audio_source
        self.video_source = video_source
        self.audio_output = audio_output
        self.record_path = record_path
        self.rtc_config = rtc_config

    async def __call__(
        self,
        *,
        role: str,
        constraints: Dict[str, bool],
        on_ice_candidate: AsyncPeerCallback,
        on_error: AsyncPeerCallback,
    ) -> WebRTCMediaPeer:
        if role != "sendrecv":
            raise ValueError(f"unsupported media role {role!r}")
        local_media = LocalMedia.create(
            constraints,
            audio_source=self.audio_source,
            video_source=self.video_source,
        )
        logger.debug(
            "rtc created local media audio=%s video=%s",
            local_media.audio is not None,
            local_media.video is not None,
        )
        try:
            return WebRTCMediaPeer(
                local_media,
                constraints,
                on_ice_candidate=on_ice_candidate,
                on_error=on_error,
                remote_sink=RemoteMediaSink(output=self.audio_output, record_path=self.record_path),
                rtc_config=self.rtc_config,
            )
        except Exception:
            local_media.close()
            raise
