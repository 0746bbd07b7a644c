"""Media helpers for aiortc.

Scope:
- Open local capture (microphone, optionally camera) for one call.
- Provide a best-effort sink for remote tracks (playback if possible, else
  record to a file or discard).
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaDevice:
	"""A capture or playback endpoint.

	`device` is the ffmpeg device name passed to MediaPlayer/MediaRecorder and
	`backend` the ffmpeg format (pulse, alsa, v4l2, avfoundation, dshow...).
	"""

	backend: str
	device: str

	@property
	def label(self) -> str:
		return f"{self.backend}:{self.device}"


def _default_sources(kind: str) -> List[MediaDevice]:
	system = platform.system()
	if kind == "audio":
		if system == "Linux":
			# PulseAudio is typical on desktop Linux, ALSA otherwise.
			return [MediaDevice("pulse", "default"), MediaDevice("alsa", "default")]
		if system == "Darwin":
			return [MediaDevice("avfoundation", "none:0")]
		return []
	if system == "Linux":
		return [MediaDevice("v4l2", "/dev/video0")]
	if system == "Darwin":
		return [MediaDevice("avfoundation", "0:none")]
	return []


def _try_create_player(kind: str, preferred: Optional[MediaDevice] = None) -> Tuple[Optional[MediaPlayer], Optional[MediaStreamTrack]]:
	"""Try to open a capture player for `kind` ("audio" or "video").

	If a preferred device is provided, try it first, then fall back to the
	platform defaults.
	"""

	candidates = ([preferred] if preferred is not None else []) + _default_sources(kind)
	for candidate in candidates:
		try:
			player = MediaPlayer(candidate.device, format=candidate.backend)
		except Exception as e:
			logger.debug("local %s source=%s unavailable: %s", kind, candidate.label, e)
			continue
		track = player.audio if kind == "audio" else player.video
		if track is None:
			logger.debug("local %s source=%s has no %s stream", kind, candidate.label, kind)
			_stop_player(player)
			continue
		logger.info("local %s source=%s", kind, candidate.label)
		return player, track
	logger.info("local %s source=none", kind)
	return None, None


def _stop_player(player: MediaPlayer) -> None:
	for track in (player.audio, player.video):
		if track is None:
			continue
		try:
			track.stop()
		except Exception:
			logger.debug("player track stop failed", exc_info=True)


@dataclass
class LocalMedia:
	"""Owns the underlying media players so their tracks stay alive."""

	audio: Optional[MediaStreamTrack] = None
	video: Optional[MediaStreamTrack] = None
	players: List[MediaPlayer] = field(default_factory=list)

	@classmethod
	def create(
		cls,
		constraints: dict,
		*,
		audio_source: Optional[MediaDevice] = None,
		video_source: Optional[MediaDevice] = None,
	) -> "LocalMedia":
		media = cls()
		if constraints.get("audio"):
			player, media.audio = _try_create_player("audio", audio_source)
			if player is not None:
				media.players.append(player)
		if constraints.get("video"):
			player, media.video = _try_create_player("video", video_source)
			if player is not None:
				media.players.append(player)
		return media

	def track(self, kind: str) -> Optional[MediaStreamTrack]:
		return self.audio if kind == "audio" else self.video

	def close(self) -> None:
		"""Best-effort stop for the underlying ffmpeg processes."""
		players = self.players
		self.players = []
		self.audio = None
		self.video = None
		for player in players:
			_stop_player(player)


@dataclass
class RemoteMediaSink:
	"""Consumes remote tracks.

	Audio is played on `output` (or the system output) when ffmpeg supports
	it; with `record_path` every track is also recorded, one file per kind.
	Anything else is discarded.
	"""

	output: Optional[MediaDevice] = None
	record_path: Optional[str] = None
	_recorders: List[Any] = field(default_factory=list)

	async def add_track(self, track: MediaStreamTrack) -> None:
		kind = getattr(track, "kind", None)
		recorder, sink = self._open_recorder(kind)
		logger.info("remote %s sink=%s", kind, sink)
		recorder.addTrack(track)
		await recorder.start()
		self._recorders.append(recorder)

	def _open_recorder(self, kind: Optional[str]) -> Tuple[Any, str]:
		if self.record_path:
			stem, ext = os.path.splitext(self.record_path)
			path = f"{stem}-{kind}{ext or '.mp4'}"
			try:
				return MediaRecorder(path), f"file:{path}"
			except Exception as e:
				logger.warning("remote %s recorder path=%s failed: %s", kind, path, e)

		if kind == "audio":
			outputs = ([self.output] if self.output is not None else []) + [
				MediaDevice("pulse", "default"),
				MediaDevice("alsa", "default"),
			]
			for out in outputs:
				try:
					return MediaRecorder(out.device, format=out.backend), out.label
				except Exception:
					continue

		return MediaBlackhole(), "blackhole"

	async def stop(self) -> None:
		recorders = self._recorders
		self._recorders = []
		for recorder in recorders:
			try:
				await recorder.stop()
			except Exception:
				logger.debug("remote recorder stop failed", exc_info=True)
