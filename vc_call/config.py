from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .rtc.media import MediaDevice


DEFAULT_SERVER_URL = "wss://127.0.0.1:8443/call"


def _env_truthy(name: str) -> bool:
	v = os.environ.get(name, "").strip().casefold()
	return v in {"1", "true", "yes", "on"}


def _env_device(source_var: str, format_var: str) -> Optional[MediaDevice]:
	"""Build a MediaDevice from a pair of env vars.

	`VC_AUDIO_SOURCE=default VC_AUDIO_FORMAT=pulse` -> pulse:default. A source
	without a format is ignored since ffmpeg needs both.
	"""

	device = os.environ.get(source_var, "").strip()
	backend = os.environ.get(format_var, "").strip()
	if not device or not backend:
		return None
	return MediaDevice(backend=backend, device=device)


def _split_urls(value: str) -> List[str]:
	return [u.strip() for u in value.split(",") if u.strip()]


@dataclass
class AppConfig:
	server_url: str = DEFAULT_SERVER_URL
	name: str = ""
	peer: str = ""
	insecure: bool = False
	ice_servers: List[str] = field(default_factory=list)
	audio_source: Optional[MediaDevice] = None
	video_source: Optional[MediaDevice] = None
	audio_output: Optional[MediaDevice] = None
	record_path: Optional[str] = None

	@property
	def has_video_source(self) -> bool:
		return self.video_source is not None

	@classmethod
	def from_env(cls) -> "AppConfig":
		return cls(
			server_url=os.environ.get("VC_SERVER_URL", DEFAULT_SERVER_URL),
			name=os.environ.get("VC_NAME", os.environ.get("USER", "")),
			peer=os.environ.get("VC_PEER", ""),
			insecure=_env_truthy("VC_CALL_INSECURE"),
			ice_servers=_split_urls(os.environ.get("VC_ICE_SERVERS", "")),
			audio_source=_env_device("VC_AUDIO_SOURCE", "VC_AUDIO_FORMAT"),
			video_source=_env_device("VC_VIDEO_SOURCE", "VC_VIDEO_FORMAT"),
			audio_output=_env_device("VC_AUDIO_OUTPUT", "VC_AUDIO_OUTPUT_FORMAT"),
			record_path=os.environ.get("VC_RECORD_PATH") or None,
		)
