from __future__ import annotations

import argparse
import sys
from dataclasses import replace

from .config import AppConfig
from .logging_config import setup_logging
from .rtc.media import MediaDevice


def _device(value: str | None) -> MediaDevice | None:
	"""Parse `format:device`, e.g. `pulse:default` or `v4l2:/dev/video0`."""
	if not value:
		return None
	backend, sep, device = value.partition(":")
	if not sep or not backend or not device:
		raise argparse.ArgumentTypeError(f"expected FORMAT:DEVICE, got {value!r}")
	return MediaDevice(backend=backend, device=device)


def build_parser(defaults: AppConfig) -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="vc-call one-to-one call client")
	parser.add_argument(
		"--log-level",
		default=None,
		help="Logging level (debug, info, warning, error). Can also use VC_CALL_LOG_LEVEL or VC_LOG_LEVEL.",
	)
	parser.add_argument("--server-url", default=defaults.server_url, help="WebSocket signaling URL")
	parser.add_argument("--name", default=defaults.name, help="Name to register with the relay")
	parser.add_argument("--peer", default=defaults.peer, help="Default peer to call")
	parser.add_argument(
		"--insecure",
		action="store_true",
		default=defaults.insecure,
		help="Skip TLS certificate verification (self-signed relays)",
	)
	parser.add_argument(
		"--ice-server",
		action="append",
		dest="ice_servers",
		default=None,
		help="STUN/TURN url; repeatable. Defaults to VC_ICE_SERVERS.",
	)
	parser.add_argument("--audio-source", type=_device, default=None, help="Capture device as FORMAT:DEVICE")
	parser.add_argument("--video-source", type=_device, default=None, help="Camera device as FORMAT:DEVICE")
	parser.add_argument("--audio-output", type=_device, default=None, help="Playback device as FORMAT:DEVICE")
	parser.add_argument("--record", dest="record_path", default=defaults.record_path, help="Record remote media to this path")
	return parser


def parse_config(argv: list[str] | None = None) -> tuple[AppConfig, str | None]:
	defaults = AppConfig.from_env()
	args = build_parser(defaults).parse_args(argv)
	cfg = replace(
		defaults,
		server_url=args.server_url,
		name=args.name,
		peer=args.peer,
		insecure=args.insecure,
		ice_servers=args.ice_servers if args.ice_servers is not None else defaults.ice_servers,
		audio_source=args.audio_source or defaults.audio_source,
		video_source=args.video_source or defaults.video_source,
		audio_output=args.audio_output or defaults.audio_output,
		record_path=args.record_path,
	)
	return cfg, args.log_level


def main(argv: list[str] | None = None) -> int:
	cfg, log_level = parse_config(argv)

	setup_logging(log_level)

	try:
		from .ui.app import VCCallApp, create_qt_app
	except Exception as e:
		print(f"Failed to import UI dependencies: {e}")
		print("Install client deps with: pip install -e .")
		return 2

	qt_app = create_qt_app()
	controller = VCCallApp(cfg)
	controller.start()
	qt_app.aboutToQuit.connect(controller.shutdown)

	return qt_app.exec()


if __name__ == "__main__":
	raise SystemExit(main(sys.argv[1:]))
