from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Dict, Optional

from PySide6 import QtCore, QtWidgets

from ..config import AppConfig
from ..core.controller import SignalingController
from ..core.state import CallStatus, RegistrationStatus
from ..net.signaling_client import SignalingCallbacks, SignalingClient
from ..rtc.media_peer import WebRTCMediaPeerFactory, make_rtc_configuration
from .windows import MainWindow


logger = logging.getLogger(__name__)


class AsyncioThread:
	"""Runs an asyncio loop in a background thread and schedules coroutines."""

	def __init__(self):
		self._loop: Optional[asyncio.AbstractEventLoop] = None
		self._thread: Optional[threading.Thread] = None
		self._ready = threading.Event()

	@property
	def loop(self) -> asyncio.AbstractEventLoop:
		if not self._loop:
			raise RuntimeError("AsyncioThread not started")
		return self._loop

	def start(self) -> None:
		if self._thread and self._thread.is_alive():
			return

		def _run() -> None:
			self._loop = asyncio.new_event_loop()
			asyncio.set_event_loop(self._loop)
			self._ready.set()
			self._loop.run_forever()

		self._thread = threading.Thread(target=_run, name="asyncio-thread", daemon=True)
		self._thread.start()
		self._ready.wait(timeout=5)

	def stop(self) -> None:
		if not self._loop:
			return
		self._loop.call_soon_threadsafe(self._loop.stop)

	def submit(self, coro) -> Future:
		return asyncio.run_coroutine_threadsafe(coro, self.loop)


class PendingAnswer:
	"""Carries an accept/decline answer from the Qt thread back to the loop."""

	def __init__(self, loop: asyncio.AbstractEventLoop, fut: "asyncio.Future[bool]"):
		self._loop = loop
		self._fut = fut

	def resolve(self, accepted: bool) -> None:
		def _set() -> None:
			if not self._fut.done():
				self._fut.set_result(accepted)

		self._loop.call_soon_threadsafe(_set)


class UiBridge(QtCore.QObject):
	log = QtCore.Signal(str)
	status = QtCore.Signal(str)
	connection = QtCore.Signal(str)
	error = QtCore.Signal(str)
	info = QtCore.Signal(str)
	registration_phase = QtCore.Signal(str)
	call_phase = QtCore.Signal(str)
	incoming_call = QtCore.Signal(str, object)  # (from_name, PendingAnswer)


class VCCallApp(QtCore.QObject):
	"""Qt front-end; also the CallUi the controller reports to.

	CallUi methods run on the asyncio thread and only emit bridge signals.
	"""

	def __init__(self, cfg: AppConfig):
		super().__init__()
		self.cfg = cfg

		self.window = MainWindow()
		self.bridge = UiBridge()
		self.asyncio_thread = AsyncioThread()
		self._incoming_box: Optional[QtWidgets.QMessageBox] = None

		self.signaling = SignalingClient(
			url=self.cfg.server_url,
			insecure=self.cfg.insecure,
			callbacks=SignalingCallbacks(
				on_log=self._on_async_log,
				on_connected=self._on_connected,
				on_message=self._on_message,
				on_closed=self._on_closed,
				on_error=self._on_error,
			),
		)
		self.peer_factory = WebRTCMediaPeerFactory(
			audio_source=self.cfg.audio_source,
			video_source=self.cfg.video_source,
			audio_output=self.cfg.audio_output,
			record_path=self.cfg.record_path,
			rtc_config=make_rtc_configuration(self.cfg.ice_servers),
		)
		self.controller = SignalingController(self.signaling, self.peer_factory, self)

		self._wire_ui()
		self._wire_bridge()

		# Defaults
		self.window.server_url_edit.setText(cfg.server_url)
		self.window.name_edit.setText(cfg.name)
		self.window.peer_edit.setText(cfg.peer)
		self.window.video_check.setChecked(cfg.has_video_source)

	def start(self) -> None:
		self.asyncio_thread.start()
		self.window.show()
		self.bridge.status.emit("Ready")
		logger.info("ui started")

	def shutdown(self) -> None:
		logger.info("ui shutdown")
		try:
			self.asyncio_thread.submit(self._shutdown()).result(timeout=5)
		except Exception:
			logger.warning("ui shutdown did not finish cleanly", exc_info=True)
		self.asyncio_thread.stop()

	async def _shutdown(self) -> None:
		if not self.controller.call.is_idle and self.signaling.is_connected:
			await self.controller.hang_up()
		await self.controller.reset()
		await self.controller.wait_pending()
		await self.signaling.disconnect()

	def _wire_ui(self) -> None:
		self.window.connect_clicked.connect(self._on_connect_clicked)
		self.window.disconnect_clicked.connect(self._on_disconnect_clicked)
		self.window.register_clicked.connect(self._on_register_clicked)
		self.window.call_clicked.connect(self._on_call_clicked)
		self.window.hang_up_clicked.connect(self._on_hang_up_clicked)

	def _wire_bridge(self) -> None:
		self.bridge.log.connect(self.window.log_panel.append_log)
		self.bridge.status.connect(self.window.set_status)
		self.bridge.connection.connect(self.window.status_card.set_connection_state)
		self.bridge.error.connect(self._show_error)
		self.bridge.info.connect(self._show_info)
		self.bridge.registration_phase.connect(self.window.apply_registration_phase)
		self.bridge.call_phase.connect(self.window.apply_call_phase)
		self.bridge.call_phase.connect(self._on_call_phase)
		self.bridge.incoming_call.connect(self._on_incoming_call_prompt)

	@QtCore.Slot()
	def _on_connect_clicked(self) -> None:
		self.signaling.url = self.window.server_url_edit.text().strip()
		self.bridge.status.emit("Connecting...")
		logger.info("ui connect clicked url=%s", self.signaling.url)
		self.asyncio_thread.submit(self.signaling.connect())

	@QtCore.Slot()
	def _on_disconnect_clicked(self) -> None:
		self.bridge.status.emit("Disconnecting...")
		logger.info("ui disconnect clicked")
		self.asyncio_thread.submit(self._disconnect())

	async def _disconnect(self) -> None:
		await self.controller.reset()
		await self.signaling.disconnect()
		self.bridge.connection.emit("Disconnected")
		self.bridge.status.emit("Disconnected")

	@QtCore.Slot()
	def _on_register_clicked(self) -> None:
		name = self.window.name_edit.text().strip()
		logger.info("ui register clicked name_set=%s", bool(name))
		self.asyncio_thread.submit(self.controller.register(name))

	@QtCore.Slot()
	def _on_call_clicked(self) -> None:
		peer = self.window.peer_edit.text().strip()
		video = self.window.video_check.isChecked()
		logger.info("ui call clicked peer_set=%s video=%s", bool(peer), video)
		self.asyncio_thread.submit(self.controller.place_call(peer, video))

	@QtCore.Slot()
	def _on_hang_up_clicked(self) -> None:
		logger.info("ui hang up clicked")
		self.asyncio_thread.submit(self.controller.hang_up())

	@QtCore.Slot(str)
	def _show_error(self, text: str) -> None:
		self.window.log_panel.append_log(f"Error: {text}")
		QtWidgets.QMessageBox.warning(self.window, "vc-call", text)

	@QtCore.Slot(str)
	def _show_info(self, text: str) -> None:
		self.window.log_panel.append_log(text)
		QtWidgets.QMessageBox.information(self.window, "vc-call", text)

	@QtCore.Slot(str, object)
	def _on_incoming_call_prompt(self, from_name: str, pending: PendingAnswer) -> None:
		box = QtWidgets.QMessageBox(
			QtWidgets.QMessageBox.Icon.Question,
			"Incoming call",
			f"User {from_name} is calling. Do you accept the call?",
			QtWidgets.QMessageBox.StandardButton.Yes | QtWidgets.QMessageBox.StandardButton.No,
			self.window,
		)

		def _finished(result: int) -> None:
			if self._incoming_box is box:
				self._incoming_box = None
			pending.resolve(box.clickedButton() is box.button(QtWidgets.QMessageBox.StandardButton.Yes))
			box.deleteLater()

		box.finished.connect(_finished)
		self._incoming_box = box
		box.open()

	@QtCore.Slot(str)
	def _on_call_phase(self, phase: str) -> None:
		# A call torn down while ringing (remote stop, channel loss) closes its prompt.
		if CallStatus(phase) is CallStatus.IDLE and self._incoming_box is not None:
			box, self._incoming_box = self._incoming_box, None
			box.reject()

	# ----------------------
	# CallUi (called on the asyncio thread)
	# ----------------------
	async def prompt_accept_decline(self, from_name: str) -> bool:
		loop = asyncio.get_running_loop()
		fut: asyncio.Future[bool] = loop.create_future()
		self.bridge.incoming_call.emit(from_name, PendingAnswer(loop, fut))
		return await fut

	def notify_error(self, text: str) -> None:
		self.bridge.error.emit(text)

	def notify_info(self, text: str) -> None:
		self.bridge.info.emit(text)

	def append_log(self, text: str) -> None:
		self.bridge.log.emit(text)

	def set_registration_phase(self, status: RegistrationStatus) -> None:
		self.bridge.registration_phase.emit(status.value)

	def set_call_phase(self, status: CallStatus) -> None:
		self.bridge.call_phase.emit(status.value)

	# ----------------------
	# Signaling callbacks (run in asyncio thread)
	# ----------------------
	async def _on_async_log(self, message: str) -> None:
		self.bridge.log.emit(message)

	async def _on_connected(self) -> None:
		self.bridge.connection.emit("Connected")
		self.bridge.status.emit(f"Connected to {self.signaling.url}")

	async def _on_message(self, msg: Dict[str, Any]) -> None:
		await self.controller.handle_message(msg)

	async def _on_closed(self) -> None:
		# Losing the relay ends the session: nothing can be signaled anymore.
		await self.controller.reset()
		self.bridge.connection.emit("Disconnected")
		self.bridge.status.emit("Connection to server lost")

	async def _on_error(self, error: str, payload: dict) -> None:
		self.bridge.log.emit(f"Error: {error} {payload}")
		self.bridge.status.emit(f"Error: {error}")


def create_qt_app() -> QtWidgets.QApplication:
	app = QtWidgets.QApplication.instance()
	if app is None:
		app = QtWidgets.QApplication([])
	return app  # type: ignore
