"""WebSocket signaling client.

This is intentionally unaware of aiortc and of the call state machine. It
only frames JSON messages and hands every decoded object to `on_message`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets

from . import protocol


logger = logging.getLogger(__name__)


AsyncCallback = Callable[..., Awaitable[None]]


@dataclass
class SignalingCallbacks:
	on_log: Optional[AsyncCallback] = None
	on_connected: Optional[AsyncCallback] = None  # ()
	on_message: Optional[AsyncCallback] = None  # (msg: dict)
	on_closed: Optional[AsyncCallback] = None  # ()
	on_error: Optional[AsyncCallback] = None  # (error: str, payload: dict)


class SignalingClient:
	def __init__(self, url: str, callbacks: Optional[SignalingCallbacks] = None, *, insecure: bool = False):
		self.url = url
		self.callbacks = callbacks or SignalingCallbacks()
		self.insecure = insecure

		# websockets' protocol types moved between versions; keep runtime-safe.
		self._ws: Optional[Any] = None
		self._recv_task: Optional[asyncio.Task[None]] = None
		self._send_lock = asyncio.Lock()
		self._connected_evt = asyncio.Event()

	@property
	def is_connected(self) -> bool:
		return self._ws is not None and self._connected_evt.is_set()

	async def connect(self) -> bool:
		if self._recv_task and not self._recv_task.done():
			return True

		await self._log(f"Connecting to {self.url}")
		logger.info("signaling connect url=%s insecure=%s", self.url, self.insecure)
		try:
			self._ws = await websockets.connect(self.url, **self._connect_kwargs())
		except Exception:
			logger.exception("signaling connect failed url=%s", self.url)
			await self._emit_error("connect-failed", {"url": self.url})
			return False
		self._connected_evt.set()
		self._recv_task = asyncio.create_task(self._recv_loop(), name="signaling-recv")
		await self._log("Connected")
		if self.callbacks.on_connected:
			await self.callbacks.on_connected()
		return True

	async def disconnect(self) -> None:
		await self._log("Disconnecting")
		logger.info("signaling disconnect")
		self._connected_evt.clear()
		if self._recv_task:
			self._recv_task.cancel()
			try:
				await self._recv_task
			except asyncio.CancelledError:
				pass
			self._recv_task = None

		if self._ws:
			try:
				await self._ws.close()
			except Exception:
				logger.debug("signaling close failed", exc_info=True)
		self._ws = None

	# SignalChannel interface used by the controller.
	async def send(self, message: Dict[str, Any]) -> None:
		await self._send(message)

	def _connect_kwargs(self) -> Dict[str, Any]:
		if not self.url.startswith("wss://"):
			return {}
		ctx = ssl.create_default_context()
		if self.insecure:
			# Relays are commonly deployed with self-signed certificates.
			ctx.check_hostname = False
			ctx.verify_mode = ssl.CERT_NONE
		return {"ssl": ctx}

	async def _send(self, payload: Dict[str, Any]) -> None:
		if not self._ws or not self._connected_evt.is_set():
			raise RuntimeError("Signaling not connected")
		mid = payload.get("id")
		if mid in (protocol.CALL, protocol.INCOMING_CALL_RESPONSE):
			logger.info("signaling send id=%s sdp_len=%s", mid, len(str(payload.get("sdpOffer", ""))))
		elif mid == protocol.ON_ICE_CANDIDATE:
			logger.debug("signaling send id=%s", mid)
		else:
			logger.info("signaling send id=%s", mid)
		raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
		async with self._send_lock:
			await self._ws.send(raw)

	async def _recv_loop(self) -> None:
		assert self._ws is not None
		ws = self._ws
		logger.debug("signaling recv loop started")

		try:
			async for raw in ws:
				try:
					msg = json.loads(raw)
				except json.JSONDecodeError:
					await self._emit_error("invalid-json", {"raw": raw})
					continue

				if not isinstance(msg, dict):
					await self._emit_error("invalid-message", {"msg": msg})
					continue

				mid = msg.get("id")
				if not isinstance(mid, str):
					await self._emit_error("missing-id", msg)
					continue

				if mid in (protocol.ICE_CANDIDATE,):
					logger.debug("signaling recv id=%s", mid)
				else:
					logger.info("signaling recv id=%s", mid)

				if self.callbacks.on_message:
					await self.callbacks.on_message(msg)

		except asyncio.CancelledError:
			raise
		except Exception as e:
			logger.exception("signaling recv loop crashed")
			await self._emit_error(f"recv-loop-exception: {e}", {})
		finally:
			self._connected_evt.clear()
			logger.debug("signaling recv loop stopped")
			if self._ws is ws:
				self._ws = None
		# Only reached when the server closed the socket (not on cancel).
		try:
			await ws.close()
		except Exception:
			logger.debug("signaling close failed", exc_info=True)
		await self._log("Connection closed")
		if self.callbacks.on_closed:
			await self.callbacks.on_closed()

	async def _emit_error(self, error: str, payload: Dict[str, Any]) -> None:
		await self._log(f"Signaling error: {error}")
		if self.callbacks.on_error:
			await self.callbacks.on_error(error, payload)

	async def _log(self, message: str) -> None:
		if self.callbacks.on_log:
			await self.callbacks.on_log(message)
