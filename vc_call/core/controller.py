"""Signaling state machine for one-to-one calls.

The controller owns the registration and call state. It is driven by three
kinds of events, all delivered on one asyncio loop: inbound relay messages
(`handle_message`), user intents (`register`, `place_call`, `hang_up`) and
media peer callbacks (local candidates, errors).
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional, Protocol, Set

from ..net import protocol
from ..net.protocol import IceCandidateDict, ProtocolError
from .state import CallRole, CallState, CallStatus, RegistrationState, RegistrationStatus


logger = logging.getLogger(__name__)


MEDIA_ROLE_SENDRECV = "sendrecv"

GENERIC_REGISTER_REJECTION = "Unknown reason for register rejection."
GENERIC_CALL_REJECTION = "Unknown reason for call rejection."
REMOTE_HANGUP_NOTICE = "Communication ended by remote peer"


IceCandidateCallback = Callable[[IceCandidateDict], Awaitable[None]]
MediaErrorCallback = Callable[[Exception], Awaitable[None]]


class SignalChannel(Protocol):
    async def send(self, message: Dict[str, Any]) -> None:
        ...


class MediaPeer(Protocol):
    async def generate_offer(self) -> str:
        ...

    async def process_answer(self, sdp: str) -> None:
        ...

    async def add_ice_candidate(self, candidate: IceCandidateDict) -> None:
        ...

    async def dispose(self) -> None:
        ...


class MediaPeerFactory(Protocol):
    async def __call__(
        self,
        *,
        role: str,
        constraints: Dict[str, bool],
        on_ice_candidate: IceCandidateCallback,
        on_error: MediaErrorCallback,
    ) -> MediaPeer:
        ...


class CallUi(Protocol):
    async def prompt_accept_decline(self, from_name: str) -> bool:
        ...

    def notify_error(self, text: str) -> None:
        ...

    def notify_info(self, text: str) -> None:
        ...

    def append_log(self, text: str) -> None:
        ...

    def set_registration_phase(self, status: RegistrationStatus) -> None:
        ...

    def set_call_phase(self, status: CallStatus) -> None:
        ...


class SignalingController:
    def __init__(self, channel: SignalChannel, peer_factory: MediaPeerFactory, ui: CallUi):
        self._channel = channel
        self._peer_factory = peer_factory
        self._ui = ui

        self.registration = RegistrationState()
        self.call = CallState()

        self._peer_ids = itertools.count(1)
        self._tasks: Set[asyncio.Task[None]] = set()
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            protocol.REGISTER_RESPONSE: self._on_register_response,
            protocol.CALL_RESPONSE: self._on_call_response,
            protocol.INCOMING_CALL: self._on_incoming_call,
            protocol.START_COMMUNICATION: self._on_start_communication,
            protocol.STOP_COMMUNICATION: self._on_stop_communication,
            protocol.ICE_CANDIDATE: self._on_remote_ice_candidate,
        }

    # ----------------------
    # Inbound messages
    # ----------------------
    async def handle_message(self, msg: Dict[str, Any]) -> None:
        mid: Optional[str] = None
        try:
            mid = protocol.message_id(msg)
            handler = self._handlers.get(mid)
            if handler is None:
                logger.error("unrecognized message id=%s", mid)
                return
            await handler(msg)
        except ProtocolError as e:
            logger.error("malformed message id=%s: %s", mid, e.message)
            self._ui.append_log(f"Malformed message: {e.message}")
        except Exception:
            logger.exception("message handler failed id=%s", mid)

    async def _on_register_response(self, msg: Dict[str, Any]) -> None:
        if self.registration.status is not RegistrationStatus.REGISTERING:
            logger.warning("registerResponse while %s; ignored", self.registration.status.value)
            return

        if protocol.is_accepted(msg):
            self.registration.accept()
            logger.info("registered name=%s", self.registration.local_name)
            self._ui.append_log(f"Registered as {self.registration.local_name}")
        else:
            reason = protocol.rejection_reason(msg, GENERIC_REGISTER_REJECTION)
            self.registration.reject()
            logger.warning("register rejected reason=%s", reason)
            self._ui.notify_error(f"Error registering user: {reason}")
        self._ui.set_registration_phase(self.registration.status)

    async def _on_call_response(self, msg: Dict[str, Any]) -> None:
        call = self.call
        if call.role is not CallRole.CALLER or call.media_peer is None:
            logger.warning("callResponse without an outgoing call; ignored")
            return

        if not protocol.is_accepted(msg):
            reason = protocol.rejection_reason(msg, GENERIC_CALL_REJECTION)
            logger.info("call rejected to=%s reason=%s", call.peer_name, reason)
            self._ui.notify_error(reason)
            await self.hang_up(notify_remote=False)
            return

        await self._complete_negotiation(protocol.get_str(msg, "sdpAnswer"))

    async def _on_incoming_call(self, msg: Dict[str, Any]) -> None:
        from_name = protocol.get_str(msg, "from")
        is_video = bool(msg.get("isVideoCall", False))

        if not self.call.is_idle:
            # Busy: reject without disturbing the user or the current call.
            logger.info("incoming call from=%s auto-rejected (busy)", from_name)
            await self._send(protocol.make_incoming_call_reject(from_name, protocol.REASON_BUSY))
            return

        logger.info("incoming call from=%s video=%s", from_name, is_video)
        call = self._begin_call(from_name, CallRole.CALLEE, is_video)
        # The prompt can take a while; keep the inbound loop running meanwhile.
        self._spawn(self._answer_incoming_call(call), name=f"incoming-call-{call.peer_id}")

    async def _on_start_communication(self, msg: Dict[str, Any]) -> None:
        if self.call.role is not CallRole.CALLEE or self.call.media_peer is None:
            logger.warning("startCommunication without an accepted incoming call; ignored")
            return
        await self._complete_negotiation(protocol.get_str(msg, "sdpAnswer"))

    async def _on_stop_communication(self, msg: Dict[str, Any]) -> None:
        logger.info("remote ended the call peer=%s", self.call.peer_name)
        self._ui.notify_info(REMOTE_HANGUP_NOTICE)
        await self.hang_up(notify_remote=False)

    async def _on_remote_ice_candidate(self, msg: Dict[str, Any]) -> None:
        candidate = msg.get("candidate")
        if not isinstance(candidate, dict):
            raise ProtocolError("iceCandidate: missing candidate")

        peer = self.call.media_peer
        if peer is None:
            logger.warning("remote candidate without a media peer; ignored")
            return
        try:
            await peer.add_ice_candidate(candidate)  # type: ignore[arg-type]
        except Exception as e:
            logger.error("Error adding candidate peer_id=%s: %s", self.call.peer_id, e)
            self._ui.append_log(f"Error adding candidate: {e}")

    # ----------------------
    # User intents
    # ----------------------
    async def register(self, name: str) -> None:
        if not name:
            self._ui.notify_error("You must insert your user name")
            return
        if self.registration.is_registered:
            self._ui.notify_error(f"Already registered as {self.registration.local_name}")
            return

        self.registration.begin(name)
        self._ui.set_registration_phase(self.registration.status)
        logger.info("register name=%s", name)
        if not await self._send(protocol.make_register(name)):
            self.registration.reject()
            self._ui.set_registration_phase(self.registration.status)

    async def place_call(self, peer_name: str, wants_video: bool) -> None:
        if not peer_name:
            self._ui.notify_error("You must specify the peer name")
            return
        if not self.call.is_idle:
            self._ui.notify_error("A call is already in progress")
            return

        logger.info("call place to=%s video=%s", peer_name, wants_video)
        call = self._begin_call(peer_name, CallRole.CALLER, wants_video)
        peer = await self._create_media_peer(call)
        if peer is None:
            return

        try:
            offer = await peer.generate_offer()
        except Exception as e:
            logger.exception("offer generation failed peer_id=%s", call.peer_id)
            await self._fail_call(call, f"Error generating the offer: {e}")
            return
        if not self.call.is_current(call.peer_id):
            return

        from_name = self.registration.local_name or ""
        message = protocol.make_call(from_name, peer_name, offer, wants_video)
        if not await self._send(message):
            await self.hang_up(notify_remote=False)

    async def hang_up(self, notify_remote: bool = True) -> None:
        """Return to IDLE, disposing the media peer if one exists.

        Safe to call repeatedly; each peer is disposed at most once because
        the state is swapped out before disposal.
        """

        call = self.call
        self.call = CallState()
        peer, call.media_peer = call.media_peer, None

        if not call.is_idle:
            logger.info(
                "hang up peer=%s status=%s notify_remote=%s",
                call.peer_name,
                call.status.value,
                notify_remote,
            )
            self._ui.set_call_phase(self.call.status)
        if peer is not None:
            await self._dispose(peer, call.peer_id)
        if notify_remote:
            await self._send(protocol.make_stop())

    async def reset(self) -> None:
        """Drop the call and the registration, e.g. after the channel closed.

        Pending background work (an unanswered accept/decline prompt) is
        cancelled so `wait_pending` returns without user input.
        """

        await self.cancel_pending()
        await self.hang_up(notify_remote=False)
        if self.registration.status is not RegistrationStatus.NOT_REGISTERED:
            self.registration.reject()
            self._ui.set_registration_phase(self.registration.status)

    async def wait_pending(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_pending(self) -> None:
        tasks = [t for t in self._tasks if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ----------------------
    # Media peer callbacks (tagged with the peer id captured at creation)
    # ----------------------
    async def _on_local_ice_candidate(self, peer_id: int, candidate: IceCandidateDict) -> None:
        # Relayed whatever the call status; sending touches no call state.
        if peer_id != self.call.peer_id:
            logger.debug("local candidate from stale peer_id=%s", peer_id)
        await self._send(protocol.make_ice_candidate(candidate))

    async def _on_media_peer_error(self, peer_id: int, error: Exception) -> None:
        if not self.call.is_current(peer_id):
            logger.debug("error from stale peer_id=%s dropped: %s", peer_id, error)
            return
        logger.error("media peer error peer_id=%s: %s", peer_id, error)
        self._ui.notify_error(f"Media error: {error}")
        await self.hang_up(notify_remote=False)

    # ----------------------
    # Internals
    # ----------------------
    def _begin_call(self, peer_name: str, role: CallRole, is_video: bool) -> CallState:
        self.call = CallState(
            status=CallStatus.CONNECTING,
            peer_name=peer_name,
            role=role,
            is_video=is_video,
            peer_id=next(self._peer_ids),
        )
        self._ui.set_call_phase(self.call.status)
        return self.call

    async def _answer_incoming_call(self, call: CallState) -> None:
        assert call.peer_name is not None
        accepted = await self._ui.prompt_accept_decline(call.peer_name)
        if not self.call.is_current(call.peer_id):
            logger.info("incoming call from=%s ended before the user answered", call.peer_name)
            return

        if not accepted:
            logger.info("incoming call from=%s declined", call.peer_name)
            await self._send(protocol.make_incoming_call_reject(call.peer_name, protocol.REASON_USER_DECLINED))
            await self.hang_up(notify_remote=False)
            return

        peer = await self._create_media_peer(call)
        if peer is None:
            return

        try:
            offer = await peer.generate_offer()
        except Exception as e:
            logger.exception("offer generation failed peer_id=%s", call.peer_id)
            await self._fail_call(call, f"Error generating the offer: {e}")
            return
        if not self.call.is_current(call.peer_id):
            return

        logger.info("incoming call from=%s accepted", call.peer_name)
        await self._send(protocol.make_incoming_call_accept(call.peer_name, offer))

    async def _create_media_peer(self, call: CallState) -> Optional[MediaPeer]:
        peer_id = call.peer_id
        assert peer_id is not None
        constraints = {"audio": True, "video": call.is_video}
        logger.debug("media peer create peer_id=%s constraints=%s", peer_id, constraints)
        try:
            peer = await self._peer_factory(
                role=MEDIA_ROLE_SENDRECV,
                constraints=constraints,
                on_ice_candidate=functools.partial(self._on_local_ice_candidate, peer_id),
                on_error=functools.partial(self._on_media_peer_error, peer_id),
            )
        except Exception as e:
            logger.exception("media peer creation failed peer_id=%s", peer_id)
            await self._fail_call(call, f"Error creating media peer: {e}")
            return None

        if not self.call.is_current(peer_id):
            logger.info("media peer peer_id=%s outlived its call; disposing", peer_id)
            await self._dispose(peer, peer_id)
            return None
        self.call.media_peer = peer
        return peer

    async def _complete_negotiation(self, sdp_answer: str) -> None:
        call = self.call
        peer = call.media_peer
        assert peer is not None
        call.status = CallStatus.ACTIVE
        self._ui.set_call_phase(call.status)
        logger.info("call active peer=%s sdp_len=%s", call.peer_name, len(sdp_answer))
        try:
            await peer.process_answer(sdp_answer)
        except Exception as e:
            # The call stays ACTIVE; a stricter policy would tear it down here.
            logger.error("process answer failed peer_id=%s: %s", call.peer_id, e)
            self._ui.append_log(f"Error processing answer: {e}")

    async def _fail_call(self, call: CallState, text: str) -> None:
        if not self.call.is_current(call.peer_id):
            return
        self._ui.notify_error(text)
        if call.role is CallRole.CALLEE and call.peer_name:
            # Departs from the browser client, which sent nothing here and
            # left the caller's attempt pending forever.
            await self._send(protocol.make_incoming_call_reject(call.peer_name, protocol.REASON_MEDIA_ERROR))
        await self.hang_up(notify_remote=False)

    async def _dispose(self, peer: MediaPeer, peer_id: Optional[int]) -> None:
        logger.debug("media peer dispose peer_id=%s", peer_id)
        try:
            await peer.dispose()
        except Exception:
            logger.exception("media peer dispose failed peer_id=%s", peer_id)

    async def _send(self, message: Dict[str, Any]) -> bool:
        try:
            await self._channel.send(message)
        except Exception as e:
            logger.warning("send failed id=%s: %s", message.get("id"), e)
            self._ui.append_log(f"Could not send {message.get('id')}: {e}")
            return False
        return True

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("controller task failed name=%s", name)
