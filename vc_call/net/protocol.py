"""Signaling protocol helpers.

The relay expects JSON objects on a single WebSocket. Every message carries
an `id` field naming its kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, TypedDict


# Outbound message ids
REGISTER = "register"
CALL = "call"
INCOMING_CALL_RESPONSE = "incomingCallResponse"
STOP = "stop"
ON_ICE_CANDIDATE = "onIceCandidate"

# Inbound message ids
REGISTER_RESPONSE = "registerResponse"
CALL_RESPONSE = "callResponse"
INCOMING_CALL = "incomingCall"
START_COMMUNICATION = "startCommunication"
STOP_COMMUNICATION = "stopCommunication"
ICE_CANDIDATE = "iceCandidate"

ACCEPTED = "accepted"
ACCEPT = "accept"
REJECT = "reject"

REASON_BUSY = "busy"
REASON_USER_DECLINED = "user declined"
REASON_MEDIA_ERROR = "media error"


class IceCandidateDict(TypedDict, total=False):
	candidate: str
	sdpMid: Optional[str]
	sdpMLineIndex: Optional[int]


@dataclass(frozen=True)
class ProtocolError(Exception):
	message: str


def make_register(name: str) -> Dict[str, Any]:
	return {"id": REGISTER, "name": name}


def make_call(from_name: str, to_name: str, sdp_offer: str, is_video: bool) -> Dict[str, Any]:
	return {
		"id": CALL,
		"from": from_name,
		"to": to_name,
		"sdpOffer": sdp_offer,
		"isVideoCall": bool(is_video),
	}


def make_incoming_call_accept(from_name: str, sdp_offer: str) -> Dict[str, Any]:
	return {
		"id": INCOMING_CALL_RESPONSE,
		"from": from_name,
		"callResponse": ACCEPT,
		"sdpOffer": sdp_offer,
	}


def make_incoming_call_reject(from_name: str, reason: str) -> Dict[str, Any]:
	return {
		"id": INCOMING_CALL_RESPONSE,
		"from": from_name,
		"callResponse": REJECT,
		"message": reason,
	}


def make_stop() -> Dict[str, Any]:
	return {"id": STOP}


def make_ice_candidate(candidate: IceCandidateDict) -> Dict[str, Any]:
	return {"id": ON_ICE_CANDIDATE, "candidate": candidate}


def message_id(msg: Any) -> str:
	if not isinstance(msg, dict):
		raise ProtocolError("message is not an object")
	mid = msg.get("id")
	if not isinstance(mid, str) or not mid:
		raise ProtocolError("message has no id")
	return mid


def get_str(msg: Dict[str, Any], key: str) -> str:
	value = msg.get(key)
	if not isinstance(value, str):
		raise ProtocolError(f"{message_id(msg)}: missing field {key!r}")
	return value


def is_accepted(msg: Dict[str, Any]) -> bool:
	return msg.get("response") == ACCEPTED


def rejection_reason(msg: Dict[str, Any], default: str) -> str:
	"""Pick the most specific human-readable reason from a *Response message.

	The relay puts detail either in `message` or in the `response` text itself
	(e.g. "rejected: user 'bob' is not registered").
	"""

	message = msg.get("message")
	if isinstance(message, str) and message.strip():
		return message
	response = msg.get("response")
	if isinstance(response, str) and response.strip() and response.strip() != "rejected":
		return response
	return default
