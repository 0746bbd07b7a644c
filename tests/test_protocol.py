"""Tests for signaling message builders and accessors."""

import pytest

from vc_call.net import protocol
from vc_call.net.protocol import ProtocolError


def test_make_call_carries_offer_and_video_flag():
    msg = protocol.make_call("alice", "bob", "OFFER", 1)
    assert msg == {"id": "call", "from": "alice", "to": "bob", "sdpOffer": "OFFER", "isVideoCall": True}


def test_incoming_call_responses():
    assert protocol.make_incoming_call_accept("carol", "SDP") == {
        "id": "incomingCallResponse",
        "from": "carol",
        "callResponse": "accept",
        "sdpOffer": "SDP",
    }
    reject = protocol.make_incoming_call_reject("carol", protocol.REASON_BUSY)
    assert reject["callResponse"] == "reject"
    assert reject["message"] == "busy"
    assert "sdpOffer" not in reject


def test_ice_candidate_uses_outbound_id():
    candidate = {"candidate": "candidate:1", "sdpMid": "0", "sdpMLineIndex": 0}
    assert protocol.make_ice_candidate(candidate) == {"id": "onIceCandidate", "candidate": candidate}


@pytest.mark.parametrize("msg", [None, [], "register", {}, {"id": ""}, {"id": 3}])
def test_message_id_rejects_malformed(msg):
    with pytest.raises(ProtocolError):
        protocol.message_id(msg)


def test_get_str():
    msg = {"id": "incomingCall", "from": "carol", "isVideoCall": True}
    assert protocol.get_str(msg, "from") == "carol"
    with pytest.raises(ProtocolError, match="'to'"):
        protocol.get_str(msg, "to")
    with pytest.raises(ProtocolError):
        protocol.get_str({"id": "callResponse", "sdpAnswer": None}, "sdpAnswer")


def test_rejection_reason_prefers_message_then_response_text():
    default = "generic"
    assert protocol.rejection_reason({"response": "rejected", "message": "taken"}, default) == "taken"
    assert protocol.rejection_reason({"response": "rejected: user 'x' is not registered"}, default) == (
        "rejected: user 'x' is not registered"
    )
    assert protocol.rejection_reason({"response": "rejected"}, default) == default
    assert protocol.rejection_reason({}, default) == default


def test_is_accepted():
    assert protocol.is_accepted({"response": "accepted"})
    assert not protocol.is_accepted({"response": "rejected"})
    assert not protocol.is_accepted({})
