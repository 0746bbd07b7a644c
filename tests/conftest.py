"""Shared test fixtures: fake collaborators for the signaling controller."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import pytest

from vc_call.core.controller import SignalingController
from vc_call.core.state import CallStatus, RegistrationStatus


class FakeChannel:
    """Captures send() calls for test assertions."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_with: Optional[Exception] = None

    async def send(self, message: dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)

    def ids(self) -> list[str]:
        return [m["id"] for m in self.sent]


class FakeMediaPeer:
    def __init__(self, factory: "FakeMediaPeerFactory", **kwargs: Any) -> None:
        self.role = kwargs["role"]
        self.constraints = kwargs["constraints"]
        self.on_ice_candidate = kwargs["on_ice_candidate"]
        self.on_error = kwargs["on_error"]
        self._factory = factory
        self.answers: list[str] = []
        self.candidates: list[dict[str, Any]] = []
        self.dispose_count = 0

    async def generate_offer(self) -> str:
        if self._factory.offer_error is not None:
            raise self._factory.offer_error
        return self._factory.offer

    async def process_answer(self, sdp: str) -> None:
        self.answers.append(sdp)
        if self._factory.answer_error is not None:
            raise self._factory.answer_error

    async def add_ice_candidate(self, candidate: dict[str, Any]) -> None:
        if self._factory.candidate_error is not None:
            raise self._factory.candidate_error
        self.candidates.append(candidate)

    async def dispose(self) -> None:
        self.dispose_count += 1


class FakeMediaPeerFactory:
    def __init__(self) -> None:
        self.peers: list[FakeMediaPeer] = []
        self.offer = "OFFER"
        self.create_error: Optional[Exception] = None
        self.offer_error: Optional[Exception] = None
        self.answer_error: Optional[Exception] = None
        self.candidate_error: Optional[Exception] = None
        # When set, creation waits for it (to interleave other events).
        self.gate: Optional[asyncio.Event] = None

    async def __call__(self, **kwargs: Any) -> FakeMediaPeer:
        if self.gate is not None:
            await self.gate.wait()
        if self.create_error is not None:
            raise self.create_error
        peer = FakeMediaPeer(self, **kwargs)
        self.peers.append(peer)
        return peer


class FakeUi:
    def __init__(self) -> None:
        self.errors: list[str] = []
        self.infos: list[str] = []
        self.logs: list[str] = []
        self.prompts: list[str] = []
        self.registration_phases: list[RegistrationStatus] = []
        self.call_phases: list[CallStatus] = []
        self.answer = True
        # When set, the accept/decline prompt waits for it.
        self.gate: Optional[asyncio.Event] = None

    async def prompt_accept_decline(self, from_name: str) -> bool:
        self.prompts.append(from_name)
        if self.gate is not None:
            await self.gate.wait()
        return self.answer

    def notify_error(self, text: str) -> None:
        self.errors.append(text)

    def notify_info(self, text: str) -> None:
        self.infos.append(text)

    def append_log(self, text: str) -> None:
        self.logs.append(text)

    def set_registration_phase(self, status: RegistrationStatus) -> None:
        self.registration_phases.append(status)

    def set_call_phase(self, status: CallStatus) -> None:
        self.call_phases.append(status)


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def factory() -> FakeMediaPeerFactory:
    return FakeMediaPeerFactory()


@pytest.fixture
def ui() -> FakeUi:
    return FakeUi()


@pytest.fixture
def controller(channel: FakeChannel, factory: FakeMediaPeerFactory, ui: FakeUi) -> SignalingController:
    return SignalingController(channel, factory, ui)
