"""Registration and call state owned by the signaling controller."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .controller import MediaPeer


class RegistrationStatus(str, enum.Enum):
    NOT_REGISTERED = "not-registered"
    REGISTERING = "registering"
    REGISTERED = "registered"


class CallStatus(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"


class CallRole(str, enum.Enum):
    NONE = "none"
    CALLER = "caller"
    CALLEE = "callee"


@dataclass
class RegistrationState:
    status: RegistrationStatus = RegistrationStatus.NOT_REGISTERED
    local_name: Optional[str] = None

    @property
    def is_registered(self) -> bool:
        return self.status is RegistrationStatus.REGISTERED

    def begin(self, name: str) -> None:
        self.status = RegistrationStatus.REGISTERING
        self.local_name = name

    def accept(self) -> None:
        self.status = RegistrationStatus.REGISTERED

    def reject(self) -> None:
        self.status = RegistrationStatus.NOT_REGISTERED
        self.local_name = None


@dataclass
class CallState:
    """One call attempt.

    `peer_id` identifies the attempt and the media peer created for it;
    callbacks captured with an older id are stale. `media_peer` stays None
    while the peer is still being created or the callee is being prompted.
    """

    status: CallStatus = CallStatus.IDLE
    peer_name: Optional[str] = None
    role: CallRole = CallRole.NONE
    is_video: bool = False
    media_peer: Optional["MediaPeer"] = None
    peer_id: Optional[int] = None

    @property
    def is_idle(self) -> bool:
        return self.status is CallStatus.IDLE

    def is_current(self, peer_id: Optional[int]) -> bool:
        return peer_id is not None and self.peer_id == peer_id and not self.is_idle
