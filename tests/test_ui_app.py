"""Tests for the Qt front-end's incoming call prompt."""

import os

import pytest

pytest.importorskip("PySide6")
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from vc_call.config import AppConfig  # noqa: E402
from vc_call.ui.app import VCCallApp, create_qt_app  # noqa: E402


class RecordingAnswer:
    def __init__(self) -> None:
        self.answers: list[bool] = []

    def resolve(self, accepted: bool) -> None:
        self.answers.append(accepted)


@pytest.fixture
def app():
    create_qt_app()
    vc_app = VCCallApp(AppConfig())
    yield vc_app
    vc_app.window.close()


def test_prompt_closes_when_call_goes_idle(app):
    pending = RecordingAnswer()

    app._on_incoming_call_prompt("carol", pending)
    assert app._incoming_box is not None
    assert pending.answers == []

    app._on_call_phase("idle")

    assert app._incoming_box is None
    assert pending.answers == [False]


def test_prompt_stays_open_while_connecting(app):
    pending = RecordingAnswer()

    app._on_incoming_call_prompt("carol", pending)
    app._on_call_phase("connecting")

    assert app._incoming_box is not None
    assert pending.answers == []
    app._on_call_phase("idle")
