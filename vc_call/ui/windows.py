from __future__ import annotations

from PySide6 import QtCore, QtWidgets

from ..core.state import CallStatus, RegistrationStatus
from .widgets import LogPanel, StatusCard


_REGISTRATION_LABELS = {
	RegistrationStatus.NOT_REGISTERED: "Not registered",
	RegistrationStatus.REGISTERING: "Registering...",
	RegistrationStatus.REGISTERED: "Registered",
}

_CALL_LABELS = {
	CallStatus.IDLE: "Idle",
	CallStatus.CONNECTING: "Connecting...",
	CallStatus.ACTIVE: "In call",
}


class MainWindow(QtWidgets.QMainWindow):
	connect_clicked = QtCore.Signal()
	disconnect_clicked = QtCore.Signal()
	register_clicked = QtCore.Signal()
	call_clicked = QtCore.Signal()
	hang_up_clicked = QtCore.Signal()

	def __init__(self):
		super().__init__()
		self.setWindowTitle("vc-call")

		central = QtWidgets.QWidget()
		self.setCentralWidget(central)

		self.server_url_edit = QtWidgets.QLineEdit()
		self.server_url_edit.setPlaceholderText("wss://host:8443/call")

		self.name_edit = QtWidgets.QLineEdit()
		self.name_edit.setPlaceholderText("Your name")

		self.peer_edit = QtWidgets.QLineEdit()
		self.peer_edit.setPlaceholderText("Peer name")

		self.video_check = QtWidgets.QCheckBox("Video")

		self.connect_btn = QtWidgets.QPushButton("Connect")
		self.disconnect_btn = QtWidgets.QPushButton("Disconnect")
		self.register_btn = QtWidgets.QPushButton("Register")
		self.call_btn = QtWidgets.QPushButton("Call")
		self.hang_up_btn = QtWidgets.QPushButton("Hang up")

		self.log_panel = LogPanel()
		self.status_card = StatusCard()

		form = QtWidgets.QFormLayout()
		form.addRow("Server", self.server_url_edit)
		form.addRow("Name", self.name_edit)
		peer_row = QtWidgets.QHBoxLayout()
		peer_row.setContentsMargins(0, 0, 0, 0)
		peer_row.addWidget(self.peer_edit, 1)
		peer_row.addWidget(self.video_check)
		peer_row_widget = QtWidgets.QWidget()
		peer_row_widget.setLayout(peer_row)
		form.addRow("Peer", peer_row_widget)

		btn_row = QtWidgets.QHBoxLayout()
		btn_row.addWidget(self.connect_btn)
		btn_row.addWidget(self.disconnect_btn)
		btn_row.addWidget(self.register_btn)
		btn_row.addStretch(1)
		btn_row.addWidget(self.call_btn)
		btn_row.addWidget(self.hang_up_btn)

		left = QtWidgets.QVBoxLayout()
		left.addLayout(form)
		left.addLayout(btn_row)
		left.addWidget(self.status_card, 0)
		left.addStretch(1)

		right = QtWidgets.QVBoxLayout()
		right.addWidget(QtWidgets.QLabel("Log"))
		right.addWidget(self.log_panel, 1)

		main = QtWidgets.QHBoxLayout(central)
		main.addLayout(left, 1)
		main.addLayout(right, 1)

		self.status = QtWidgets.QStatusBar()
		self.setStatusBar(self.status)
		self.set_status("Idle")

		self.connect_btn.clicked.connect(self.connect_clicked.emit)
		self.disconnect_btn.clicked.connect(self.disconnect_clicked.emit)
		self.register_btn.clicked.connect(self.register_clicked.emit)
		self.call_btn.clicked.connect(self.call_clicked.emit)
		self.hang_up_btn.clicked.connect(self.hang_up_clicked.emit)

		self.apply_registration_phase(RegistrationStatus.NOT_REGISTERED.value)
		self.apply_call_phase(CallStatus.IDLE.value)

	def set_status(self, text: str) -> None:
		self.status.showMessage(text)

	@QtCore.Slot(str)
	def apply_registration_phase(self, phase: str) -> None:
		status = RegistrationStatus(phase)
		editable = status is RegistrationStatus.NOT_REGISTERED
		self.register_btn.setEnabled(editable)
		self.register_btn.setVisible(status is not RegistrationStatus.REGISTERED)
		self.name_edit.setReadOnly(not editable)
		self.status_card.set_registration(_REGISTRATION_LABELS[status])

	@QtCore.Slot(str)
	def apply_call_phase(self, phase: str) -> None:
		status = CallStatus(phase)
		idle = status is CallStatus.IDLE
		self.call_btn.setEnabled(idle)
		self.peer_edit.setReadOnly(not idle)
		self.hang_up_btn.setEnabled(not idle)
		self.status_card.set_call(_CALL_LABELS[status])
