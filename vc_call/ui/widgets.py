from __future__ import annotations

from PySide6 import QtCore, QtWidgets


class LogPanel(QtWidgets.QPlainTextEdit):
	def __init__(self, parent=None):
		super().__init__(parent)
		self.setReadOnly(True)
		self.setMaximumBlockCount(2000)

	@QtCore.Slot(str)
	def append_log(self, message: str) -> None:
		self.appendPlainText(message)


class StatusCard(QtWidgets.QFrame):
	def __init__(self, parent=None):
		super().__init__(parent)
		self.setFrameShape(QtWidgets.QFrame.Shape.StyledPanel)
		self.setFrameShadow(QtWidgets.QFrame.Shadow.Raised)

		self._connection = QtWidgets.QLabel("Disconnected")
		self._registration = QtWidgets.QLabel("Not registered")
		self._call = QtWidgets.QLabel("Idle")

		layout = QtWidgets.QVBoxLayout(self)
		layout.setContentsMargins(10, 10, 10, 10)
		layout.setSpacing(6)

		header = QtWidgets.QLabel("Status")
		font = header.font()
		font.setBold(True)
		header.setFont(font)
		layout.addWidget(header)

		form = QtWidgets.QFormLayout()
		form.setContentsMargins(0, 0, 0, 0)
		form.setHorizontalSpacing(12)
		form.setVerticalSpacing(4)
		form.addRow("Connection", self._connection)
		form.addRow("Registration", self._registration)
		form.addRow("Call", self._call)
		layout.addLayout(form)

		self._connection.setWordWrap(False)
		self._registration.setWordWrap(False)
		self._call.setWordWrap(False)

	@QtCore.Slot(str)
	def set_connection_state(self, state: str) -> None:
		self._connection.setText(state.strip() or "-")

	@QtCore.Slot(str)
	def set_registration(self, text: str) -> None:
		self._registration.setText(text.strip() or "-")

	@QtCore.Slot(str)
	def set_call(self, text: str) -> None:
		self._call.setText(text.strip() or "-")
