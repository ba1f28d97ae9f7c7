"""Outbound notifications sent after account changes."""

from __future__ import annotations

from typing import Any, Protocol

import structlog


class NotificationError(RuntimeError):
    """Delivery failed. Never undoes the store write it follows."""

    def __init__(self, address: str, reason: str) -> None:
        self.address = address
        self.reason = reason
        super().__init__(f"notification to {address} failed: {reason}")


class NotificationSender(Protocol):
    def send(self, address: str, message: str) -> None: ...


class LoggingMailSender:
    """
    Mail sender that records messages in the structured log instead of delivering them.

    Addresses containing ``failure_marker`` fail, so callers can exercise the
    notification-failure path without a mail server.
    """

    def __init__(self, *, failure_marker: str = "error", logger: Any | None = None) -> None:
        if not failure_marker:
            raise ValueError("failure_marker must not be empty")
        self._failure_marker = failure_marker
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self.sent: list[tuple[str, str]] = []

    def send(self, address: str, message: str) -> None:
        if self._failure_marker in address:
            raise NotificationError(address, "address rejected by mail relay")
        self.sent.append((address, message))
        self._logger.info("notification_sent", address=address, body=message)


__all__ = ["LoggingMailSender", "NotificationError", "NotificationSender"]
