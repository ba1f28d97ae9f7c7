"""Direct messages between users."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from filecrm.domain.models import Message
from filecrm.persistence.queries import messages_between, messages_for_user

if TYPE_CHECKING:
    from collections.abc import Callable

    from filecrm.persistence.entity_store import EntityStore


class MessagingService:
    def __init__(
        self,
        messages: EntityStore[Message],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._messages = messages
        self._clock = clock if clock is not None else datetime.now

    def send(self, sender_id: int, receiver_id: int, content: str) -> Message:
        candidate = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            sent_at=self._clock(),
        )
        return self._messages.create(candidate)

    def conversation(self, first_user: int, second_user: int) -> list[Message]:
        return messages_between(self._messages, first_user, second_user)

    def inbox(self, user_id: int) -> list[Message]:
        return [
            message
            for message in messages_for_user(self._messages, user_id)
            if message.receiver_id == user_id
        ]


__all__ = ["MessagingService"]
