from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, List, Optional

from .properties import Record, plain_title


@dataclass
class Message:
    """One entry of the conversation: plain text or an editable record bubble."""

    text: str
    sent: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    record: Optional[Record] = None
    is_editing: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_record(self) -> bool:
        return self.record is not None


class MessageLog:
    """Ordered conversation log; commands append to it through ``CommandContext``."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._messages: List[Message] = []
        self._clock = clock or datetime.now

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def append_sent(self, text: str) -> Message:
        return self._append(Message(text=text, sent=True, timestamp=self._clock()))

    def append_received(self, text: str) -> Message:
        return self._append(Message(text=text, sent=False, timestamp=self._clock()))

    def append_record(
        self,
        record: Record,
        *,
        text: Optional[str] = None,
        is_editing: bool = False,
    ) -> Message:
        label = text if text is not None else plain_title(record)
        return self._append(
            Message(
                text=label,
                sent=False,
                timestamp=self._clock(),
                record=record,
                is_editing=is_editing,
            )
        )

    def get(self, message_id: str) -> Message:
        for message in self._messages:
            if message.id == message_id:
                return message
        raise KeyError(message_id)

    def records(self) -> List[Message]:
        return [message for message in self._messages if message.is_record]

    def remove(self, message_id: str) -> Message:
        message = self.get(message_id)
        self._messages.remove(message)
        return message

    def clear(self) -> None:
        self._messages.clear()


__all__ = ["Message", "MessageLog"]
