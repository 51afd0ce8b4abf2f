"""
Shared, ordered record of conversation messages.

The log is the only resource mutated by concurrent agent invocations.
Each invocation only touches the placeholder it opened (by message_id),
so concurrent writers contend only on the tail, and appends never block.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from domain.messages import Message

logger = logging.getLogger("ConversationLog")


@dataclass(frozen=True)
class LogChange:
    """
    A single mutation of the log, delivered to listeners.

    Attributes:
        kind: "append", "update", "replace", or "remove"
        index: Position affected
        message: The message after the change (the removed one for "remove")
    """

    kind: str
    index: int
    message: Message


LogListener = Callable[[LogChange], None]


class ConversationLog:
    """Append-only ordered list of messages with placeholder support."""

    def __init__(self, messages: Optional[Iterable[Message]] = None):
        self._messages: List[Message] = list(messages or [])
        self._listeners: List[LogListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, listener: LogListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def _remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _publish(self, kind: str, index: int, message: Message) -> None:
        change = LogChange(kind=kind, index=index, message=message)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception(f"Log listener failed on {kind} at index {index}")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, message: Message) -> int:
        self._messages.append(message)
        index = len(self._messages) - 1
        self._publish("append", index, message)
        return index

    def open_placeholder(self, agent_id: str, agent_name: str) -> Message:
        """Append an empty open placeholder for a streaming agent turn."""
        placeholder = Message.placeholder(agent_id, agent_name)
        self.append(placeholder)
        return placeholder

    def append_fragment(self, message_id: str, text: str) -> Optional[Message]:
        """
        Append streamed text to an open placeholder and republish it.

        Returns:
            The updated message, or None if no open message has this id
        """
        index = self.index_of(message_id)
        if index is None or not self._messages[index].is_open:
            return None
        updated = self._messages[index].with_fragment(text)
        self._messages[index] = updated
        self._publish("update", index, updated)
        return updated

    def close(self, message_id: str) -> Optional[Message]:
        """Finalize an open placeholder without changing its content."""
        index = self.index_of(message_id)
        if index is None:
            return None
        message = self._messages[index]
        if not message.is_open:
            return message
        closed = message.closed()
        self._messages[index] = closed
        self._publish("update", index, closed)
        return closed

    def discard_if_empty(self, message_id: str) -> bool:
        """
        Remove a placeholder if it holds no text.

        Returns:
            True if the message was removed
        """
        index = self.index_of(message_id)
        if index is None:
            return False
        message = self._messages[index]
        if message.content:
            return False
        del self._messages[index]
        self._publish("remove", index, message)
        return True

    def replace(self, index: int, message: Message) -> Message:
        """
        Replace the message at ``index`` (used by retry).

        Returns:
            The message that was replaced
        """
        previous = self._messages[index]
        self._messages[index] = message
        self._publish("replace", index, message)
        return previous

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def index_of(self, message_id: str) -> Optional[int]:
        # Placeholders live near the tail
        for index in range(len(self._messages) - 1, -1, -1):
            if self._messages[index].message_id == message_id:
                return index
        return None

    def get(self, message_id: str) -> Optional[Message]:
        index = self.index_of(message_id)
        return self._messages[index] if index is not None else None

    def snapshot(self) -> Tuple[Message, ...]:
        """Value copy of the log at this instant."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]
