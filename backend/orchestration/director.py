"""
Director entries: commands and narration inserted into the conversation.

A command is addressed to specific agents and carries their names in its
content; a narration is addressed to everyone. Both are stored as
user-role entries. When targets are given, they respond one at a time
starting from the log that already contains the new entry.
"""

import logging
from typing import Sequence

from config.loaders import get_conversation_context_config
from core.settings import DIRECTOR_COMMAND_ID, NARRATOR_ID
from domain.enums import EntryKind, MessageRole, TurnPolicy
from domain.exceptions import EmptyContentError
from domain.messages import Message

from .coordinator import TurnCoordinator

logger = logging.getLogger("DirectorExtension")


class DirectorExtension:
    def __init__(self, coordinator: TurnCoordinator):
        self.coordinator = coordinator

    def _target_names(self, targets: Sequence[str]) -> list[str]:
        agents = self.coordinator.agents
        return [agents[agent_id].display_name for agent_id in targets if agent_id in agents]

    def issue_command(self, text: str, targets: Sequence[str] = ()) -> Message:
        """
        Insert a command addressed to ``targets`` and let them respond in order.

        Raises:
            EmptyContentError: command text is blank
            TurnInProgressError: an agent is still responding
        """
        text = text.strip()
        if not text:
            raise EmptyContentError("Director command is empty")

        config = get_conversation_context_config()
        label = ", ".join(self._target_names(targets)) or config["command_no_target"]
        message = Message(
            role=MessageRole.USER,
            agent_id=DIRECTOR_COMMAND_ID,
            agent_name=config["director_name"],
            content=config["command_format"].format(targets=label, content=text),
            kind=EntryKind.COMMAND,
        )
        return self._insert(message, targets)

    def narrate(self, text: str, targets: Sequence[str] = ()) -> Message:
        """
        Insert a narration and let ``targets`` (if any) respond in order.

        Raises:
            TurnInProgressError: an agent is still responding
        """
        config = get_conversation_context_config()
        message = Message(
            role=MessageRole.USER,
            agent_id=NARRATOR_ID,
            agent_name=config["narrator_name"],
            content=config["narration_format"].format(content=text.strip()),
            kind=EntryKind.NARRATION,
        )
        return self._insert(message, targets)

    def _insert(self, message: Message, targets: Sequence[str]) -> Message:
        coordinator = self.coordinator
        coordinator._ensure_idle("add a director entry")

        coordinator.log.append(message)
        coordinator._persist()

        known = [agent_id for agent_id in dict.fromkeys(targets) if agent_id in coordinator.agents]
        if not known:
            logger.info(f"🎬 {message.kind} recorded without targets")
            return message

        logger.info(f"🎬 {message.kind} starts sequential turn for {known}")
        coordinator.start_turn(known, TurnPolicy.SEQUENTIAL)
        return message
