"""
Provider request builder.

Turns a history snapshot into the ordered {role, content} list an
AgentClient expects. Agent replies become "assistant" entries, every
other entry (human speech, director commands, narration) becomes a
"user" entry. Spoken entries are labelled with the speaker name so a
model can tell participants apart.
"""

from typing import Dict, Iterable, List

from config.loaders import get_conversation_context_config
from domain.agent_config import AgentDescriptor
from domain.enums import EntryKind, MessageRole
from domain.messages import Message
from sdk.client import ChatRequest


def format_history_entry(message: Message, speaker_format: str) -> Dict[str, str]:
    role = "assistant" if message.role == MessageRole.AGENT else "user"
    if message.kind == EntryKind.SPEECH:
        content = speaker_format.format(name=message.agent_name, content=message.content)
    else:
        # Director entries are rendered with their label when inserted
        content = message.content
    return {"role": role, "content": content}


def build_history(history: Iterable[Message]) -> List[Dict[str, str]]:
    """
    Format a history snapshot for a provider.

    Empty messages and in-progress placeholders are skipped.
    """
    speaker_format = get_conversation_context_config()["speaker_format"]
    return [
        format_history_entry(message, speaker_format)
        for message in history
        if message.content and not message.is_open
    ]


def build_chat_request(agent: AgentDescriptor, history: Iterable[Message]) -> ChatRequest:
    """
    Build the request for one agent invocation.

    Args:
        agent: Agent being invoked
        history: Value snapshot of the conversation log

    Returns:
        ChatRequest with the agent's model, system prompt and formatted history
    """
    return ChatRequest(model=agent.model, system_prompt=agent.system_prompt, messages=build_history(history))
