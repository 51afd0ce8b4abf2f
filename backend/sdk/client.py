"""
AgentClient boundary.

An AgentClient issues one chat request per agent invocation. It either
returns a single result (``generate``) or starts a stream
(``generate_stream``) whose chunks are delivered through a subscription
channel and routed by ``source_id``.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable


@dataclass
class ChatRequest:
    """
    Provider-independent chat request.

    Attributes:
        model: Provider model name
        system_prompt: System prompt for the agent
        messages: Ordered provider history, each entry {"role", "content"}
    """

    model: str
    system_prompt: str
    messages: List[Dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class GenerateResult:
    """Result of a non-streaming call: content on success, error otherwise."""

    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


@dataclass(frozen=True)
class StreamStart:
    """Immediate answer of ``generate_stream``."""

    started: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class StreamChunk:
    """
    One chunk of a streamed reply.

    A chunk may carry text, an error, a done marker, or an error and done
    marker together.
    """

    source_id: str
    text: Optional[str] = None
    error: Optional[str] = None
    done: bool = False


ChunkCallback = Callable[[StreamChunk], None]


class Subscription:
    """Handle for a chunk subscription. ``dispose`` is idempotent."""

    def __init__(self, on_dispose: Callable[[], None]):
        self._on_dispose: Optional[Callable[[], None]] = on_dispose

    @property
    def disposed(self) -> bool:
        return self._on_dispose is None

    def dispose(self) -> None:
        if self._on_dispose is not None:
            on_dispose, self._on_dispose = self._on_dispose, None
            on_dispose()


@runtime_checkable
class AgentClient(Protocol):
    """Operations the orchestrator needs from a provider client."""

    async def generate(self, provider_id: str, request: ChatRequest) -> GenerateResult: ...

    async def generate_stream(self, provider_id: str, request: ChatRequest, source_id: str) -> StreamStart: ...

    def subscribe(self, callback: ChunkCallback) -> Subscription: ...
