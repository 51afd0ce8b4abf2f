"""
Exceptions raised by turn orchestration and session persistence.

Agent failures are not exceptions; they are reported as ``Failed`` outcomes.
"""


class OrchestrationError(Exception):
    """Base class for rejected orchestration requests."""


class TurnInProgressError(OrchestrationError):
    """An agent is still loading, so the request cannot start now."""


class EmptySelectionError(OrchestrationError):
    """A user message was sent with no agents selected."""


class EmptyContentError(OrchestrationError):
    """Message or command text was blank."""


class UnknownAgentError(OrchestrationError):
    """The agent id is not part of this session."""


class RetryNotSupportedError(OrchestrationError):
    """The requested message cannot be regenerated."""


class SessionError(Exception):
    """Base class for session persistence errors."""


class InvalidSessionIdError(SessionError):
    """Session id contains characters outside [A-Za-z0-9-]."""


class SessionNotFoundError(SessionError):
    """No session is stored under the given id."""
