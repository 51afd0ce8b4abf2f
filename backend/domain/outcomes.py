"""
Terminal outcomes of an agent invocation.
"""

from dataclasses import dataclass
from typing import Union

from .enums import FailureKind


@dataclass(frozen=True)
class Completed:
    """The agent produced a reply."""

    content: str


@dataclass(frozen=True)
class Failed:
    """
    The agent did not produce a reply.

    Attributes:
        kind: Failure category
        reason: Human-readable description
    """

    kind: FailureKind
    reason: str


Outcome = Union[Completed, Failed]
